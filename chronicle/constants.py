# an average adult reads around 200-250 words per minute
READING_SPEED_WPM = 200

PLACEHOLDER_IMAGE = "/placeholder.svg?height=400&width=800"

UNCATEGORIZED = "Uncategorized"

UNCATEGORIZED_SLUG = "uncategorized"

# the value of the CMS "type" field for sticky posts
FEATURED_TYPE = "featured"

# the value of the CMS "type" field for long-form, chaptered posts
DEFINITIVE_GUIDE_TYPE = "definitive"
