class ChronicleException(Exception):
    """ABC for chronicle exceptions to make it possible to catch them collectively"""


class CMSUnavailableException(ChronicleException):
    """The CMS could not be reached, returned a non-2xx status or sent back
    something that wasn't JSON.

    This never leaves the CMS client.

    """

    def __init__(self, url: str, reason: str):
        self.url = url
        self.reason = reason
        super().__init__((url, reason))


# FIXME: the "not exists" exceptions could be unified into one with a kind
class PostDoesNotExistException(ChronicleException):
    def __init__(self, slug: str):
        self.slug = slug
        super().__init__(slug)


class CategoryDoesNotExistException(ChronicleException):
    def __init__(self, slug: str):
        self.slug = slug
        super().__init__(slug)


class TagDoesNotExistException(ChronicleException):
    def __init__(self, slug: str):
        self.slug = slug
        super().__init__(slug)


class AuthorDoesNotExistException(ChronicleException):
    def __init__(self, slug: str):
        self.slug = slug
        super().__init__(slug)


class PageDoesNotExistException(ChronicleException):
    def __init__(self, page: int, total_pages: int):
        self.page = page
        self.total_pages = total_pages
        super().__init__((page, total_pages))
