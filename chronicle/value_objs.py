from typing import Optional, Sequence, Tuple
from datetime import datetime
from dataclasses import dataclass, field
import re

from .constants import DEFINITIVE_GUIDE_TYPE

# used for chapter posts that somehow have no read time
DEFAULT_READ_MINUTES = 5

_DIGITS_REGEX = re.compile(r"\D")


@dataclass(frozen=True)
class Tag:
    name: str
    slug: str


@dataclass(frozen=True)
class Author:
    name: str
    slug: str
    bio: str
    avatar: str

    def initials(self) -> str:
        return self.name[:2].upper()

    def has_avatar(self) -> bool:
        return self.avatar != ""


@dataclass(frozen=True)
class Post:
    """A blog post, flattened out of the CMS's nested representation."""

    id: int
    title: str
    slug: str
    excerpt: str
    content: str
    category: str
    category_slug: str
    tags: Tuple[Tag, ...]
    author: Author
    published_at: Optional[datetime]
    updated_at: Optional[datetime]
    read_time: str
    featured: bool
    image: str
    post_type: Optional[str] = None
    chapters: Tuple["Chapter", ...] = field(default_factory=tuple)

    @property
    def tag_names(self) -> Sequence[str]:
        return [tag.name for tag in self.tags]

    @property
    def tag_slugs(self) -> Sequence[str]:
        return [tag.slug for tag in self.tags]

    def is_definitive_guide(self) -> bool:
        return self.post_type == DEFINITIVE_GUIDE_TYPE

    def read_time_minutes(self) -> int:
        digits = _DIGITS_REGEX.sub("", self.read_time)
        if digits == "":
            return DEFAULT_READ_MINUTES
        return int(digits)


@dataclass(frozen=True)
class Chapter:
    """A chapter of a definitive guide.

    Chapters normally own posts but a chapter with no posts can instead carry
    its own content (or failing that, a summary).

    """

    id: int
    title: str
    slug: str
    description: str = ""
    content: str = ""
    summary: str = ""
    posts: Tuple[Post, ...] = field(default_factory=tuple)

    def body(self) -> str:
        return self.content or self.summary

    def read_time_minutes(self) -> int:
        return sum(post.read_time_minutes() for post in self.posts)


def guide_read_time(chapters: Sequence[Chapter]) -> int:
    """Total read time of a guide, in minutes."""
    return sum(chapter.read_time_minutes() for chapter in chapters)


@dataclass
class PostsPage:
    """One page of posts as the CMS returned it."""

    posts: Sequence[Post]
    total: int
    pages: int

    @staticmethod
    def empty() -> "PostsPage":
        return PostsPage(posts=[], total=0, pages=0)
