"""Filtering, sorting and pagination of posts in memory.

Every listing page (home, category, tag, author) goes through here.  All of
the functions are pure: the same posts, search term, category and page always
give the same listing.

"""

from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Iterable, List, Sequence, Tuple
import math

from .content import html_to_text
from .pagination import Pagination
from .value_objs import Post

PAGE_SIZE = 6

ALL_CATEGORIES = "All"

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def matches_search(post: Post, search_term: str) -> bool:
    """Case-insensitive substring match on the title, excerpt (as plain text)
    and tag names."""
    needle = search_term.lower()
    if needle == "":
        return True
    haystacks = [post.title, html_to_text(post.excerpt), *post.tag_names]
    return any(needle in haystack.lower() for haystack in haystacks)


def matches_category(post: Post, category: str) -> bool:
    return category == ALL_CATEGORIES or post.category == category


def filter_posts(
    posts: Iterable[Post], search_term: str = "", category: str = ALL_CATEGORIES
) -> List[Post]:
    return [
        post
        for post in posts
        if matches_search(post, search_term) and matches_category(post, category)
    ]


def sort_posts(posts: Iterable[Post]) -> List[Post]:
    """Newest first.  Posts without a publication date go last."""
    return sorted(posts, key=lambda p: p.published_at or _EPOCH, reverse=True)


def page_count(item_count: int, page_size: int = PAGE_SIZE) -> int:
    return math.ceil(item_count / page_size)


def paginate(
    posts: Sequence[Post], page: int, page_size: int = PAGE_SIZE
) -> Sequence[Post]:
    start = (page - 1) * page_size
    if start < 0:
        return []
    return posts[start : start + page_size]


def extract_categories(posts: Iterable[Post]) -> List[str]:
    """The category choices for a filter: "All" then every category name
    present, alphabetically."""
    categories = {post.category for post in posts if post.category}
    return [ALL_CATEGORIES, *sorted(categories)]


@dataclass(frozen=True)
class ListingQuery:
    """What the reader has asked for.

    Changing the search term or category goes back to the first page.

    """

    search_term: str = ""
    category: str = ALL_CATEGORIES
    page: int = 1

    def with_search_term(self, search_term: str) -> "ListingQuery":
        return replace(self, search_term=search_term, page=1)

    def with_category(self, category: str) -> "ListingQuery":
        return replace(self, category=category, page=1)

    def with_page(self, page: int) -> "ListingQuery":
        return replace(self, page=page)

    def is_filtered(self) -> bool:
        return self.search_term != "" or self.category != ALL_CATEGORIES


@dataclass
class Listing:
    query: ListingQuery
    posts: Sequence[Post]
    featured_posts: Sequence[Post]
    # the number of posts across all pages
    total: int
    pagination: Pagination


def _split(
    posts: Iterable[Post], query: ListingQuery, page_size: int
) -> Tuple[List[Post], Sequence[Post], Pagination]:
    matching = sort_posts(filter_posts(posts, query.search_term, query.category))
    pagination = Pagination(query.page, page_count(len(matching), page_size))
    return matching, paginate(matching, query.page, page_size), pagination


def build_listing(
    all_posts: Iterable[Post],
    featured_posts: Iterable[Post],
    query: ListingQuery,
    page_size: int = PAGE_SIZE,
) -> Listing:
    """The home page listing.

    Featured posts are filtered with the same search term and category but
    kept separate and not paginated.  They are also left out of the regular
    posts.

    """
    regular = [post for post in all_posts if not post.featured]
    matching, page_posts, pagination = _split(regular, query, page_size)
    featured = sort_posts(
        filter_posts(featured_posts, query.search_term, query.category)
    )
    return Listing(
        query=query,
        posts=page_posts,
        featured_posts=featured,
        total=len(matching),
        pagination=pagination,
    )


def build_archive(
    posts: Iterable[Post], query: ListingQuery, page_size: int = PAGE_SIZE
) -> Listing:
    """A category, tag or author listing - everything is paginated together."""
    matching, page_posts, pagination = _split(posts, query, page_size)
    return Listing(
        query=query,
        posts=page_posts,
        featured_posts=[],
        total=len(matching),
        pagination=pagination,
    )
