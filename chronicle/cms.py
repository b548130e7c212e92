"""A client for the headless CMS, a Strapi-style REST API.

The CMS is the system of record.  Everything that comes back from it is
flattened into the display model (see value_objs) at this boundary, so nothing
downstream has to care about the nesting of the wire format.

"""

from logging import getLogger
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple
import math
import time

import requests
from dateutil.parser import isoparse

from . import exc
from .config import CMSConfig
from .constants import (
    FEATURED_TYPE,
    PLACEHOLDER_IMAGE,
    READING_SPEED_WPM,
    UNCATEGORIZED,
    UNCATEGORIZED_SLUG,
)
from .http import http_sesh, BASIC_TIMEOUT
from .value_objs import Author, Chapter, Post, PostsPage, Tag

logger = getLogger(__name__)

Params = Tuple[Tuple[str, str], ...]

PUBLIC_ONLY = ("filters[is_public][$eq]", "true")
POPULATE_ALL = ("populate", "*")
NEWEST_FIRST = ("sort[1]", "createdAt:desc")

DEFAULT_COUNT = 22
STICKY_COUNT = 6

# responses kept at most, oldest are dropped first
MAX_CACHE_ENTRIES = 256

ANONYMOUS = Author(name="", slug="", bio="", avatar="")


def calculate_read_time(content: str) -> str:
    words = len(content.split())
    minutes = max(1, math.ceil(words / READING_SPEED_WPM))
    return f"{minutes} min read"


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    try:
        parsed = isoparse(value)
    except (ValueError, TypeError):
        logger.warning("unparseable timestamp from the cms: '%s'", value)
        return None
    # date-only values come back naive, which can't be compared with the rest
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _single(attributes: Mapping[str, Any], name: str) -> Optional[Mapping[str, Any]]:
    """Returns the data of a to-one relation, if present."""
    relation = attributes.get(name) or {}
    return relation.get("data") or None


def _many(attributes: Mapping[str, Any], name: str) -> List[Any]:
    """Returns the data of a to-many relation, an empty list if absent."""
    relation = attributes.get(name) or {}
    return list(relation.get("data") or [])


def map_tag(record: Any) -> Tag:
    # older content has tags as bare strings
    if isinstance(record, str):
        return Tag(name=record, slug=record.lower())
    attributes = record.get("attributes") or {}
    name = attributes.get("name") or ""
    return Tag(name=name, slug=attributes.get("slug") or name.lower())


def map_author(record: Optional[Mapping[str, Any]]) -> Author:
    if record is None:
        return ANONYMOUS
    attributes = record.get("attributes") or {}
    avatar = attributes.get("avatar") or {}
    avatar_url = avatar.get("url")
    if avatar_url is None:
        # populated media relations are nested one level further down
        avatar_url = ((avatar.get("data") or {}).get("attributes") or {}).get("url")
    return Author(
        name=attributes.get("name") or "",
        slug=attributes.get("slug") or "",
        bio=attributes.get("bio") or "",
        avatar=avatar_url or "",
    )


def map_chapter(record: Mapping[str, Any]) -> Chapter:
    attributes = record.get("attributes") or {}
    return Chapter(
        id=record.get("id", 0),
        title=attributes.get("title") or "",
        slug=attributes.get("slug") or "",
        description=attributes.get("description") or "",
        content=attributes.get("content") or "",
        summary=attributes.get("summary") or "",
        posts=tuple(map_posts(_many(attributes, "posts"))),
    )


def map_post(record: Mapping[str, Any]) -> Post:
    """Map a CMS post record into a Post.

    Every relation is optional - the documented defaults are substituted for
    the ones that are missing.

    """
    attributes = record.get("attributes") or {}

    categories = _many(attributes, "categories")
    category = (categories[0].get("attributes") or {}) if categories else {}
    featured_image = _single(attributes, "featured_image") or {}
    image_url = (featured_image.get("attributes") or {}).get("url")
    content = attributes.get("content") or ""

    return Post(
        id=record.get("id", 0),
        title=attributes.get("title") or "",
        slug=attributes.get("slug") or "",
        excerpt=attributes.get("excerpt") or "",
        content=content,
        category=category.get("name") or UNCATEGORIZED,
        category_slug=category.get("slug") or UNCATEGORIZED_SLUG,
        tags=tuple(map_tag(tag) for tag in _many(attributes, "tags")),
        author=map_author(_single(attributes, "author")),
        published_at=parse_timestamp(
            attributes.get("publishedAt") or attributes.get("createdAt")
        ),
        updated_at=parse_timestamp(attributes.get("updatedAt")),
        read_time=calculate_read_time(content),
        featured=attributes.get("type") == FEATURED_TYPE,
        image=image_url or PLACEHOLDER_IMAGE,
        post_type=attributes.get("type"),
        chapters=tuple(map_chapter(c) for c in _many(attributes, "chapters")),
    )


def map_posts(records: Iterable[Mapping[str, Any]]) -> List[Post]:
    return [map_post(record) for record in records]


def posts_page_from_doc(doc: Mapping[str, Any]) -> PostsPage:
    pagination = (doc.get("meta") or {}).get("pagination") or {}
    return PostsPage(
        posts=map_posts(doc.get("data") or []),
        pages=pagination.get("pageCount") or 1,
        total=pagination.get("total") or 0,
    )


def resolve_tag_name(posts: Iterable[Post], slug: str) -> str:
    """Find the display name of a tag, given its slug.

    Looks through the tags of every post given.  If none match the slug is
    used as the name.

    """
    wanted = slug.lower()
    for post in posts:
        for tag in post.tags:
            if tag.slug.lower() == wanted:
                return tag.name
    return slug


class CMSClient:
    """Queries the CMS for posts.

    None of the query methods raise if the CMS is down or returns an error:
    the problem is logged and an empty result is returned instead.

    Successful responses are kept for a short time to keep the request rate
    down - the CMS doesn't need to be read on every page view.

    """

    def __init__(self, config: CMSConfig) -> None:
        self.config = config
        self.base_url = config.base_url.rstrip("/")
        self._cache: Dict[Tuple[str, Params], Tuple[float, Dict[str, Any]]] = {}

    def clear_cache(self) -> None:
        self._cache.clear()

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.config.auth_token:
            headers["Authorization"] = f"Bearer {self.config.auth_token}"
        return headers

    def _get(self, path: str, params: Params) -> Dict[str, Any]:
        url = f"{self.base_url}{path}"
        cache_key = (path, params)
        now = time.monotonic()
        cached = self._cache.get(cache_key)
        if cached is not None:
            expires, doc = cached
            if expires > now:
                logger.debug("cache hit for %s", url)
                return doc
            self._cache.pop(cache_key, None)

        try:
            resp = http_sesh.get(
                url, params=params, headers=self._headers(), timeout=BASIC_TIMEOUT
            )
            resp.raise_for_status()
            doc = resp.json()
        except requests.exceptions.RequestException as e:
            raise exc.CMSUnavailableException(url, str(e)) from e
        except ValueError as e:
            raise exc.CMSUnavailableException(url, "response was not json") from e
        if not isinstance(doc, dict):
            raise exc.CMSUnavailableException(url, "unexpected response shape")

        if self.config.cache_ttl_seconds > 0:
            self._store(cache_key, now + self.config.cache_ttl_seconds, doc)
        return doc

    def _store(
        self, cache_key: Tuple[str, Params], expires: float, doc: Dict[str, Any]
    ) -> None:
        now = time.monotonic()
        for key, (key_expires, _) in list(self._cache.items()):
            if key_expires <= now:
                self._cache.pop(key, None)
        overflow = len(self._cache) - MAX_CACHE_ENTRIES + 1
        if overflow > 0:
            # dicts keep insertion order, so these are the oldest
            for key in list(self._cache)[:overflow]:
                self._cache.pop(key, None)
        self._cache[cache_key] = (expires, doc)

    def _posts_page(self, params: Params, description: str) -> PostsPage:
        try:
            doc = self._get("/posts", params)
        except exc.CMSUnavailableException:
            logger.exception("error fetching %s", description)
            return PostsPage.empty()
        return posts_page_from_doc(doc)

    def _post_list(self, params: Params, description: str) -> List[Post]:
        return list(self._posts_page(params, description).posts)

    def get_posts(self, page: int = 1, count: int = DEFAULT_COUNT) -> PostsPage:
        params = (
            PUBLIC_ONLY,
            ("pagination[page]", str(page)),
            ("pagination[pageSize]", str(count)),
            NEWEST_FIRST,
            POPULATE_ALL,
        )
        return self._posts_page(params, "posts")

    def get_sticky_posts(self) -> List[Post]:
        params = (
            PUBLIC_ONLY,
            ("filters[type][$eq]", FEATURED_TYPE),
            ("pagination[pageSize]", str(STICKY_COUNT)),
            NEWEST_FIRST,
            POPULATE_ALL,
        )
        return self._post_list(params, "sticky posts")

    def get_recent_posts(self, count: int = 6) -> List[Post]:
        params = (
            PUBLIC_ONLY,
            ("pagination[pageSize]", str(count)),
            NEWEST_FIRST,
            POPULATE_ALL,
        )
        return self._post_list(params, "recent posts")

    def get_post_by_slug(self, slug: str) -> Optional[Post]:
        params = (
            PUBLIC_ONLY,
            ("filters[slug][$eq]", slug),
            POPULATE_ALL,
        )
        posts = self._post_list(params, f"post '{slug}'")
        if len(posts) == 0:
            return None
        return posts[0]

    def _filtered_page(
        self, filter_key: str, slug: str, page: int, count: int, description: str
    ) -> PostsPage:
        params = (
            PUBLIC_ONLY,
            (filter_key, slug),
            ("pagination[page]", str(page)),
            ("pagination[pageSize]", str(count)),
            POPULATE_ALL,
        )
        return self._posts_page(params, f"{description} '{slug}'")

    def get_posts_by_category(
        self, slug: str, page: int = 1, count: int = DEFAULT_COUNT
    ) -> PostsPage:
        return self._filtered_page(
            "filters[categories][slug][$eq]", slug, page, count, "category posts"
        )

    def get_posts_by_tag(
        self, slug: str, page: int = 1, count: int = DEFAULT_COUNT
    ) -> PostsPage:
        return self._filtered_page(
            "filters[tags][slug][$eq]", slug, page, count, "tag posts"
        )

    def get_posts_by_author(
        self, slug: str, page: int = 1, count: int = DEFAULT_COUNT
    ) -> PostsPage:
        return self._filtered_page(
            "filters[author][slug][$eq]", slug, page, count, "author posts"
        )

    def get_related_posts(
        self, post_id: int, category_slug: str, count: int = 3
    ) -> List[Post]:
        """Other posts from the same category."""
        params = (
            PUBLIC_ONLY,
            ("filters[categories][slug][$eq]", category_slug),
            ("filters[id][$ne]", str(post_id)),
            ("pagination[pageSize]", str(count)),
            POPULATE_ALL,
        )
        return self._post_list(params, f"posts related to {post_id}")
