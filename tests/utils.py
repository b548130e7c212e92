from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Sequence
from urllib.parse import parse_qs, urlparse
import random
import string

from lxml import etree

from chronicle.value_objs import Author, Post, Tag

TEST_CMS_URL = "http://cms.example.com/api"
POSTS_URL = f"{TEST_CMS_URL}/posts"

BASE_DATE = datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc)


def random_string() -> str:
    return "".join(random.choice(string.ascii_lowercase) for _ in range(32))


def make_post(**overrides) -> Post:
    kwargs: Dict[str, Any] = {
        "id": 1,
        "title": "Hello, World",
        "slug": "hello-world",
        "excerpt": "<p>The first post</p>",
        "content": "<p>Hi, so about the backend...</p>",
        "category": "Databases",
        "category_slug": "databases",
        "tags": (Tag(name="Postgres", slug="postgres"),),
        "author": Author(name="Ada", slug="ada", bio="", avatar=""),
        "published_at": BASE_DATE,
        "updated_at": None,
        "read_time": "1 min read",
        "featured": False,
        "image": "http://example.com/some.jpg",
    }
    kwargs.update(**overrides)
    return Post(**kwargs)


def make_posts(count: int, **overrides) -> List[Post]:
    """Posts numbered from 0, each a day older than the last."""
    return [
        make_post(
            id=index,
            title=f"Post {index}",
            slug=f"post-{index}",
            published_at=BASE_DATE - timedelta(days=index),
            **overrides,
        )
        for index in range(count)
    ]


def make_strapi_post(
    id: int = 1,
    title: str = "Hello, World",
    slug: str = "hello-world",
    content: str = "<p>Hi, so about the backend...</p>",
    category: Optional[Dict[str, str]] = None,
    tags: Sequence[Dict[str, str]] = (),
    author: Optional[Dict[str, Any]] = None,
    type_: Optional[str] = None,
    chapters: Sequence[Dict[str, Any]] = (),
    published_at: str = "2024-03-01T09:00:00.000Z",
) -> Dict[str, Any]:
    """A post record, shaped the way the CMS sends them."""
    attributes: Dict[str, Any] = {
        "title": title,
        "slug": slug,
        "excerpt": f"<p>About {title}</p>",
        "content": content,
        "publishedAt": published_at,
        "createdAt": published_at,
        "updatedAt": published_at,
        "type": type_,
        "tags": {"data": [{"id": i, "attributes": t} for i, t in enumerate(tags)]},
        "categories": {"data": []},
        "chapters": {
            "data": [{"id": i, "attributes": c} for i, c in enumerate(chapters)]
        },
    }
    if category is not None:
        attributes["categories"] = {"data": [{"id": 1, "attributes": category}]}
    if author is not None:
        attributes["author"] = {"data": {"id": 1, "attributes": author}}
    return {"id": id, "attributes": attributes}


def strapi_response(records: Sequence[Dict[str, Any]], page_count: int = 1):
    return {
        "data": list(records),
        "meta": {
            "pagination": {
                "page": 1,
                "pageSize": 25,
                "pageCount": page_count,
                "total": len(records),
            }
        },
    }


def query_params(request) -> Dict[str, List[str]]:
    """The query string of a mocked request, all in lower case."""
    parsed = parse_qs(urlparse(request.url).query)
    return {k.lower(): [v.lower() for v in vs] for k, vs in parsed.items()}


def is_sticky_request(request) -> bool:
    return query_params(request).get("filters[type][$eq]") == ["featured"]


def is_related_request(request) -> bool:
    return "filters[id][$ne]" in query_params(request)


def parse_html(data: bytes):
    html_parser = etree.HTMLParser()
    return etree.fromstring(data, html_parser)
