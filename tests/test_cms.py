from datetime import datetime, timezone
from unittest.mock import patch

import pytest
import requests

from chronicle import cms
from chronicle.config import CMSConfig
from chronicle.constants import PLACEHOLDER_IMAGE
from chronicle.value_objs import Tag

from .utils import (
    POSTS_URL,
    TEST_CMS_URL,
    make_post,
    make_strapi_post,
    query_params,
    strapi_response,
)


@pytest.fixture()
def client_():
    return cms.CMSClient(CMSConfig(base_url=TEST_CMS_URL, cache_ttl_seconds=0))


def test_map_post__defaults():
    post = cms.map_post({"id": 3, "attributes": {"title": "Bare"}})

    assert post.id == 3
    assert post.title == "Bare"
    assert post.category == "Uncategorized"
    assert post.category_slug == "uncategorized"
    assert post.tags == ()
    assert post.author.name == ""
    assert post.author.slug == ""
    assert post.image == PLACEHOLDER_IMAGE
    assert post.read_time == "1 min read"
    assert post.published_at is None
    assert not post.featured
    assert not post.is_definitive_guide()


def test_map_post__everything():
    record = make_strapi_post(
        category={"name": "Databases", "slug": "databases"},
        tags=[{"name": "Postgres", "slug": "postgres"}, {"name": "SQL", "slug": "sql"}],
        author={
            "name": "Ada Lovelace",
            "slug": "ada",
            "bio": "Wrote the first program",
            "avatar": {"data": {"attributes": {"url": "/uploads/ada.png"}}},
        },
        type_="featured",
    )
    record["attributes"]["featured_image"] = {
        "data": {"attributes": {"url": "/uploads/cover.png"}}
    }
    post = cms.map_post(record)

    assert post.category == "Databases"
    assert post.category_slug == "databases"
    assert post.tags == (Tag("Postgres", "postgres"), Tag("SQL", "sql"))
    assert post.tag_names == ["Postgres", "SQL"]
    assert post.tag_slugs == ["postgres", "sql"]
    assert post.author.name == "Ada Lovelace"
    assert post.author.avatar == "/uploads/ada.png"
    assert post.author.initials() == "AD"
    assert post.image == "/uploads/cover.png"
    assert post.featured
    assert post.published_at == datetime(2024, 3, 1, 9, tzinfo=timezone.utc)


def test_map_post__uses_created_at_when_unpublished():
    record = make_strapi_post()
    record["attributes"]["publishedAt"] = None
    record["attributes"]["createdAt"] = "2023-01-02T00:00:00Z"
    post = cms.map_post(record)
    assert post.published_at == datetime(2023, 1, 2, tzinfo=timezone.utc)


def test_map_post__definitive_guide():
    record = make_strapi_post(
        type_="definitive",
        chapters=[
            {"title": "Indexes", "slug": "indexes", "content": "<p>B-trees</p>"},
            {"title": "Locks", "slug": "locks", "summary": "Row locks"},
        ],
    )
    post = cms.map_post(record)
    assert post.is_definitive_guide()
    assert not post.featured
    assert [c.title for c in post.chapters] == ["Indexes", "Locks"]
    assert post.chapters[0].body() == "<p>B-trees</p>"
    assert post.chapters[1].body() == "Row locks"


def test_map_tag__bare_string():
    assert cms.map_tag("Python") == Tag(name="Python", slug="python")


def test_map_author__flat_avatar():
    author = cms.map_author(
        {"attributes": {"name": "Bo", "slug": "bo", "avatar": {"url": "/bo.png"}}}
    )
    assert author.avatar == "/bo.png"
    assert author.has_avatar()


def test_map_author__missing():
    assert cms.map_author(None) == cms.ANONYMOUS


@pytest.mark.parametrize(
    "word_count, expected",
    [
        pytest.param(0, "1 min read", id="empty"),
        pytest.param(200, "1 min read", id="exactly one minute"),
        pytest.param(201, "2 min read", id="just over"),
        pytest.param(1000, "5 min read", id="five minutes"),
    ],
)
def test_calculate_read_time(word_count, expected):
    assert cms.calculate_read_time(" ".join(["word"] * word_count)) == expected


@pytest.mark.parametrize(
    "value, expected",
    [
        pytest.param(None, None, id="none"),
        pytest.param("", None, id="blank"),
        pytest.param("not a date", None, id="garbage"),
        pytest.param(
            "2024-03-01", datetime(2024, 3, 1, tzinfo=timezone.utc), id="naive"
        ),
    ],
)
def test_parse_timestamp(value, expected):
    assert cms.parse_timestamp(value) == expected


def test_resolve_tag_name():
    posts = [
        make_post(tags=()),
        make_post(tags=(Tag("Distributed Systems", "distributed-systems"),)),
    ]
    assert cms.resolve_tag_name(posts, "Distributed-Systems") == "Distributed Systems"
    assert cms.resolve_tag_name(posts, "unknown") == "unknown"


def test_get_posts__request(client_, requests_mocker):
    requests_mocker.get(POSTS_URL, json=strapi_response([make_strapi_post()]))

    posts_page = client_.get_posts(page=2, count=10)

    assert [p.slug for p in posts_page.posts] == ["hello-world"]
    assert posts_page.total == 1
    assert posts_page.pages == 1
    qs = query_params(requests_mocker.last_request)
    assert qs["filters[is_public][$eq]"] == ["true"]
    assert qs["pagination[page]"] == ["2"]
    assert qs["pagination[pagesize]"] == ["10"]
    assert qs["populate"] == ["*"]
    assert qs["sort[1]"] == ["createdat:desc"]
    assert "Authorization" not in requests_mocker.last_request.headers


def test_get_posts__auth_token(requests_mocker):
    client_ = cms.CMSClient(
        CMSConfig(base_url=TEST_CMS_URL + "/", auth_token="sekrit", cache_ttl_seconds=0)
    )
    requests_mocker.get(POSTS_URL, json=strapi_response([]))

    client_.get_posts()

    request = requests_mocker.last_request
    assert request.url.startswith(POSTS_URL + "?")
    assert request.headers["Authorization"] == "Bearer sekrit"
    assert request.headers["Content-Type"] == "application/json"


def test_get_sticky_posts__request(client_, requests_mocker):
    requests_mocker.get(
        POSTS_URL, json=strapi_response([make_strapi_post(type_="featured")])
    )

    posts = client_.get_sticky_posts()

    assert [p.featured for p in posts] == [True]
    qs = query_params(requests_mocker.last_request)
    assert qs["filters[type][$eq]"] == ["featured"]
    assert qs["pagination[pagesize]"] == ["6"]


@pytest.mark.parametrize(
    "method_name, filter_key",
    [
        ("get_posts_by_category", "filters[categories][slug][$eq]"),
        ("get_posts_by_tag", "filters[tags][slug][$eq]"),
        ("get_posts_by_author", "filters[author][slug][$eq]"),
    ],
)
def test_filtered_posts__request(client_, requests_mocker, method_name, filter_key):
    requests_mocker.get(POSTS_URL, json=strapi_response([make_strapi_post()]))

    posts_page = getattr(client_, method_name)("some-slug")

    assert len(posts_page.posts) == 1
    assert query_params(requests_mocker.last_request)[filter_key] == ["some-slug"]


def test_get_related_posts__request(client_, requests_mocker):
    requests_mocker.get(POSTS_URL, json=strapi_response([make_strapi_post(id=8)]))

    posts = client_.get_related_posts(7, "databases")

    assert [p.id for p in posts] == [8]
    qs = query_params(requests_mocker.last_request)
    assert qs["filters[id][$ne]"] == ["7"]
    assert qs["filters[categories][slug][$eq]"] == ["databases"]
    assert qs["pagination[pagesize]"] == ["3"]


def test_get_post_by_slug(client_, requests_mocker):
    requests_mocker.get(
        POSTS_URL, json=strapi_response([make_strapi_post(slug="a-post")])
    )
    post = client_.get_post_by_slug("a-post")
    assert post is not None
    assert post.slug == "a-post"
    qs = query_params(requests_mocker.last_request)
    assert qs["filters[slug][$eq]"] == ["a-post"]


def test_get_post_by_slug__not_found(client_, requests_mocker):
    requests_mocker.get(POSTS_URL, json=strapi_response([]))
    assert client_.get_post_by_slug("nope") is None


@pytest.mark.parametrize(
    "mock_kwargs",
    [
        pytest.param({"status_code": 500, "text": "oh no"}, id="server error"),
        pytest.param({"status_code": 404, "json": {}}, id="not found"),
        pytest.param({"text": "<html>definitely not json"}, id="not json"),
        pytest.param({"json": ["a", "list"]}, id="wrong shape"),
        pytest.param({"exc": requests.exceptions.ConnectTimeout}, id="timeout"),
    ],
)
def test_cms_errors_give_empty_results(client_, requests_mocker, mock_kwargs):
    requests_mocker.get(POSTS_URL, **mock_kwargs)

    assert client_.get_posts().posts == []
    assert client_.get_posts().total == 0
    assert client_.get_sticky_posts() == []
    assert client_.get_recent_posts() == []
    assert client_.get_post_by_slug("anything") is None
    assert client_.get_posts_by_tag("anything").posts == []
    assert client_.get_related_posts(1, "anything") == []


def test_responses_are_cached(requests_mocker):
    client_ = cms.CMSClient(CMSConfig(base_url=TEST_CMS_URL, cache_ttl_seconds=60))
    requests_mocker.get(POSTS_URL, json=strapi_response([make_strapi_post()]))

    client_.get_posts()
    client_.get_posts()
    assert requests_mocker.call_count == 1

    # different parameters are a different request
    client_.get_posts(page=2)
    assert requests_mocker.call_count == 2

    client_.clear_cache()
    client_.get_posts()
    assert requests_mocker.call_count == 3


def test_errors_are_not_cached(requests_mocker):
    client_ = cms.CMSClient(CMSConfig(base_url=TEST_CMS_URL, cache_ttl_seconds=60))
    requests_mocker.get(POSTS_URL, status_code=503)

    client_.get_posts()
    client_.get_posts()
    assert requests_mocker.call_count == 2


@pytest.mark.parametrize(
    "tags",
    [
        pytest.param([], id="none"),
        pytest.param([{"name": "Go"}], id="no slug"),
        pytest.param([{"name": "Go", "slug": "go"}, {"slug": "orphan"}], id="mixed"),
    ],
)
def test_map_post__tag_names_and_slugs_line_up(tags):
    post = cms.map_post(make_strapi_post(tags=tags))
    assert len(post.tag_names) == len(post.tag_slugs) == len(tags)


def test_calculate_read_time__monotonic():
    minutes = [
        int(cms.calculate_read_time(" ".join(["w"] * n)).split()[0])
        for n in range(0, 1200, 37)
    ]
    assert minutes == sorted(minutes)
    assert min(minutes) == 1


def test_cache_is_capped(requests_mocker):
    client_ = cms.CMSClient(CMSConfig(base_url=TEST_CMS_URL, cache_ttl_seconds=60))
    requests_mocker.get(POSTS_URL, json=strapi_response([]))

    for index in range(cms.MAX_CACHE_ENTRIES + 50):
        client_.get_posts_by_tag(f"nope-{index}")

    assert len(client_._cache) == cms.MAX_CACHE_ENTRIES
    # the newest are kept
    calls_before = requests_mocker.call_count
    client_.get_posts_by_tag(f"nope-{cms.MAX_CACHE_ENTRIES + 49}")
    assert requests_mocker.call_count == calls_before
    client_.get_posts_by_tag("nope-0")
    assert requests_mocker.call_count == calls_before + 1


def test_expired_entries_are_dropped(requests_mocker):
    client_ = cms.CMSClient(CMSConfig(base_url=TEST_CMS_URL, cache_ttl_seconds=60))
    requests_mocker.get(POSTS_URL, json=strapi_response([]))

    with patch.object(cms.time, "monotonic", return_value=1000.0):
        client_.get_posts_by_tag("old")
    with patch.object(cms.time, "monotonic", return_value=2000.0):
        client_.get_posts_by_tag("new")

    assert len(client_._cache) == 1
    assert requests_mocker.call_count == 2
