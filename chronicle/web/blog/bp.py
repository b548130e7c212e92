from datetime import timedelta
from typing import Any

from feedgen.feed import FeedGenerator
from flask import Blueprint, render_template, Response, url_for, make_response, request

from ... import exc
from ...cms import CMSClient, resolve_tag_name
from ...config import get_config
from ...content import html_to_text, render_rich_text
from ...listing import (
    ALL_CATEGORIES,
    ListingQuery,
    build_archive,
    build_listing,
    extract_categories,
)
from ...value_objs import PostsPage, guide_read_time
from ..func import ensure_page_exists, get_cms_client, get_page_number

bp = Blueprint("blog", __name__)

# Just enough to keep the req/s down
CACHE_TTL = int(timedelta(minutes=1).total_seconds())

RELATED_POSTS_COUNT = 3
FEED_ENTRIES_COUNT = 20


def set_cache_control(response: Response) -> None:
    cc = response.cache_control
    cc.max_age = CACHE_TTL


def current_query(with_category: bool = True) -> ListingQuery:
    category = ALL_CATEGORIES
    if with_category:
        category = request.args.get("category", "").strip() or ALL_CATEGORIES
    return ListingQuery(
        search_term=request.args.get("q", "").strip(),
        category=category,
        page=get_page_number(),
    )


@bp.get("/")
def index() -> Response:
    config = get_config()
    cms = get_cms_client()
    all_posts = cms.get_posts(page=1, count=config.listing_fetch_size).posts
    featured_posts = cms.get_sticky_posts()

    listing = build_listing(all_posts, featured_posts, current_query())
    ensure_page_exists(listing.pagination)

    response = make_response(
        render_template(
            "blog/index.html",
            listing=listing,
            categories=extract_categories(all_posts),
            page_title=config.site_title,
        )
    )
    set_cache_control(response)
    return response


@bp.get("/<slug>")
def post(slug: str) -> Response:
    config = get_config()
    cms = get_cms_client()
    post_obj = cms.get_post_by_slug(slug)
    if post_obj is None:
        raise exc.PostDoesNotExistException(slug)
    related_posts = cms.get_related_posts(
        post_obj.id, post_obj.category_slug, RELATED_POSTS_COUNT
    )

    if post_obj.is_definitive_guide():
        template = "blog/guide.html"
    else:
        template = "blog/post.html"
    response = make_response(
        render_template(
            template,
            post=post_obj,
            rendered=render_rich_text(post_obj.content, config.highlight_code),
            related_posts=related_posts,
            guide_minutes=guide_read_time(post_obj.chapters),
            page_title=post_obj.title,
        )
    )
    set_cache_control(response)
    return response


def archive_response(posts_page: PostsPage, **template_kwargs: Any) -> Response:
    """Render a category, tag or author page."""
    listing = build_archive(posts_page.posts, current_query(with_category=False))
    ensure_page_exists(listing.pagination)
    response = make_response(
        render_template(
            "blog/archive.html",
            listing=listing,
            total=posts_page.total,
            **template_kwargs,
        )
    )
    set_cache_control(response)
    return response


@bp.get("/category/<slug>")
def category(slug: str) -> Response:
    cms = get_cms_client()
    posts_page = cms.get_posts_by_category(
        slug, count=get_config().archive_fetch_size
    )
    if len(posts_page.posts) == 0:
        raise exc.CategoryDoesNotExistException(slug)
    category_name = posts_page.posts[0].category
    return archive_response(
        posts_page,
        heading=category_name,
        kind="category",
        page_title=category_name,
    )


@bp.get("/tag/<slug>")
def tag(slug: str) -> Response:
    cms = get_cms_client()
    posts_page = cms.get_posts_by_tag(
        slug, count=get_config().archive_fetch_size
    )
    if len(posts_page.posts) == 0:
        raise exc.TagDoesNotExistException(slug)
    tag_name = resolve_tag_name(posts_page.posts, slug)
    return archive_response(
        posts_page,
        heading=f"#{tag_name}",
        kind="tag",
        tag_name=tag_name,
        page_title=tag_name,
    )


@bp.get("/author/<slug>")
def author(slug: str) -> Response:
    cms = get_cms_client()
    posts_page = cms.get_posts_by_author(
        slug, count=get_config().archive_fetch_size
    )
    if len(posts_page.posts) == 0:
        raise exc.AuthorDoesNotExistException(slug)
    author_obj = posts_page.posts[0].author
    return archive_response(
        posts_page,
        heading=author_obj.name,
        kind="author",
        author=author_obj,
        page_title=f"Content by {author_obj.name}",
    )


@bp.get("/posts.rss")
def rss() -> Response:
    feed = make_feed(get_cms_client(), url_for("blog.rss", _external=True))
    response = Response(feed, mimetype="application/rss+xml")
    cc = response.cache_control
    # RSS feed updates need to be picked up in reasonable period of time
    cc.public = True
    cc.max_age = int(timedelta(hours=1).total_seconds())
    return response


def make_feed(cms: CMSClient, feed_url: str) -> bytes:
    config = get_config()
    fg = FeedGenerator()
    fg.id(feed_url)
    fg.title(config.site_title)
    fg.language("en")
    fg.link(href=feed_url, rel="self")
    fg.link(href=url_for("blog.index", _external=True), rel="alternate")
    fg.description(f"The latest posts from {config.site_title}")

    for post_obj in cms.get_recent_posts(FEED_ENTRIES_COUNT):
        post_url = url_for("blog.post", slug=post_obj.slug, _external=True)
        fe = fg.add_entry(order="append")
        fe.id(post_url)
        fe.title(post_obj.title)
        if post_obj.published_at is not None:
            fe.pubDate(post_obj.published_at)
        fe.description(html_to_text(post_obj.excerpt) or post_obj.title)
        fe.link(href=post_url)
        fe.category(term=post_obj.category)

    return fg.rss_str(pretty=True)
