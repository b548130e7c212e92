from datetime import datetime
from logging import getLogger
from typing import Optional

import werkzeug
import werkzeug.exceptions
from flask import (
    current_app,
    jsonify,
    make_response,
    render_template,
    request,
    url_for,
)
from flask.wrappers import Response
from flask_babel import format_date

from ..cms import CMSClient
from .. import exc
from ..listing import ALL_CATEGORIES, ListingQuery
from ..pagination import Pagination

logger = getLogger(__name__)

CMS_CLIENT_KEY = "chronicle.cms_client"


def is_browser() -> bool:
    # bit of content negotiation magic
    accepts = werkzeug.http.parse_accept_header(request.headers.get("Accept"))
    best = accepts.best_match(["text/html", "application/json"], default="text/html")
    return best == "text/html"


def get_cms_client() -> CMSClient:
    """Return the CMS client for the current app."""
    return current_app.extensions[CMS_CLIENT_KEY]


def get_page_number() -> int:
    """The requested page number.  Anything unparseable is the first page."""
    return request.args.get("page", default=1, type=int)


def ensure_page_exists(pagination: Pagination) -> None:
    """Page numbers outside the listing are rejected rather than clamped."""
    if not pagination.is_valid():
        raise exc.PageDoesNotExistException(
            pagination.current_page, pagination.total_pages
        )


def format_published(published: Optional[datetime]) -> str:
    if published is None:
        return ""
    return format_date(published, format="medium")


def error_response(message: str, http_code: int) -> Response:
    if is_browser():
        resp = make_response(
            render_template("error.html", http_code=http_code, message=message)
        )
    else:
        resp = jsonify({"error": message})
    resp.status_code = http_code
    return resp


def handle_app_level_404_and_405(
    e: werkzeug.exceptions.HTTPException,
) -> Response:
    """Render routing failures the same way as our own exceptions."""
    if e.code == 405:
        message = "that verb is not allowed"
    else:
        message = "that page does not exist"
    logger.debug("app level error: %s", e)
    return error_response(message, e.code or 404)


def listing_url(query: ListingQuery) -> str:
    """The url of the current listing page, for a different query."""
    args = dict(request.view_args or {})
    if query.search_term != "":
        args["q"] = query.search_term
    if query.category != ALL_CATEGORIES:
        args["category"] = query.category
    if query.page != 1:
        args["page"] = query.page
    return url_for(request.endpoint or "blog.index", **args)
