import secrets
from logging import getLogger

from flask import Flask
from flask.wrappers import Response as FlaskResponse
from flask_babel import Babel

from .func import (
    CMS_CLIENT_KEY,
    error_response,
    format_published,
    handle_app_level_404_and_405,
    listing_url,
)
from .. import exc, sentry
from ..cms import CMSClient
from ..config import get_config
from ..content import html_to_text, render_rich_text
from ..logging import configure_logging
from .blog.bp import bp as blog_bp

logger = getLogger(__name__)

EXCEPTION_MESSAGE_CODE_MAP = {
    exc.PostDoesNotExistException: ("that post does not exist", 404),
    exc.CategoryDoesNotExistException: ("that category does not exist", 404),
    exc.TagDoesNotExistException: ("that tag does not exist", 404),
    exc.AuthorDoesNotExistException: ("that author does not exist", 404),
    exc.PageDoesNotExistException: ("that page does not exist", 404),
}


def init_app() -> Flask:
    configure_logging()
    sentry.configure_sentry()
    app = Flask(__name__)
    config = get_config()
    if config.secret_key is not None:
        app.config["SECRET_KEY"] = config.secret_key
    else:
        app.logger.warning("secret_key not set, using a random secret")
        app.config["SECRET_KEY"] = secrets.token_hex()

    Babel(app, default_locale="en_GB", default_timezone="UTC")

    app.extensions[CMS_CLIENT_KEY] = CMSClient(config.cms_config())
    logger.info("reading posts from %s", config.cms_base_url)

    app.register_blueprint(blog_bp)

    app.jinja_env.globals["site_title"] = config.site_title
    app.jinja_env.globals["listing_url"] = listing_url

    def render_content(body: str) -> str:
        return render_rich_text(body, highlight=config.highlight_code)

    app.jinja_env.filters["render_content"] = render_content
    app.jinja_env.filters["html_to_text"] = html_to_text
    app.jinja_env.filters["published"] = format_published

    # typing for errorhandler is apparently tricky...
    # https://github.com/pallets/flask/blob/bd56d19b167822a9a23e2e9e2a07ccccc36baa8d/src/flask/typing.py#L49
    @app.errorhandler(exc.ChronicleException)
    def handle_chronicle_exceptions(e: exc.ChronicleException) -> FlaskResponse:
        try:
            message, http_code = EXCEPTION_MESSAGE_CODE_MAP[e.__class__]
        except KeyError:
            # An exception we don't have a canned response for - reraise it
            raise e
        return error_response(message, http_code)

    app.register_error_handler(404, handle_app_level_404_and_405)
    app.register_error_handler(405, handle_app_level_404_and_405)

    @app.after_request
    def set_default_cache_control(response: FlaskResponse) -> FlaskResponse:
        cc = response.cache_control
        if len(cc.values()) == 0:
            # nothing specific has been set, so set the default
            cc.no_store = True
        return response

    return app
