from logging import getLogger

import sentry_sdk
from sentry_sdk.integrations.flask import FlaskIntegration

from .config import get_config
from .version import get_version

logger = getLogger(__name__)


def configure_sentry():
    config = get_config()
    version = get_version()
    if config.sentry_dsn is not None:
        sentry_sdk.init(
            dsn=config.sentry_dsn,
            environment=config.environment,
            release=version,
            in_app_include=["chronicle"],
            integrations=[FlaskIntegration()],
        )
        logger.info(
            "sentry initialised (environment: '%s', release: '%s')",
            config.environment,
            version,
        )
    else:
        logger.info("sentry not initialised - dsn not set")
