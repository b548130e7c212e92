from logging import getLogger
from pathlib import Path
from typing import Optional
from dataclasses import dataclass

import toml

logger = getLogger(__name__)

DEFAULT_CMS_BASE_URL = "http://localhost:1337/api"


@dataclass
class CMSConfig:
    """What the CMS client needs to know, and nothing else."""

    base_url: str
    auth_token: Optional[str] = None
    cache_ttl_seconds: int = 60


@dataclass
class Config:
    """A typecheckable config object.

    In order to keep the benefits of typechecking, don't pass this into places
    where the typechecker can't find it - ie: jinja templates.

    """

    environment: str
    secret_key: Optional[str]
    sentry_dsn: Optional[str]

    cms_base_url: str
    cms_auth_token: Optional[str]
    cms_cache_ttl_seconds: int = 60

    highlight_code: bool = True
    site_title: str = "The Backend Chronicles"

    # how many posts are pulled from the CMS to filter and paginate in memory
    listing_fetch_size: int = 1000
    archive_fetch_size: int = 100

    def cms_config(self) -> CMSConfig:
        return CMSConfig(
            base_url=self.cms_base_url,
            auth_token=self.cms_auth_token,
            cache_ttl_seconds=self.cms_cache_ttl_seconds,
        )


__config__: Optional[Config] = None


def load_config(config_file: Path) -> Config:
    """Loads the configuration at the given path.

    Currently this doesn't really validate the config - but that is planned.

    """
    logger.info("loading config from %s", config_file)
    if config_file.exists():
        with open(config_file, encoding="utf-8") as config_f:
            as_dict = toml.load(config_f)
    else:
        logger.warning("config file ('%s') not found, using defaults", config_file)
        as_dict = {}
    return Config(
        environment=as_dict.get("environment", "local"),
        secret_key=as_dict.get("secret_key"),
        sentry_dsn=as_dict.get("sentry_dsn"),
        cms_base_url=as_dict.get("cms_base_url", DEFAULT_CMS_BASE_URL).rstrip("/"),
        cms_auth_token=as_dict.get("cms_auth_token"),
        cms_cache_ttl_seconds=as_dict.get("cms_cache_ttl_seconds", 60),
        highlight_code=as_dict.get("highlight_code", True),
        site_title=as_dict.get("site_title", "The Backend Chronicles"),
        listing_fetch_size=as_dict.get("listing_fetch_size", 1000),
        archive_fetch_size=as_dict.get("archive_fetch_size", 100),
    )


def default_config_file() -> Path:
    """Returns the location of the default config file"""
    return Path.home() / ".chronicle.toml"


def get_config() -> Config:
    """Returns the config.

    The the config does not change while the program is running, but in order
    to make it easy to test, don't call this function from the top-level (that
    makes it hard to mock).

    """
    global __config__
    if __config__ is None:
        __config__ = load_config(default_config_file())

    return __config__
