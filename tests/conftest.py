from logging import DEBUG, basicConfig
from unittest.mock import patch

import pytest
import requests_mock

from chronicle.web.app import init_app
from chronicle.config import get_config

from .utils import TEST_CMS_URL


@pytest.fixture(scope="session")
def app():
    config = get_config()
    with patch.object(config, "cms_base_url", TEST_CMS_URL), patch.object(
        config, "cms_cache_ttl_seconds", 0
    ):
        a = init_app()
    a.config["TESTING"] = True

    # Set explicitly here to avoid accidentally entering debug mode during
    # tests due to environment variables.
    a.config["DEBUG"] = False
    return a


@pytest.fixture(scope="function")
def requests_mocker():
    with requests_mock.Mocker() as m:
        yield m


@pytest.fixture(scope="session")
def configure_logging():
    basicConfig(level=DEBUG)
