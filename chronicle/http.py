"""The shared outbound HTTP session."""

import requests

from .version import get_version

# Wait about 6s to connect, 24 secs for first byte
BASIC_TIMEOUT = (6.1, 24)

http_sesh = requests.Session()
http_sesh.headers.update({"User-Agent": f"chronicle/{get_version()}"})
