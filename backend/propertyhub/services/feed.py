import logging

import requests

from propertyhub.core.errors import FeedError

logger = logging.getLogger(__name__)

FEED_HEADERS = {
    "User-Agent": "Mozilla/5.0 (compatible; PropertyHub feed proxy)",
    "Accept": "application/xml, text/xml, */*",
    "Accept-Language": "en-US,en;q=0.9",
}


def fetch_xml_feed(url: str, timeout: float = 30, session: requests.Session | None = None) -> str:
    """Return the upstream feed body unchanged."""
    http = session or requests
    try:
        response = http.get(url, headers=FEED_HEADERS, timeout=timeout)
    except requests.RequestException as exc:
        logger.error("XML feed request failed: %s", exc)
        raise FeedError(f"Feed request failed: {exc}") from exc

    if not response.ok:
        logger.error("XML feed returned HTTP %s", response.status_code)
        raise FeedError(f"HTTP error! status: {response.status_code}")
    return response.text
