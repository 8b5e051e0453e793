import logging
import os
import re
from dataclasses import dataclass
from typing import Optional
from urllib.parse import quote, unquote, urlparse

import requests
from bs4 import BeautifulSoup

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT = 20
DIRECT = "{url}"
# Tender portals often block non-browser clients; the public relay is the fallback route.
DEFAULT_RELAYS = (DIRECT, "https://api.allorigins.win/raw?url={url}")
DEFAULT_FILENAME = "document.pdf"


def relay_templates() -> tuple[str, ...]:
    """Relay URL templates from LINK_RELAYS (comma-separated, "{url}" placeholder), primary first."""
    raw = os.getenv("LINK_RELAYS", "").strip()
    if not raw:
        return DEFAULT_RELAYS
    templates = tuple(t.strip() for t in raw.split(",") if "{url}" in t)
    return templates or DEFAULT_RELAYS


@dataclass
class FetchedResource:
    url: str
    content: bytes
    content_type: str
    filename: str

    @property
    def text(self) -> str:
        return self.content.decode("utf-8", errors="replace")


def filename_from_response(url: str, content_disposition: Optional[str]) -> str:
    if content_disposition:
        found = re.findall(r'filename\*?=(?:UTF-8\'\')?"?([^";]+)"?', content_disposition, flags=re.IGNORECASE)
        if found:
            return unquote(found[0]).strip() or DEFAULT_FILENAME
    last = urlparse(url).path.rstrip("/").split("/")[-1]
    return unquote(last) or DEFAULT_FILENAME


class HttpClient:
    """Fetches pages and files, trying each relay in order until one answers."""

    def __init__(self, relays: Optional[tuple[str, ...]] = None,
                 user_agent: str = "Mozilla/5.0 (compatible; LicitacionesBot/1.0)"):
        self.relays = relays or relay_templates()
        self.headers = {"User-Agent": user_agent}
        self.request_count = 0

    @staticmethod
    def _via(template: str, url: str) -> str:
        if template == DIRECT:
            return url
        return template.replace("{url}", quote(url, safe=""))

    def fetch(self, url: str) -> Optional[FetchedResource]:
        """GET url through the relay chain. None when every relay fails."""
        for template in self.relays:
            target = self._via(template, url)
            self.request_count += 1
            logger.info("Request #%s: fetching %s", self.request_count, target)
            try:
                response = requests.get(target, headers=self.headers, timeout=REQUEST_TIMEOUT)
                response.raise_for_status()
            except requests.exceptions.Timeout:
                logger.warning("Timeout fetching %s (timeout: %ss)", target, REQUEST_TIMEOUT)
                continue
            except requests.exceptions.HTTPError as e:
                logger.warning("HTTP error fetching %s: %s", target, e)
                continue
            except requests.exceptions.RequestException as e:
                logger.warning("Connection error fetching %s: %s", target, e)
                continue
            return FetchedResource(
                url=url,
                content=response.content,
                content_type=response.headers.get("content-type", ""),
                filename=filename_from_response(url, response.headers.get("content-disposition")),
            )
        return None

    def get_soup(self, url: str) -> Optional[BeautifulSoup]:
        """Fetch HTML from URL and return BeautifulSoup object."""
        resource = self.fetch(url)
        if resource is None:
            return None
        return BeautifulSoup(resource.text, "html.parser")
