"""
Best-effort discovery of document links, from a PDF (link annotations + URL-looking text)
and from a tender web page (anchors). The sources are uncontrolled third-party documents:
false positives and misses are expected; errors are never raised to the caller.
"""
import logging
import re
from dataclasses import dataclass, field
from typing import Optional
from urllib.parse import urljoin, urlparse

from licitaciones.services.document_classifier import DocumentCategory, classify_text, normalize_text
from licitaciones.services.http_client import HttpClient
from licitaciones.services.pdf_service import open_pdf

logger = logging.getLogger(__name__)

DOCUMENT_EXTENSIONS = (".pdf", ".doc", ".docx", ".odt", ".zip", ".rar", ".7z", ".xls", ".xlsx")
DISCOVERY_KEYWORDS = ("descarga", "pliego", "doc")

_URL_PATTERN = re.compile(
    r"(?:https?://|www\.)[^\s<>\"'{}|\\^`\[\]]+"
    r"|\b[a-z0-9][a-z0-9.-]*\.(?:es|com|org|net|eu|gob|gov)/[^\s<>\"'{}|\\^`\[\]]*",
    re.IGNORECASE,
)
_TRAILING_PUNCTUATION = ".,;:!?)('\""


def normalize_url(raw: str) -> Optional[str]:
    url = (raw or "").strip().rstrip(_TRAILING_PUNCTUATION)
    if not url:
        return None
    if url.lower().startswith("www."):
        return "https://" + url
    if not re.match(r"^[a-z][a-z0-9+.-]*:", url, flags=re.IGNORECASE):
        return "https://" + url
    return url


def extract_urls_from_text(text: str) -> list[str]:
    out = []
    for match in _URL_PATTERN.finditer(text or ""):
        url = normalize_url(match.group(0))
        if url and url not in out:
            out.append(url)
    return out


def extract_links_from_pdf(content: bytes) -> list[str]:
    """Link annotations and URL-shaped text of every page, de-duplicated in reading order. [] if unreadable."""
    links: list[str] = []
    try:
        doc = open_pdf(content)
        try:
            for page in doc:
                for link in page.get_links():
                    uri = link.get("uri")
                    if uri and uri not in links:
                        links.append(uri)
                for url in extract_urls_from_text(page.get_text()):
                    if url not in links:
                        links.append(url)
        finally:
            doc.close()
    except Exception as e:
        logger.warning("Could not scan PDF for links: %s", e)
        return []
    logger.info("PDF scanned: %s links", len(links))
    return links


@dataclass
class WebScrapeResult:
    candidates: list[str] = field(default_factory=list)
    admin_url: Optional[str] = None
    tech_url: Optional[str] = None

    def all_urls(self) -> list[str]:
        urls = list(self.candidates)
        for preferred in (self.admin_url, self.tech_url):
            if preferred and preferred not in urls:
                urls.append(preferred)
        return urls


def has_document_extension(url: str) -> bool:
    return urlparse(url).path.lower().endswith(DOCUMENT_EXTENSIONS)


def scrape_docs_from_web(page_url: str, http_client: Optional[HttpClient] = None) -> WebScrapeResult:
    """Collect candidate document links from a tender page plus the first PCAP-like and PPT-like anchors."""
    result = WebScrapeResult()
    if not page_url:
        return result
    client = http_client or HttpClient()
    soup = client.get_soup(page_url)
    if soup is None:
        logger.warning("Tender page %s could not be fetched", page_url)
        return result

    for anchor in soup.find_all("a", href=True):
        href = anchor["href"].strip()
        if not href or href.startswith(("#", "javascript:")):
            continue
        url = urljoin(page_url, href)
        label = " ".join(
            part for part in (
                anchor.get_text(" ", strip=True),
                anchor.get("title") or "",
                anchor.get("aria-label") or "",
                href,
            ) if part
        )
        normalized = normalize_text(label)
        if has_document_extension(url) or any(k in normalized for k in DISCOVERY_KEYWORDS):
            if url not in result.candidates:
                result.candidates.append(url)

        category = classify_text(label)
        if category == DocumentCategory.ADMIN and result.admin_url is None:
            result.admin_url = url
        elif category == DocumentCategory.TECH and result.tech_url is None:
            result.tech_url = url

    logger.info(
        "Scraped %s: %s candidates, admin=%s, tech=%s",
        page_url, len(result.candidates), result.admin_url, result.tech_url,
    )
    return result
