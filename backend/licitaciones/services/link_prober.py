import asyncio
import logging
from dataclasses import dataclass
from typing import Iterable, Optional
from urllib.parse import urlparse

from licitaciones.services.document_classifier import DocumentCategory, classify
from licitaciones.services.http_client import FetchedResource, HttpClient

logger = logging.getLogger(__name__)

PROBE_BATCH_SIZE = 4
# Anything smaller is a redirect/error page, not a tender document
MIN_DOCUMENT_BYTES = 1024
SKIPPED_SCHEMES = ("mailto:", "tel:", "javascript:")
# Registrable domains that never serve tender documents; subdomains included
SKIPPED_DOMAINS = (
    "google.com", "google.es", "facebook.com", "twitter.com", "x.com", "linkedin.com",
    "youtube.com", "youtu.be", "instagram.com", "wikipedia.org", "whatsapp.com", "wa.me", "t.me",
)
SKIPPED_HOST_PREFIXES = ("maps.",)


@dataclass
class ProbedDocument:
    url: str
    filename: str
    content: bytes
    content_type: str
    category: DocumentCategory


@dataclass
class ProbeResult:
    admin: Optional[ProbedDocument] = None
    tech: Optional[ProbedDocument] = None

    @property
    def is_complete(self) -> bool:
        return self.admin is not None and self.tech is not None

    def fill(self, documents: Iterable[ProbedDocument]) -> None:
        """
        Assign one batch of downloads to the two slots, in input order:
        first ADMIN and first TECH win their slot, UNKNOWN files then take whatever slot is left (ADMIN first).
        """
        unknown = []
        for doc in documents:
            if doc.category == DocumentCategory.ADMIN:
                if self.admin is None:
                    self.admin = doc
            elif doc.category == DocumentCategory.TECH:
                if self.tech is None:
                    self.tech = doc
            else:
                unknown.append(doc)
        for doc in unknown:
            if self.admin is None:
                self.admin = doc
            elif self.tech is None:
                self.tech = doc


def dedupe(urls: Iterable[str]) -> list[str]:
    out = []
    for url in urls:
        url = (url or "").strip()
        if url and url not in out:
            out.append(url)
    return out


def is_probe_candidate(url: str) -> bool:
    """False for links that are never documents: mail/phone links, social, maps and video hosts."""
    lowered = url.lower()
    if lowered.startswith(SKIPPED_SCHEMES):
        return False
    host = urlparse(lowered).hostname
    if not host:
        return False
    if host.startswith(SKIPPED_HOST_PREFIXES):
        return False
    return not any(host == domain or host.endswith("." + domain) for domain in SKIPPED_DOMAINS)


def looks_like_document(resource: FetchedResource) -> bool:
    if len(resource.content) < MIN_DOCUMENT_BYTES:
        return False
    if "text/html" in (resource.content_type or "").lower():
        return False
    head = resource.content[:512].lstrip().lower()
    return not head.startswith((b"<!doctype", b"<html"))


def probe_link(url: str, http_client: HttpClient) -> Optional[ProbedDocument]:
    """Download one candidate and classify it; None when skipped, unreachable or not a document."""
    if not is_probe_candidate(url):
        logger.debug("Skipping non-document link %s", url)
        return None
    resource = http_client.fetch(url)
    if resource is None:
        return None
    if not looks_like_document(resource):
        logger.info("Discarding %s: HTML or too small (%s bytes)", url, len(resource.content))
        return None
    category = classify(resource.filename, url)
    return ProbedDocument(
        url=url,
        filename=resource.filename,
        content=resource.content,
        content_type=resource.content_type,
        category=category,
    )


async def probe_links_in_batches(
    urls: Iterable[str],
    http_client: Optional[HttpClient] = None,
    batch_size: int = PROBE_BATCH_SIZE,
) -> ProbeResult:
    """
    Resolve at most one PCAP and one PPT from candidate URLs.
    Batches run one after another, links inside a batch concurrently; stops once both slots are filled.
    A failing link is logged and ignored, so the result may be empty but this never raises for a link.
    """
    client = http_client or HttpClient()
    candidates = dedupe(urls)
    result = ProbeResult()
    for start in range(0, len(candidates), batch_size):
        batch = candidates[start:start + batch_size]
        logger.info("Probing batch %s (%s links)", start // batch_size + 1, len(batch))
        outcomes = await asyncio.gather(
            *(asyncio.to_thread(probe_link, url, client) for url in batch),
            return_exceptions=True,
        )
        documents = []
        for url, outcome in zip(batch, outcomes):
            if isinstance(outcome, Exception):
                logger.warning("Probe of %s failed: %s", url, outcome)
            elif outcome is not None:
                documents.append(outcome)
        result.fill(documents)
        if result.is_complete:
            break
    logger.info(
        "Probe finished: admin=%s tech=%s",
        result.admin.url if result.admin else None,
        result.tech.url if result.tech else None,
    )
    return result
