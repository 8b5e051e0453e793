import logging
import mimetypes
import os
import re
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from licitaciones.services.document_classifier import normalize_text

logger = logging.getLogger(__name__)

UPLOAD_DIR = Path(os.getenv("UPLOAD_DIR", "data/uploads"))
PUBLIC_BASE_URL = os.getenv("PUBLIC_BASE_URL", "http://localhost:8000").rstrip("/")
STATIC_PREFIX = "/static"

# document slot -> storage folder
SLOT_FOLDERS = {"summary": "summaries", "admin": "admin", "tech": "tech"}


@dataclass
class PendingDocument:
    """A document held in memory before it is uploaded (or after it is read back for analysis)."""
    filename: str
    content: bytes
    content_type: str = "application/octet-stream"


def ensure_upload_dir(root: Path = UPLOAD_DIR) -> Path:
    root.mkdir(parents=True, exist_ok=True)
    return root


def sanitize_filename(name: str) -> str:
    base = normalize_text(Path(name or "").name)
    cleaned = re.sub(r"[^a-z0-9._-]+", "_", base).strip("._")
    return cleaned or "document"


class ObjectStorage:
    """
    Flat bucket on the local filesystem, one folder per document slot.
    Objects are served by the app under /static, and the public URL is what tenders store.
    """

    def __init__(self, root: Path = UPLOAD_DIR, public_base_url: str = PUBLIC_BASE_URL):
        self.root = Path(root)
        self.public_base_url = public_base_url.rstrip("/")

    @property
    def url_prefix(self) -> str:
        return f"{self.public_base_url}{STATIC_PREFIX}/"

    def public_url(self, key: str) -> str:
        return f"{self.url_prefix}{key}"

    def key_for_url(self, url: Optional[str]) -> Optional[str]:
        """Object key behind one of our public URLs; None for external links."""
        if not url or not url.startswith(self.url_prefix):
            return None
        key = url[len(self.url_prefix):]
        if not key or ".." in Path(key).parts:
            return None
        return key

    def owns(self, url: Optional[str]) -> bool:
        return self.key_for_url(url) is not None

    def upload(self, slot: str, document: PendingDocument) -> str:
        """Store the document under <folder>/<epoch ms>_<sanitized name> and return its public URL."""
        folder = SLOT_FOLDERS[slot]
        key = f"{folder}/{int(time.time() * 1000)}_{sanitize_filename(document.filename)}"
        path = self.root / key
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "wb") as f:
            f.write(document.content)
        logger.info("Stored %s (%s bytes) as %s", document.filename, len(document.content), key)
        return self.public_url(key)

    def read(self, url: str) -> Optional[PendingDocument]:
        key = self.key_for_url(url)
        if key is None:
            return None
        path = self.root / key
        if not path.is_file():
            logger.warning("Stored object %s is missing", key)
            return None
        content_type = mimetypes.guess_type(path.name)[0] or "application/octet-stream"
        return PendingDocument(filename=path.name, content=path.read_bytes(), content_type=content_type)

    def delete(self, url: Optional[str]) -> bool:
        """Remove the object behind url. External links and missing objects are left alone (False)."""
        key = self.key_for_url(url)
        if key is None:
            return False
        path = self.root / key
        if not path.is_file():
            return False
        path.unlink()
        logger.info("Deleted stored object %s", key)
        return True
