"""
Keyword heuristic that tells a PCAP (administrative clauses) from a PPT (technical specs)
by looking at a file name and the URL it came from. Best effort: a wrong guess is not an error.
"""
import unicodedata
from enum import Enum


class DocumentCategory(str, Enum):
    ADMIN = "ADMIN"
    TECH = "TECH"
    UNKNOWN = "UNKNOWN"


ADMIN_KEYWORDS = ("pcap", "admin", "clausula", "juridico", "caratula", "bases", "anexo")
TECH_KEYWORDS = ("ppt", "tecnic", "prescrip", "memoria", "proyecto")


def normalize_text(text: str) -> str:
    """Lower-case and strip diacritics ("Cláusulas" -> "clausulas")."""
    decomposed = unicodedata.normalize("NFKD", text or "")
    return "".join(c for c in decomposed if not unicodedata.combining(c)).lower()


def classify_text(text: str) -> DocumentCategory:
    normalized = normalize_text(text)
    # ADMIN is tested first: a name matching both sets is ADMIN
    if any(k in normalized for k in ADMIN_KEYWORDS):
        return DocumentCategory.ADMIN
    if any(k in normalized for k in TECH_KEYWORDS):
        return DocumentCategory.TECH
    return DocumentCategory.UNKNOWN


def classify(filename: str, url: str = "") -> DocumentCategory:
    return classify_text(f"{filename or ''} {url or ''}")
