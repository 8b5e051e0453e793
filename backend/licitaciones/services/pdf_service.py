import logging

import fitz  # PyMuPDF

logger = logging.getLogger(__name__)


def open_pdf(content: bytes):
    return fitz.open(stream=content, filetype="pdf")


def extract_text_from_pdf(content: bytes) -> str:
    """
    Extract the text of every page of an in-memory PDF.
    Returns extracted text or empty string on error.
    """
    try:
        doc = open_pdf(content)
        parts = []
        for page in doc:
            parts.append(page.get_text())
        doc.close()
        return "\n".join(parts).strip()
    except Exception as e:
        logger.warning("Could not read PDF text: %s", e)
        return ""


def is_pdf(filename: str, content_type: str | None, content: bytes) -> bool:
    if content[:5] == b"%PDF-":
        return True
    if content_type and "pdf" in content_type.lower():
        return True
    return (filename or "").lower().endswith(".pdf")
