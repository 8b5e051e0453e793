import logging

from fastapi import HTTPException, Request, UploadFile

from licitaciones.errors import (
    ConfigurationError,
    AIServiceError,
    DuplicateTenderError,
    LicitacionesError,
    PersistenceError,
    TenderBusyError,
    TenderNotFoundError,
)
from licitaciones.services.file_service import PendingDocument
from licitaciones.services.tender_store import TenderStore

logger = logging.getLogger(__name__)

_STATUS_CODES = (
    (TenderNotFoundError, 404),
    (DuplicateTenderError, 409),
    (TenderBusyError, 409),
    (ConfigurationError, 503),
    (AIServiceError, 502),
    (PersistenceError, 500),
)


def get_store(request: Request) -> TenderStore:
    """The process-wide store, or 503 when startup could not reach the database."""
    error = getattr(request.app.state, "connection_error", None)
    store = getattr(request.app.state, "store", None)
    if error or store is None:
        raise HTTPException(status_code=503, detail=error or "La aplicación aún no está lista.")
    return store


def http_error(exc: LicitacionesError) -> HTTPException:
    for error_type, status_code in _STATUS_CODES:
        if isinstance(exc, error_type):
            break
    else:
        status_code = 500
    if isinstance(exc, AIServiceError):
        detail = "Error al analizar el pliego."
        logger.warning("AI service error: %s", exc)
    else:
        detail = str(exc)
    return HTTPException(status_code=status_code, detail=detail)


async def read_upload(upload: UploadFile | None) -> PendingDocument | None:
    if upload is None or not upload.filename:
        return None
    content = await upload.read()
    if not content:
        return None
    return PendingDocument(
        filename=upload.filename,
        content=content,
        content_type=upload.content_type or "application/octet-stream",
    )
