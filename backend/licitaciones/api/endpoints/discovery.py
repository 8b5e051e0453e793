"""Document discovery for the creation form: scan a summary file or a tender page for the PCAP/PPT."""
import logging

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile

from licitaciones.api.deps import get_store, http_error, read_upload
from licitaciones.errors import LicitacionesError
from licitaciones.schemas.tender import DiscoveryResult, ScrapeRequest
from licitaciones.services.tender_store import TenderStore

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/tenders", tags=["discovery"])


@router.post("/discover", response_model=DiscoveryResult)
async def discover_from_summary(
    file: UploadFile = File(..., alias="summaryFile"),
    store: TenderStore = Depends(get_store),
):
    """Extract the tender fields from a summary document and look for its PCAP/PPT links."""
    summary = await read_upload(file)
    if summary is None:
        raise HTTPException(status_code=400, detail="Se requiere un documento de resumen.")
    logger.info("discover: file=%s, %s bytes", summary.filename, len(summary.content))
    try:
        return await store.discover_from_summary(summary)
    except LicitacionesError as e:
        raise http_error(e) from e


@router.post("/scrape", response_model=DiscoveryResult)
async def scrape_tender_page(payload: ScrapeRequest, store: TenderStore = Depends(get_store)):
    """Manual scan of the tender's web page."""
    url = payload.url.strip()
    if not url.startswith(("http://", "https://")):
        raise HTTPException(status_code=400, detail="La URL debe empezar por http:// o https://")
    return await store.scrape_tender_page(url)
