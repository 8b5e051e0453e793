import logging
from typing import Literal, Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile
from pydantic import ValidationError

from licitaciones.api.deps import get_store, http_error, read_upload
from licitaciones.errors import LicitacionesError
from licitaciones.models.status import TenderStatus
from licitaciones.schemas.tender import BoardResponse, TenderCreate, TenderRecord, TenderStatusUpdate
from licitaciones.services.tender_store import TenderStore

router = APIRouter(prefix="/tenders", tags=["tenders"])
logger = logging.getLogger(__name__)


@router.get("", response_model=list[TenderRecord])
def list_tenders(
    expedient: str = Query(""),
    name: str = Query(""),
    status: Optional[TenderStatus] = Query(None),
    sort: Literal["asc", "desc"] = Query("asc"),
    store: TenderStore = Depends(get_store),
):
    """Archive view: every tender (archived included) filtered by expedient/name/status, sorted by deadline."""
    return store.archive_view(expedient=expedient, name=name, status=status, sort=sort)


@router.get("/board", response_model=BoardResponse)
def get_board(store: TenderStore = Depends(get_store)):
    """Kanban columns: pending, in doubt, in progress, rejected."""
    return BoardResponse(columns=store.board(), analyzing_ids=sorted(store.analyzing_ids))


@router.post("", response_model=TenderRecord)
async def create_tender(
    name: str = Form(...),
    budget: Optional[str] = Form(None),
    scoring_system: Optional[str] = Form(None, alias="scoringSystem"),
    expedient_number: Optional[str] = Form(None, alias="expedientNumber"),
    deadline: Optional[str] = Form(None),
    tender_page_url: Optional[str] = Form(None, alias="tenderPageUrl"),
    admin_url: Optional[str] = Form(None, alias="adminUrl"),
    tech_url: Optional[str] = Form(None, alias="techUrl"),
    summary_file: Optional[UploadFile] = File(None, alias="summaryFile"),
    admin_file: Optional[UploadFile] = File(None, alias="adminFile"),
    tech_file: Optional[UploadFile] = File(None, alias="techFile"),
    store: TenderStore = Depends(get_store),
):
    """Register a tender. Uploaded files take precedence over the adminUrl/techUrl links for their slot."""
    try:
        draft = TenderCreate(
            name=name,
            budget=budget or None,
            scoring_system=scoring_system or None,
            expedient_number=expedient_number or None,
            deadline=deadline or None,
            tender_page_url=tender_page_url or None,
            admin_url=admin_url or None,
            tech_url=tech_url or None,
        )
    except ValidationError as e:
        raise HTTPException(status_code=422, detail="El título del expediente es obligatorio.") from e
    summary = await read_upload(summary_file)
    admin = await read_upload(admin_file)
    tech = await read_upload(tech_file)
    try:
        return await store.create_tender(draft, summary=summary, admin=admin, tech=tech)
    except LicitacionesError as e:
        raise http_error(e) from e


@router.get("/{tender_id}", response_model=TenderRecord)
def get_tender(tender_id: str, store: TenderStore = Depends(get_store)):
    try:
        return store.get(tender_id)
    except LicitacionesError as e:
        raise http_error(e) from e


@router.patch("/{tender_id}/status", response_model=TenderRecord)
async def update_tender_status(
    tender_id: str,
    payload: TenderStatusUpdate,
    store: TenderStore = Depends(get_store),
):
    """Manual status override. Any status, including ARCHIVED, at any time."""
    try:
        return await store.set_status(tender_id, payload.status)
    except LicitacionesError as e:
        raise http_error(e) from e


@router.post("/{tender_id}/analyze", response_model=TenderRecord)
async def analyze_tender(tender_id: str, store: TenderStore = Depends(get_store)):
    """Run the AI Go/No-Go analysis; the decision moves the tender to its new column."""
    logger.info("analyze: tender_id=%s, starting", tender_id)
    try:
        tender = await store.analyze(tender_id)
    except LicitacionesError as e:
        raise http_error(e) from e
    logger.info("analyze: tender_id=%s, done status=%s", tender_id, tender.status.value)
    return tender


@router.delete("/{tender_id}")
async def delete_tender(tender_id: str, store: TenderStore = Depends(get_store)):
    """Delete the tender's stored documents, then the tender."""
    try:
        await store.delete(tender_id)
    except LicitacionesError as e:
        raise http_error(e) from e
    return {"status": "ok", "id": tender_id}
