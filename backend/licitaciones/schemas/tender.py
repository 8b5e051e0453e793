import json
import logging
from typing import Any, List, Optional

from pydantic import BaseModel, ValidationError, field_validator

from licitaciones.models.status import TenderStatus
from licitaciones.schemas.analysis import AnalysisResult, TenderMetadata
from licitaciones.schemas.base import CamelModel

logger = logging.getLogger(__name__)


def safe_analysis(value: Any) -> Optional[AnalysisResult]:
    """Validate a stored analysis payload; one that no longer fits the schema is dropped."""
    if value is None or isinstance(value, AnalysisResult):
        return value
    try:
        return AnalysisResult.model_validate(value)
    except ValidationError as e:
        logger.warning("Stored analysis does not match schema, dropping it: %s", e)
        return None


class TenderBase(CamelModel):
    name: str
    budget: Optional[str] = None
    scoring_system: Optional[str] = None
    expedient_number: Optional[str] = None
    deadline: Optional[str] = None
    tender_page_url: Optional[str] = None


class TenderCreate(TenderBase):
    # External links discovered for the PCAP/PPT, used when no file is uploaded for that slot
    admin_url: Optional[str] = None
    tech_url: Optional[str] = None

    @field_validator("name")
    @classmethod
    def name_required(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("name is required")
        return v.strip()


class TenderRecord(TenderBase):
    id: str
    summary_url: Optional[str] = None
    admin_url: Optional[str] = None
    tech_url: Optional[str] = None
    status: TenderStatus = TenderStatus.PENDING
    ai_analysis: Optional[AnalysisResult] = None
    created_at: int

    @field_validator("ai_analysis", mode="before")
    @classmethod
    def parse_json_analysis(cls, v: Any) -> Any:
        if isinstance(v, str):
            try:
                v = json.loads(v)
            except (TypeError, json.JSONDecodeError):
                logger.warning("Stored ai_analysis is not valid JSON, ignoring it")
                return None
        if isinstance(v, dict):
            return safe_analysis(v)
        return v if isinstance(v, AnalysisResult) else None

    def identity_key(self) -> tuple[str, str]:
        return duplicate_key(self.expedient_number, self.name)


def duplicate_key(expedient_number: Optional[str], name: Optional[str]) -> tuple[str, str]:
    """(expedient number, name) trimmed and lower-cased: two tenders with the same key are duplicates."""
    return (expedient_number or "").strip().lower(), (name or "").strip().lower()


class TenderStatusUpdate(BaseModel):
    status: TenderStatus


class StatusInfo(CamelModel):
    status: TenderStatus
    label: str
    color: str


class BoardColumn(CamelModel):
    title: str
    status: TenderStatus
    count: int
    items: List[TenderRecord] = []


class BusinessRulesBody(CamelModel):
    content: str


class SystemPromptPreview(CamelModel):
    prompt: str


class ScrapeRequest(CamelModel):
    url: str


class DiscoveredDocument(CamelModel):
    url: str
    filename: str
    category: str


class DiscoveryResult(CamelModel):
    """What the creation form gets back after scanning a summary file or a tender page."""
    metadata: TenderMetadata = TenderMetadata()
    tender_page_url: Optional[str] = None
    candidates: List[str] = []
    admin: Optional[DiscoveredDocument] = None
    tech: Optional[DiscoveredDocument] = None
    logs: List[str] = []


class BoardResponse(CamelModel):
    columns: List[BoardColumn]
    analyzing_ids: List[str] = []  # tenders with an analysis in flight (card spinner)
