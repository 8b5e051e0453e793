from enum import Enum
from typing import Optional


class TenderStatus(str, Enum):
    PENDING = "PENDING"
    IN_PROGRESS = "IN_PROGRESS"  # En trámite
    IN_DOUBT = "IN_DOUBT"  # En duda
    REJECTED = "REJECTED"  # Descartado
    ARCHIVED = "ARCHIVED"  # Archivado, manual only


class AnalysisDecision(str, Enum):
    KEEP = "KEEP"
    DISCARD = "DISCARD"
    REVIEW = "REVIEW"


_DECISION_TO_STATUS = {
    AnalysisDecision.KEEP: TenderStatus.IN_PROGRESS,
    AnalysisDecision.DISCARD: TenderStatus.REJECTED,
    AnalysisDecision.REVIEW: TenderStatus.IN_DOUBT,
}

STATUS_DISPLAY = {
    TenderStatus.PENDING: {"label": "PENDIENTE", "color": "neutral"},
    TenderStatus.IN_PROGRESS: {"label": "EN TRAMITE", "color": "lime"},
    TenderStatus.IN_DOUBT: {"label": "EN DUDA", "color": "amber"},
    TenderStatus.REJECTED: {"label": "DESCARTADO", "color": "red"},
    TenderStatus.ARCHIVED: {"label": "ARCHIVADO", "color": "purple"},
}

# Kanban columns, left to right. ARCHIVED only shows in the archive table.
BOARD_COLUMNS = (
    ("Pendientes", TenderStatus.PENDING),
    ("En Duda", TenderStatus.IN_DOUBT),
    ("En Trámite", TenderStatus.IN_PROGRESS),
    ("Descartados", TenderStatus.REJECTED),
)


def status_for_decision(decision: Optional[str]) -> TenderStatus:
    """Map an analysis decision to the tender's next status; unknown values fall back to PENDING."""
    if decision is None:
        return TenderStatus.PENDING
    try:
        return _DECISION_TO_STATUS[AnalysisDecision(str(decision).strip().upper())]
    except (ValueError, KeyError):
        return TenderStatus.PENDING
