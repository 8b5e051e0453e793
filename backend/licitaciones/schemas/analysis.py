import logging
from typing import Any, List, Literal, Optional

from pydantic import ValidationError, field_validator

from licitaciones.models.status import AnalysisDecision
from licitaciones.schemas.base import CamelModel

logger = logging.getLogger(__name__)


class EconomicTerms(CamelModel):
    budget: Optional[str] = None
    model: Optional[str] = None
    basis: Optional[str] = None


class Scope(CamelModel):
    objective: Optional[str] = None
    deliverables: List[str] = []


class Resources(CamelModel):
    duration: Optional[str] = None
    team: Optional[str] = None
    dedication: Optional[str] = None


class Solvency(CamelModel):
    certifications: Optional[str] = None
    specific_solvency: Optional[str] = None
    penalties: Optional[str] = None


class Strategy(CamelModel):
    valuation_criteria: Optional[str] = None
    angle: Optional[str] = None


class ScoringSubCriterion(CamelModel):
    label: str
    weight: float
    category: Literal["PRICE", "FORMULA", "VALUE"]


class Scoring(CamelModel):
    # price + formula + value nominally add up to 100
    price_weight: Optional[float] = None
    formula_weight: Optional[float] = None
    value_weight: Optional[float] = None
    details: Optional[str] = None
    sub_criteria: List[ScoringSubCriterion] = []


class RegistrationTask(CamelModel):
    task: str
    description: Optional[str] = None
    completed: bool = False


class AnalysisResult(CamelModel):
    decision: Optional[AnalysisDecision] = None
    summary_reasoning: Optional[str] = None
    economic: EconomicTerms = EconomicTerms()
    scope: Scope = Scope()
    resources: Resources = Resources()
    solvency: Solvency = Solvency()
    strategy: Strategy = Strategy()
    scoring: Scoring = Scoring()
    registration_checklist: List[RegistrationTask] = []

    @field_validator("decision", mode="before")
    @classmethod
    def normalize_decision(cls, v: Any) -> Optional[str]:
        if v is None:
            return None
        value = str(v).strip().upper()
        return value if value in AnalysisDecision.__members__ else None

    @classmethod
    def from_llm(cls, raw: Any) -> "AnalysisResult":
        """
        Build a result from untrusted model output, section by section.
        A malformed section (or list item) is replaced by its default instead of failing the whole result.
        """
        if not isinstance(raw, dict):
            logger.warning("Analysis payload is not an object (%s), using defaults", type(raw).__name__)
            return cls()
        data = {
            "decision": raw.get("decision"),
            "summary_reasoning": _as_text(raw.get("summaryReasoning", raw.get("summary_reasoning"))),
        }
        for name, model in (
            ("economic", EconomicTerms),
            ("scope", Scope),
            ("resources", Resources),
            ("solvency", Solvency),
            ("strategy", Strategy),
        ):
            data[name] = _section(model, raw.get(name))

        scoring_raw = raw.get("scoring") if isinstance(raw.get("scoring"), dict) else {}
        sub_criteria = _items(ScoringSubCriterion, scoring_raw.get("subCriteria", scoring_raw.get("sub_criteria")))
        scoring = _section(Scoring, {k: v for k, v in scoring_raw.items() if k not in ("subCriteria", "sub_criteria")})
        data["scoring"] = scoring.model_copy(update={"sub_criteria": sub_criteria})

        data["registration_checklist"] = _items(
            RegistrationTask, raw.get("registrationChecklist", raw.get("registration_checklist"))
        )
        return cls.model_validate(data)


class TenderMetadata(CamelModel):
    """Fields the AI pulls out of a tender summary document. Only the name is expected; all may be missing."""
    name: Optional[str] = None
    budget: Optional[str] = None
    scoring_system: Optional[str] = None
    expedient_number: Optional[str] = None
    deadline: Optional[str] = None
    tender_page_url: Optional[str] = None
    admin_url: Optional[str] = None
    tech_url: Optional[str] = None
    all_links: List[str] = []

    @field_validator(
        "name", "budget", "scoring_system", "expedient_number", "deadline",
        "tender_page_url", "admin_url", "tech_url",
        mode="before",
    )
    @classmethod
    def stringify(cls, v: Any) -> Optional[str]:
        return _as_text(v)

    @field_validator("all_links", mode="before")
    @classmethod
    def keep_string_links(cls, v: Any) -> List[str]:
        if not isinstance(v, list):
            return []
        return [s.strip() for s in v if isinstance(s, str) and s.strip()]

    @classmethod
    def from_llm(cls, raw: Any) -> "TenderMetadata":
        if not isinstance(raw, dict):
            return cls()
        try:
            return cls.model_validate(raw)
        except ValidationError as e:
            logger.warning("Discarding malformed metadata payload: %s", e)
            return cls()


def _as_text(v: Any) -> Optional[str]:
    if v is None or isinstance(v, (dict, list)):
        return None
    s = str(v).strip()
    return s or None


def _section(model, value):
    if not isinstance(value, dict):
        return model()
    try:
        return model.model_validate(value)
    except ValidationError as e:
        logger.warning("Analysis section %s malformed, using defaults: %s", model.__name__, e)
        return model()


def _items(model, values) -> list:
    if not isinstance(values, list):
        return []
    out = []
    for v in values:
        if not isinstance(v, dict):
            continue
        try:
            out.append(model.model_validate(v))
        except ValidationError:
            logger.debug("Dropping malformed %s item: %r", model.__name__, v)
    return out
