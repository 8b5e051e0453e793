from fastapi import APIRouter, Depends

from licitaciones.api.deps import get_store, http_error
from licitaciones.errors import LicitacionesError
from licitaciones.models.status import STATUS_DISPLAY
from licitaciones.schemas.tender import BusinessRulesBody, StatusInfo, SystemPromptPreview
from licitaciones.services.ai_service import build_analysis_system_prompt
from licitaciones.services.tender_store import TenderStore

router = APIRouter(tags=["rules"])


@router.get("/rules", response_model=BusinessRulesBody)
def get_rules(store: TenderStore = Depends(get_store)):
    return BusinessRulesBody(content=store.rules)


@router.put("/rules", response_model=BusinessRulesBody)
async def update_rules(payload: BusinessRulesBody, store: TenderStore = Depends(get_store)):
    """Replace the business rules. Saved on every edit; there is one version only."""
    try:
        content = await store.update_rules(payload.content)
    except LicitacionesError as e:
        raise http_error(e) from e
    return BusinessRulesBody(content=content)


@router.get("/rules/prompt", response_model=SystemPromptPreview)
def preview_system_prompt(store: TenderStore = Depends(get_store)):
    """The system instruction the analysis will use with the current rules."""
    return SystemPromptPreview(prompt=build_analysis_system_prompt(store.rules))


@router.get("/statuses", response_model=list[StatusInfo])
def list_statuses():
    return [StatusInfo(status=status, **display) for status, display in STATUS_DISPLAY.items()]
