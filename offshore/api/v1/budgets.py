"""
Budget API endpoints - budgets, their card/preset links and the unlink/delete guardrail
"""
from datetime import date

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sqlalchemy.orm import Session

from offshore.api.deps import get_db, get_calendar, get_app_settings, raise_for
from offshore.api.v1.planned_expenses import (
    PlannedExpenseResponse, GuardrailResponse, to_response, guardrail_response,
)
from offshore.application.budgets import (
    CreateBudgetUseCase, UpdateBudgetUseCase, BudgetValidationError, get_budget, list_budgets,
)
from offshore.application.guardrail import LinkGuardrail, GuardrailError
from offshore.application.links import (
    LinkCardUseCase, LinkPresetUseCase, LinkValidationError, get_budget_links,
)
from offshore.application.materialization import MaterializationService
from offshore.application.planned_expenses import PlannedExpenseValidationError, budget_planned_expenses
from offshore.config import Settings
from offshore.domain.calendar import CalendarProvider
from offshore.domain.guardrail import TARGET_UNLINK_CARD, TARGET_UNLINK_PRESET, TARGET_DELETE_BUDGET
from offshore.infrastructure.db.models import BudgetModel


router = APIRouter(prefix="/api/v1/budgets", tags=["budgets"])

RESOLUTION_KEEP = "keep"
RESOLUTION_FORCE = "force"
BUDGET_TARGETS = (TARGET_UNLINK_CARD, TARGET_UNLINK_PRESET, TARGET_DELETE_BUDGET)


# === Request/Response models ===

class CreateBudgetRequest(BaseModel):
    workspace_id: int
    name: str
    start_date: date
    end_date: date
    card_ids: list[int] = []
    preset_ids: list[int] = []


class UpdateBudgetRequest(BaseModel):
    name: str | None = None
    start_date: date | None = None
    end_date: date | None = None
    card_ids: list[int] | None = None  # replaces the selection when given
    preset_ids: list[int] | None = None


class BudgetResponse(BaseModel):
    id: int
    workspace_id: int
    name: str
    start_date: date
    end_date: date


class BudgetCreatedResponse(BudgetResponse):
    materialized: int


class ReconcileResponse(BaseModel):
    deleted: int
    created: int
    kept: list[PlannedExpenseResponse]


class BudgetLinksResponse(BaseModel):
    budget_id: int
    card_ids: list[int]
    preset_ids: list[int]
    purged: int


def _budget_response(b: BudgetModel) -> BudgetResponse:
    return BudgetResponse(
        id=b.id, workspace_id=b.workspace_id, name=b.name,
        start_date=b.start_date, end_date=b.end_date,
    )


def _check_resolution(resolution: str | None) -> None:
    if resolution not in (None, RESOLUTION_KEEP, RESOLUTION_FORCE):
        raise HTTPException(status_code=400, detail=f"Invalid resolution: {resolution}")


def _confirm_setting(value: bool | None, settings: Settings) -> bool:
    return settings.CONFIRM_BEFORE_DELETING if value is None else value


# === Budgets ===

@router.post("", response_model=BudgetCreatedResponse)
def create_budget(
    req: CreateBudgetRequest,
    db: Session = Depends(get_db),
    cal: CalendarProvider = Depends(get_calendar),
):
    """Create a budget, link the selected cards/presets and materialize"""
    try:
        created = CreateBudgetUseCase(db, cal).execute(
            workspace_id=req.workspace_id,
            name=req.name,
            start_date=req.start_date,
            end_date=req.end_date,
            card_ids=req.card_ids,
            preset_ids=req.preset_ids,
        )
    except BudgetValidationError as e:
        raise_for(e)

    budget = get_budget(db, created.budget_id)
    return BudgetCreatedResponse(**_budget_response(budget).model_dump(), materialized=created.materialized)


@router.get("", response_model=list[BudgetResponse])
def list_workspace_budgets(workspace_id: int, db: Session = Depends(get_db)):
    return [_budget_response(b) for b in list_budgets(db, workspace_id)]


@router.get("/{budget_id}", response_model=BudgetResponse)
def read_budget(budget_id: int, db: Session = Depends(get_db)):
    try:
        return _budget_response(get_budget(db, budget_id))
    except BudgetValidationError as e:
        raise_for(e)


@router.patch("/{budget_id}", response_model=ReconcileResponse)
def update_budget(
    budget_id: int,
    req: UpdateBudgetRequest,
    db: Session = Depends(get_db),
    cal: CalendarProvider = Depends(get_calendar),
):
    """Edit a budget and reconcile its generated planned expenses"""
    try:
        result = UpdateBudgetUseCase(db, cal).execute(
            budget_id,
            name=req.name,
            start_date=req.start_date,
            end_date=req.end_date,
            card_ids=req.card_ids,
            preset_ids=req.preset_ids,
        )
    except BudgetValidationError as e:
        raise_for(e)
    return ReconcileResponse(
        deleted=result.deleted,
        created=result.created,
        kept=[to_response(e) for e in result.kept],
    )


@router.post("/{budget_id}/materialize")
def materialize_budget(
    budget_id: int,
    db: Session = Depends(get_db),
    cal: CalendarProvider = Depends(get_calendar),
):
    """Re-run materialization for every linked preset (idempotent)"""
    try:
        budget = get_budget(db, budget_id)
    except BudgetValidationError as e:
        raise_for(e)
    created = MaterializationService(db, cal).materialize_linked(budget)
    return {"created": created}


@router.delete("/{budget_id}", response_model=GuardrailResponse)
def delete_budget(
    budget_id: int,
    confirmed: bool = False,
    confirm_before_deleting: bool | None = None,
    resolution: str | None = None,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
):
    """
    Delete a budget through the guardrail.

    resolution=keep aborts a pending review, resolution=force deletes the
    budget together with recorded rows.
    """
    _check_resolution(resolution)
    guard = LinkGuardrail(db)
    try:
        if resolution == RESOLUTION_KEEP:
            result = guard.keep(TARGET_DELETE_BUDGET, budget_id=budget_id)
        elif resolution == RESOLUTION_FORCE:
            result = guard.delete_budget_anyway(budget_id)
        else:
            result = guard.delete_budget(
                budget_id,
                confirm_before_deleting=_confirm_setting(confirm_before_deleting, settings),
                confirmed=confirmed,
            )
    except GuardrailError as e:
        raise_for(e)
    return guardrail_response(result)


@router.get("/{budget_id}/guardrail", response_model=GuardrailResponse)
def preview_guardrail(
    budget_id: int,
    target: str,
    card_id: int | None = None,
    preset_id: int | None = None,
    db: Session = Depends(get_db),
):
    """What an unlink/delete would do right now, without touching anything"""
    if target not in BUDGET_TARGETS:
        raise HTTPException(status_code=400, detail=f"Not a budget guardrail target: {target}")
    try:
        get_budget(db, budget_id)
    except BudgetValidationError as e:
        raise_for(e)
    try:
        result = LinkGuardrail(db).preview(target, budget_id=budget_id, card_id=card_id, preset_id=preset_id)
    except GuardrailError as e:
        raise_for(e)
    return guardrail_response(result)


@router.get("/{budget_id}/planned-expenses", response_model=list[PlannedExpenseResponse])
def list_budget_planned_expenses(budget_id: int, db: Session = Depends(get_db)):
    """Generated planned expenses on linked cards inside the window, newest first"""
    try:
        rows = budget_planned_expenses(db, budget_id)
    except PlannedExpenseValidationError as e:
        raise_for(e)
    return [to_response(e) for e in rows]


# === Links ===

@router.get("/{budget_id}/links", response_model=BudgetLinksResponse)
def read_budget_links(budget_id: int, db: Session = Depends(get_db)):
    """Linked cards and presets; dangling links are swept first"""
    try:
        links = get_budget_links(db, budget_id)
    except LinkValidationError as e:
        raise_for(e)
    return BudgetLinksResponse(
        budget_id=links.budget_id,
        card_ids=links.card_ids,
        preset_ids=links.preset_ids,
        purged=links.purged,
    )


@router.put("/{budget_id}/presets/{preset_id}")
def link_preset(
    budget_id: int,
    preset_id: int,
    db: Session = Depends(get_db),
    cal: CalendarProvider = Depends(get_calendar),
):
    try:
        created = LinkPresetUseCase(db, cal).execute(budget_id, preset_id)
    except LinkValidationError as e:
        raise_for(e)
    return {"status": "linked", "created": created}


@router.delete("/{budget_id}/presets/{preset_id}", response_model=GuardrailResponse)
def unlink_preset(
    budget_id: int,
    preset_id: int,
    confirmed: bool = False,
    confirm_before_deleting: bool | None = None,
    resolution: str | None = None,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
):
    _check_resolution(resolution)
    guard = LinkGuardrail(db)
    try:
        if resolution == RESOLUTION_KEEP:
            result = guard.keep(TARGET_UNLINK_PRESET, budget_id=budget_id, preset_id=preset_id)
        elif resolution == RESOLUTION_FORCE:
            result = guard.force_unlink_preset(budget_id, preset_id)
        else:
            result = guard.unlink_preset(
                budget_id, preset_id,
                confirm_before_deleting=_confirm_setting(confirm_before_deleting, settings),
                confirmed=confirmed,
            )
    except GuardrailError as e:
        raise_for(e)
    return guardrail_response(result)


@router.put("/{budget_id}/cards/{card_id}")
def link_card(
    budget_id: int,
    card_id: int,
    db: Session = Depends(get_db),
    cal: CalendarProvider = Depends(get_calendar),
):
    try:
        created = LinkCardUseCase(db, cal).execute(budget_id, card_id)
    except LinkValidationError as e:
        raise_for(e)
    return {"status": "linked", "created": created}


@router.delete("/{budget_id}/cards/{card_id}", response_model=GuardrailResponse)
def unlink_card(
    budget_id: int,
    card_id: int,
    confirmed: bool = False,
    confirm_before_deleting: bool | None = None,
    detach_presets: bool = False,
    resolution: str | None = None,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
):
    """
    Unlink a card through the guardrail.

    detach_presets=true also unlinks the presets whose generated rows were on this card.
    """
    _check_resolution(resolution)
    guard = LinkGuardrail(db)
    try:
        if resolution == RESOLUTION_KEEP:
            result = guard.keep(TARGET_UNLINK_CARD, budget_id=budget_id, card_id=card_id)
        elif resolution == RESOLUTION_FORCE:
            result = guard.force_unlink_card(budget_id, card_id, detach_presets=detach_presets)
        else:
            result = guard.unlink_card(
                budget_id, card_id,
                confirm_before_deleting=_confirm_setting(confirm_before_deleting, settings),
                confirmed=confirmed,
                detach_presets=detach_presets,
            )
    except GuardrailError as e:
        raise_for(e)
    return guardrail_response(result)
