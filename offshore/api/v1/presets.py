"""
Preset API endpoints
"""
from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, field_validator
from sqlalchemy.orm import Session

from offshore.api.deps import get_db, get_app_settings, raise_for
from offshore.api.v1.planned_expenses import GuardrailResponse, guardrail_response
from offshore.application.guardrail import LinkGuardrail, GuardrailError
from offshore.application.presets import (
    CreatePresetUseCase, UpdatePresetUseCase, ArchivePresetUseCase, UnarchivePresetUseCase,
    PresetValidationError, get_preset, list_presets,
)
from offshore.config import Settings
from offshore.domain.guardrail import TARGET_DELETE_PRESET
from offshore.infrastructure.db.models import PresetModel
from offshore.utils.validation import amount_field


router = APIRouter(prefix="/api/v1/presets", tags=["presets"])


# === Request/Response models ===

class CreatePresetRequest(BaseModel):
    workspace_id: int
    title: str
    planned_amount: str
    frequency: str = "monthly"  # none, daily, weekly, monthly, yearly
    interval: int = 1
    weekly_weekday: int = 6
    monthly_day_of_month: int = 15
    monthly_is_last_day: bool = False
    yearly_month: int = 1
    yearly_day_of_month: int = 15
    default_card_id: int | None = None
    default_category_id: int | None = None

    @field_validator("planned_amount")
    @classmethod
    def validate_amount(cls, v: str) -> str:
        return amount_field(v)


class UpdatePresetRequest(BaseModel):
    title: str | None = None
    planned_amount: str | None = None
    frequency: str | None = None
    interval: int | None = None
    weekly_weekday: int | None = None
    monthly_day_of_month: int | None = None
    monthly_is_last_day: bool | None = None
    yearly_month: int | None = None
    yearly_day_of_month: int | None = None
    default_card_id: int | None = None
    default_category_id: int | None = None

    @field_validator("planned_amount")
    @classmethod
    def validate_amount(cls, v: str | None) -> str | None:
        return amount_field(v)


class PresetResponse(BaseModel):
    id: int
    workspace_id: int
    title: str
    planned_amount: str  # Decimal as string
    frequency: str
    interval: int
    weekly_weekday: int
    monthly_day_of_month: int
    monthly_is_last_day: bool
    yearly_month: int
    yearly_day_of_month: int
    default_card_id: int | None
    default_category_id: int | None
    is_archived: bool


def _to_response(p: PresetModel) -> PresetResponse:
    return PresetResponse(
        id=p.id,
        workspace_id=p.workspace_id,
        title=p.title,
        planned_amount=str(p.planned_amount),
        frequency=p.frequency,
        interval=p.interval,
        weekly_weekday=p.weekly_weekday,
        monthly_day_of_month=p.monthly_day_of_month,
        monthly_is_last_day=p.monthly_is_last_day,
        yearly_month=p.yearly_month,
        yearly_day_of_month=p.yearly_day_of_month,
        default_card_id=p.default_card_id,
        default_category_id=p.default_category_id,
        is_archived=p.is_archived,
    )


# === Endpoints ===

@router.post("", response_model=PresetResponse)
def create_preset(req: CreatePresetRequest, db: Session = Depends(get_db)):
    try:
        preset_id = CreatePresetUseCase(db).execute(**req.model_dump())
    except PresetValidationError as e:
        raise_for(e)
    return _to_response(get_preset(db, preset_id))


@router.get("", response_model=list[PresetResponse])
def list_workspace_presets(workspace_id: int, include_archived: bool = False, db: Session = Depends(get_db)):
    return [_to_response(p) for p in list_presets(db, workspace_id, include_archived=include_archived)]


@router.get("/{preset_id}", response_model=PresetResponse)
def read_preset(preset_id: int, db: Session = Depends(get_db)):
    try:
        return _to_response(get_preset(db, preset_id))
    except PresetValidationError as e:
        raise_for(e)


@router.patch("/{preset_id}", response_model=PresetResponse)
def update_preset(preset_id: int, req: UpdatePresetRequest, db: Session = Depends(get_db)):
    """Partial update; already generated planned expenses are left as they are"""
    # null only means "clear" for the nullable defaults
    changes = {
        k: v for k, v in req.model_dump(exclude_unset=True).items()
        if v is not None or k in ("default_card_id", "default_category_id")
    }
    try:
        UpdatePresetUseCase(db).execute(preset_id, **changes)
        return _to_response(get_preset(db, preset_id))
    except PresetValidationError as e:
        raise_for(e)


@router.post("/{preset_id}/archive")
def archive_preset(preset_id: int, db: Session = Depends(get_db)):
    try:
        ArchivePresetUseCase(db).execute(preset_id)
    except PresetValidationError as e:
        raise_for(e)
    return {"status": "archived"}


@router.post("/{preset_id}/unarchive")
def unarchive_preset(preset_id: int, db: Session = Depends(get_db)):
    try:
        UnarchivePresetUseCase(db).execute(preset_id)
    except PresetValidationError as e:
        raise_for(e)
    return {"status": "unarchived"}


@router.delete("/{preset_id}", response_model=GuardrailResponse)
def delete_preset(
    preset_id: int,
    confirmed: bool = False,
    confirm_before_deleting: bool | None = None,
    resolution: str | None = None,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
):
    """Delete a preset and its generated rows in every budget, through the guardrail"""
    if resolution not in (None, "keep", "force"):
        raise HTTPException(status_code=400, detail=f"Invalid resolution: {resolution}")
    if confirm_before_deleting is None:
        confirm_before_deleting = settings.CONFIRM_BEFORE_DELETING

    guard = LinkGuardrail(db)
    try:
        if resolution == "keep":
            result = guard.keep(TARGET_DELETE_PRESET, preset_id=preset_id)
        elif resolution == "force":
            result = guard.delete_preset_anyway(preset_id)
        else:
            result = guard.delete_preset(
                preset_id, confirm_before_deleting=confirm_before_deleting, confirmed=confirmed,
            )
    except GuardrailError as e:
        raise_for(e)
    return guardrail_response(result)
