"""
Planned expense API endpoints
"""
from datetime import date

from fastapi import APIRouter, Depends
from pydantic import BaseModel, field_validator
from sqlalchemy.orm import Session

from offshore.api.deps import get_db, raise_for
from offshore.application.planned_expenses import (
    CreatePlannedExpenseUseCase, RecordActualAmountUseCase, DeletePlannedExpenseUseCase,
    PlannedExpenseValidationError, get_planned_expense,
)
from offshore.domain.guardrail import GuardrailResult
from offshore.infrastructure.db.models import PlannedExpenseModel
from offshore.utils.validation import amount_field


router = APIRouter(prefix="/api/v1/planned-expenses", tags=["planned-expenses"])


# === Request/Response models ===

class CreatePlannedExpenseRequest(BaseModel):
    workspace_id: int
    title: str
    planned_amount: str
    expense_date: date
    actual_amount: str = "0"
    card_id: int | None = None
    category_id: int | None = None

    @field_validator("planned_amount", "actual_amount")
    @classmethod
    def validate_amount(cls, v: str) -> str:
        """Decimal comma or dot, at most 2 places, not negative"""
        return amount_field(v)


class RecordActualRequest(BaseModel):
    actual_amount: str

    @field_validator("actual_amount")
    @classmethod
    def validate_amount(cls, v: str) -> str:
        return amount_field(v)


class PlannedExpenseResponse(BaseModel):
    id: int
    title: str
    planned_amount: str  # Decimal as string
    actual_amount: str
    effective_amount: str
    expense_date: date
    card_id: int | None
    category_id: int | None
    source_preset_id: int | None
    source_budget_id: int | None
    is_generated: bool


class GuardrailResponse(BaseModel):
    target: str
    outcome: str  # quiet / confirm_then_purge / review_required / scan_failed
    completed: bool
    needs_confirmation: bool
    needs_review: bool
    deleted_unspent: int
    recorded: list[PlannedExpenseResponse]
    detached_preset_ids: list[int]


def to_response(e: PlannedExpenseModel) -> PlannedExpenseResponse:
    return PlannedExpenseResponse(
        id=e.id,
        title=e.title,
        planned_amount=str(e.planned_amount),
        actual_amount=str(e.actual_amount),
        effective_amount=str(e.effective_amount),
        expense_date=e.expense_date,
        card_id=e.card_id,
        category_id=e.category_id,
        source_preset_id=e.source_preset_id,
        source_budget_id=e.source_budget_id,
        is_generated=e.is_generated,
    )


def guardrail_response(result: GuardrailResult) -> GuardrailResponse:
    return GuardrailResponse(
        target=result.target,
        outcome=result.outcome,
        completed=result.completed,
        needs_confirmation=result.needs_confirmation,
        needs_review=result.needs_review,
        deleted_unspent=result.deleted_unspent,
        recorded=[to_response(e) for e in result.recorded],
        detached_preset_ids=list(result.detached_preset_ids),
    )


# === Endpoints ===

@router.post("", response_model=PlannedExpenseResponse)
def create_planned_expense(req: CreatePlannedExpenseRequest, db: Session = Depends(get_db)):
    """Create a manual planned expense"""
    try:
        expense_id = CreatePlannedExpenseUseCase(db).execute(
            workspace_id=req.workspace_id,
            title=req.title,
            planned_amount=req.planned_amount,
            expense_date=req.expense_date,
            card_id=req.card_id,
            category_id=req.category_id,
            actual_amount=req.actual_amount,
        )
        return to_response(get_planned_expense(db, expense_id))
    except PlannedExpenseValidationError as e:
        raise_for(e)


@router.get("/{expense_id}", response_model=PlannedExpenseResponse)
def read_planned_expense(expense_id: int, db: Session = Depends(get_db)):
    try:
        return to_response(get_planned_expense(db, expense_id))
    except PlannedExpenseValidationError as e:
        raise_for(e)


@router.patch("/{expense_id}", response_model=PlannedExpenseResponse)
def record_actual_amount(expense_id: int, req: RecordActualRequest, db: Session = Depends(get_db)):
    """Record what was actually spent"""
    try:
        RecordActualAmountUseCase(db).execute(expense_id, req.actual_amount)
        return to_response(get_planned_expense(db, expense_id))
    except PlannedExpenseValidationError as e:
        raise_for(e)


@router.delete("/{expense_id}")
def delete_planned_expense(expense_id: int, db: Session = Depends(get_db)):
    try:
        DeletePlannedExpenseUseCase(db).execute(expense_id)
    except PlannedExpenseValidationError as e:
        raise_for(e)
    return {"status": "deleted"}
