"""Planned expense use cases - budget listing, recording spend, manual rows, deletion"""
from datetime import date
from sqlalchemy.orm import Session

from offshore.application.materialization import linked_card_ids
from offshore.infrastructure.db.models import (
    BudgetModel, CardModel, CategoryModel, PlannedExpenseModel,
)
from offshore.utils.validation import parse_non_negative_amount


class PlannedExpenseValidationError(ValueError):
    pass


def get_planned_expense(db: Session, expense_id: int) -> PlannedExpenseModel:
    expense = db.query(PlannedExpenseModel).filter(PlannedExpenseModel.id == expense_id).first()
    if not expense:
        raise PlannedExpenseValidationError(f"Planned expense #{expense_id} not found")
    return expense


def budget_planned_expenses(db: Session, budget_id: int) -> list[PlannedExpenseModel]:
    """
    Generated planned expenses shown for a budget.

    Only rows inside the budget window whose card is currently linked to the
    budget, newest first. Rows without a card are not shown.
    """
    budget = db.query(BudgetModel).filter(BudgetModel.id == budget_id).first()
    if not budget:
        raise PlannedExpenseValidationError(f"Budget #{budget_id} not found")
    card_ids = linked_card_ids(db, budget_id)
    if not card_ids:
        return []

    return db.query(PlannedExpenseModel).filter(
        PlannedExpenseModel.source_budget_id == budget_id,
        PlannedExpenseModel.card_id.in_(card_ids),
        PlannedExpenseModel.expense_date >= budget.start_date,
        PlannedExpenseModel.expense_date <= budget.end_date,
    ).order_by(PlannedExpenseModel.expense_date.desc(), PlannedExpenseModel.id.desc()).all()


class RecordActualAmountUseCase:
    """Set the amount actually spent against a planned expense (0 makes it unspent again)."""
    def __init__(self, db: Session):
        self.db = db

    def execute(self, expense_id: int, actual_amount) -> None:
        expense = get_planned_expense(self.db, expense_id)
        try:
            expense.actual_amount = parse_non_negative_amount(actual_amount)
        except ValueError as e:
            raise PlannedExpenseValidationError(str(e)) from e
        self.db.commit()


class CreatePlannedExpenseUseCase:
    """Manual planned expense: no provenance, never touched by the guardrail."""
    def __init__(self, db: Session):
        self.db = db

    def execute(
        self,
        workspace_id: int,
        title: str,
        planned_amount,
        expense_date: date,
        card_id: int | None = None,
        category_id: int | None = None,
        actual_amount="0",
    ) -> int:
        title = (title or "").strip()
        if not title:
            raise PlannedExpenseValidationError("Title must not be empty")
        try:
            planned = parse_non_negative_amount(planned_amount)
            actual = parse_non_negative_amount(actual_amount)
        except ValueError as e:
            raise PlannedExpenseValidationError(str(e)) from e

        if card_id is not None:
            card = self.db.query(CardModel).filter(CardModel.id == card_id).first()
            if not card or card.workspace_id != workspace_id:
                raise PlannedExpenseValidationError(f"Card #{card_id} not found in workspace")
        if category_id is not None:
            cat = self.db.query(CategoryModel).filter(CategoryModel.id == category_id).first()
            if not cat or cat.workspace_id != workspace_id:
                raise PlannedExpenseValidationError(f"Category #{category_id} not found in workspace")

        expense = PlannedExpenseModel(
            workspace_id=workspace_id,
            title=title,
            planned_amount=planned,
            actual_amount=actual,
            expense_date=expense_date,
            card_id=card_id,
            category_id=category_id,
        )
        self.db.add(expense)
        self.db.flush()
        self.db.commit()
        return expense.id


class DeletePlannedExpenseUseCase:
    """Ordinary single-row deletion, e.g. from a guardrail review list."""
    def __init__(self, db: Session):
        self.db = db

    def execute(self, expense_id: int) -> None:
        expense = get_planned_expense(self.db, expense_id)
        self.db.delete(expense)
        self.db.commit()
