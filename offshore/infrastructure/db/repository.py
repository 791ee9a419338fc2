"""
Planned expense persistence store.

Query helpers over planned_expenses scoped by provenance, card and spend state.
Read failures surface as StoreReadError, except for the existence check used
by materialization, which fails soft to "absent".
"""
import logging
from datetime import date

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from offshore.infrastructure.db.models import PlannedExpenseModel


logger = logging.getLogger(__name__)


class StoreReadError(Exception):
    pass


class PlannedExpenseRepository:
    def __init__(self, db: Session):
        self.db = db

    def _generated_query(
        self,
        budget_id: int | None = None,
        preset_id: int | None = None,
        card_id: int | None = None,
        recorded: bool | None = None,
    ):
        q = self.db.query(PlannedExpenseModel).filter(
            PlannedExpenseModel.source_budget_id.isnot(None),
            PlannedExpenseModel.source_preset_id.isnot(None),
        )
        if budget_id is not None:
            q = q.filter(PlannedExpenseModel.source_budget_id == budget_id)
        if preset_id is not None:
            q = q.filter(PlannedExpenseModel.source_preset_id == preset_id)
        if card_id is not None:
            q = q.filter(PlannedExpenseModel.card_id == card_id)
        if recorded is True:
            q = q.filter(PlannedExpenseModel.actual_amount > 0)
        elif recorded is False:
            q = q.filter(PlannedExpenseModel.actual_amount == 0)
        return q

    def exists(self, budget_id: int, preset_id: int, expense_date: date) -> bool:
        """Existence check for one (budget, preset, day) key. A read failure counts as absent."""
        try:
            return self.db.query(PlannedExpenseModel.id).filter(
                PlannedExpenseModel.source_budget_id == budget_id,
                PlannedExpenseModel.source_preset_id == preset_id,
                PlannedExpenseModel.expense_date == expense_date,
            ).first() is not None
        except SQLAlchemyError:
            logger.warning(
                "Existence check failed for budget=%s preset=%s date=%s, treating as absent",
                budget_id, preset_id, expense_date, exc_info=True,
            )
            return False

    def fetch_generated(self, **scope) -> list[PlannedExpenseModel]:
        try:
            return self._generated_query(**scope).order_by(
                PlannedExpenseModel.expense_date, PlannedExpenseModel.id
            ).all()
        except SQLAlchemyError as e:
            logger.warning("Generated planned expense scan failed for %s", scope, exc_info=True)
            raise StoreReadError(str(e)) from e

    def count_generated(self, **scope) -> int:
        try:
            return self._generated_query(**scope).count()
        except SQLAlchemyError as e:
            logger.warning("Generated planned expense count failed for %s", scope, exc_info=True)
            raise StoreReadError(str(e)) from e

    def create(self, **fields) -> PlannedExpenseModel:
        expense = PlannedExpenseModel(**fields)
        self.db.add(expense)
        self.db.flush()
        return expense

    def delete(self, expense: PlannedExpenseModel) -> None:
        self.db.delete(expense)

    def delete_many(self, expenses) -> int:
        n = 0
        for e in expenses:
            self.db.delete(e)
            n += 1
        return n
