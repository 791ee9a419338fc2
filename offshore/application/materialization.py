"""
Materialization Service - turns preset occurrences into planned expenses.

Called after creating a budget, linking a preset or linking a card. Uses the
recurrence engine to compute dates inside the budget window, then inserts the
missing (budget, preset, day) rows. Idempotent: existing keys are skipped, so
re-running after a partial failure never duplicates.
"""
import logging
from dataclasses import dataclass, field

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from offshore.domain.calendar import CalendarProvider
from offshore.domain.provenance import Generated, provenance_to_columns
from offshore.domain.recurrence import RecurrenceRule, iter_occurrences
from offshore.infrastructure.db.models import (
    BudgetModel, PresetModel, CardModel, BudgetCardLink, BudgetPresetLink,
)
from offshore.infrastructure.db.repository import PlannedExpenseRepository, StoreReadError


logger = logging.getLogger(__name__)


@dataclass
class ReconcileResult:
    deleted: int = 0
    created: int = 0
    kept: list = field(default_factory=list)  # recorded rows that no longer match the budget


def linked_card_ids(db: Session, budget_id: int) -> set[int]:
    """Cards currently linked to the budget (dangling links excluded)."""
    rows = db.query(BudgetCardLink.card_id).join(
        CardModel, CardModel.id == BudgetCardLink.card_id
    ).filter(BudgetCardLink.budget_id == budget_id).all()
    return {r.card_id for r in rows}


def linked_presets(db: Session, budget_id: int) -> list[PresetModel]:
    """Presets currently linked to the budget (dangling links excluded)."""
    return db.query(PresetModel).join(
        BudgetPresetLink, BudgetPresetLink.preset_id == PresetModel.id
    ).filter(BudgetPresetLink.budget_id == budget_id).order_by(PresetModel.id).all()


class MaterializationService:
    def __init__(self, db: Session, cal: CalendarProvider | None = None):
        self.db = db
        self.cal = cal or CalendarProvider.from_settings()
        self.repo = PlannedExpenseRepository(db)

    def materialize(self, budget: BudgetModel, presets: list[PresetModel], eligible_card_ids: set[int]) -> int:
        """Create missing generated planned expenses. Returns count of new rows."""
        window_start = self.cal.start_of_day(budget.start_date)
        window_end = self.cal.start_of_day(budget.end_date)
        count = 0

        for preset in presets:
            if preset.is_archived:
                continue

            rule = RecurrenceRule.from_preset(preset)
            source_preset_id, source_budget_id = provenance_to_columns(Generated(preset.id, budget.id))
            for d in iter_occurrences(rule, window_start, window_end, self.cal):
                if self.repo.exists(budget.id, preset.id, d):
                    continue

                # Re-evaluated per occurrence against the cards linked right now
                card_id = preset.default_card_id if preset.default_card_id in eligible_card_ids else None
                try:
                    with self.db.begin_nested():
                        self.repo.create(
                            workspace_id=budget.workspace_id,
                            title=preset.title,
                            planned_amount=preset.planned_amount,
                            actual_amount=0,
                            expense_date=d,
                            card_id=card_id,
                            category_id=preset.default_category_id,
                            source_preset_id=source_preset_id,
                            source_budget_id=source_budget_id,
                        )
                except SQLAlchemyError:
                    logger.exception(
                        "Failed to materialize budget=%s preset=%s date=%s, skipping",
                        budget.id, preset.id, d,
                    )
                    continue
                count += 1

        if count > 0:
            self.db.commit()
            logger.info("Materialized %d planned expense(s) into budget %s", count, budget.id)
        return count

    def materialize_linked(self, budget: BudgetModel) -> int:
        """Materialize every preset linked to the budget against its linked cards."""
        return self.materialize(
            budget,
            linked_presets(self.db, budget.id),
            linked_card_ids(self.db, budget.id),
        )

    def reconcile(self, budget: BudgetModel) -> ReconcileResult:
        """
        Bring generated rows in line with an edited budget.

        Rows outside the window, from presets no longer linked, or attributed
        to cards no longer linked are removed when unspent; recorded ones are
        kept and reported. Missing occurrences are then materialized.
        """
        window_start = self.cal.start_of_day(budget.start_date)
        window_end = self.cal.start_of_day(budget.end_date)
        preset_ids = {p.id for p in linked_presets(self.db, budget.id)}
        card_ids = linked_card_ids(self.db, budget.id)

        result = ReconcileResult()
        try:
            rows = self.repo.fetch_generated(budget_id=budget.id)
        except StoreReadError:
            rows = []

        for row in rows:
            in_window = window_start <= row.expense_date <= window_end
            preset_linked = row.source_preset_id in preset_ids
            card_linked = row.card_id is None or row.card_id in card_ids
            if in_window and preset_linked and card_linked:
                continue
            if row.is_recorded:
                result.kept.append(row)
            else:
                self.repo.delete(row)
                result.deleted += 1

        if result.deleted:
            self.db.commit()
        result.created = self.materialize_linked(budget)
        logger.info(
            "Reconciled budget %s: deleted=%d created=%d kept=%d",
            budget.id, result.deleted, result.created, len(result.kept),
        )
        return result
