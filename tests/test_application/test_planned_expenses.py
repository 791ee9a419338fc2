"""Tests for planned expense use cases - budget listing, actual amounts, manual rows."""
import pytest
from datetime import date
from decimal import Decimal

from offshore.application.materialization import MaterializationService
from offshore.application.planned_expenses import (
    CreatePlannedExpenseUseCase, RecordActualAmountUseCase, DeletePlannedExpenseUseCase,
    PlannedExpenseValidationError, budget_planned_expenses, get_planned_expense,
)


@pytest.fixture
def materialized(db_session, cal, cards, new_preset, new_budget):
    on_visa = new_preset(title="Rent", default_card_id=cards["visa"].id)
    no_card = new_preset(title="Gym", amount="40")
    budget = new_budget(end=date(2026, 3, 31), card_ids=[cards["visa"].id], preset_ids=[on_visa.id, no_card.id])
    MaterializationService(db_session, cal).materialize_linked(budget)
    return budget


class TestBudgetListing:
    def test_linked_cards_only_newest_first(self, db_session, materialized):
        rows = budget_planned_expenses(db_session, materialized.id)
        assert [r.expense_date for r in rows] == [date(2026, 3, 15), date(2026, 2, 15), date(2026, 1, 15)]
        assert {r.title for r in rows} == {"Rent"}

    def test_manual_rows_not_listed(self, db_session, workspace, cards, materialized):
        CreatePlannedExpenseUseCase(db_session).execute(
            workspace_id=workspace.id, title="Dinner", planned_amount="60",
            expense_date=date(2026, 1, 20), card_id=cards["visa"].id,
        )
        assert len(budget_planned_expenses(db_session, materialized.id)) == 3

    def test_no_linked_cards(self, db_session, new_budget):
        assert budget_planned_expenses(db_session, new_budget().id) == []

    def test_unknown_budget(self, db_session):
        with pytest.raises(PlannedExpenseValidationError, match="not found"):
            budget_planned_expenses(db_session, 999)


class TestRecordActual:
    def test_record_and_effective_amount(self, db_session, materialized):
        row = budget_planned_expenses(db_session, materialized.id)[0]
        assert row.effective_amount == Decimal("1200")

        RecordActualAmountUseCase(db_session).execute(row.id, "1180,25")

        row = get_planned_expense(db_session, row.id)
        assert row.is_recorded
        assert row.effective_amount == Decimal("1180.25")

    def test_zero_makes_row_unspent_again(self, db_session, materialized):
        row_id = budget_planned_expenses(db_session, materialized.id)[0].id
        RecordActualAmountUseCase(db_session).execute(row_id, "10")
        RecordActualAmountUseCase(db_session).execute(row_id, "0")
        assert not get_planned_expense(db_session, row_id).is_recorded

    def test_negative_rejected(self, db_session, materialized):
        row_id = budget_planned_expenses(db_session, materialized.id)[0].id
        with pytest.raises(PlannedExpenseValidationError, match="negative"):
            RecordActualAmountUseCase(db_session).execute(row_id, "-5")


class TestManual:
    def test_manual_has_no_provenance(self, db_session, workspace, category):
        eid = CreatePlannedExpenseUseCase(db_session).execute(
            workspace_id=workspace.id, title="Concert", planned_amount="80",
            expense_date=date(2026, 5, 2), category_id=category.id,
        )
        expense = get_planned_expense(db_session, eid)
        assert not expense.is_generated
        assert expense.source_budget_id is None
        assert expense.source_preset_id is None

    def test_card_from_other_workspace_rejected(self, db_session, workspace):
        with pytest.raises(PlannedExpenseValidationError, match="Card #9"):
            CreatePlannedExpenseUseCase(db_session).execute(
                workspace_id=workspace.id, title="X", planned_amount="1",
                expense_date=date(2026, 5, 2), card_id=9,
            )

    def test_delete(self, db_session, workspace):
        eid = CreatePlannedExpenseUseCase(db_session).execute(
            workspace_id=workspace.id, title="X", planned_amount="1", expense_date=date(2026, 5, 2),
        )
        DeletePlannedExpenseUseCase(db_session).execute(eid)
        with pytest.raises(PlannedExpenseValidationError):
            get_planned_expense(db_session, eid)
