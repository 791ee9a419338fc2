"""Tests for the link lifecycle guardrail - unlink card/preset, delete budget/preset."""
import pytest
from datetime import date
from decimal import Decimal

from offshore.application.guardrail import LinkGuardrail, GuardrailError
from offshore.application.materialization import MaterializationService
from offshore.domain.guardrail import (
    OUTCOME_QUIET, OUTCOME_CONFIRM_THEN_PURGE, OUTCOME_REVIEW_REQUIRED, OUTCOME_SCAN_FAILED,
    TARGET_UNLINK_CARD, TARGET_UNLINK_PRESET, TARGET_DELETE_BUDGET, TARGET_DELETE_PRESET,
)
from offshore.infrastructure.db.models import (
    BudgetModel, PresetModel, BudgetCardLink, BudgetPresetLink, PlannedExpenseModel,
)
from offshore.infrastructure.db.repository import PlannedExpenseRepository, StoreReadError


def _generated(db, budget_id=None, preset_id=None):
    q = db.query(PlannedExpenseModel).filter(PlannedExpenseModel.source_budget_id.isnot(None))
    if budget_id is not None:
        q = q.filter(PlannedExpenseModel.source_budget_id == budget_id)
    if preset_id is not None:
        q = q.filter(PlannedExpenseModel.source_preset_id == preset_id)
    return q.order_by(PlannedExpenseModel.expense_date).all()


def _preset_linked(db, budget_id, preset_id):
    return db.query(BudgetPresetLink).filter(
        BudgetPresetLink.budget_id == budget_id, BudgetPresetLink.preset_id == preset_id,
    ).first() is not None


def _card_linked(db, budget_id, card_id):
    return db.query(BudgetCardLink).filter(
        BudgetCardLink.budget_id == budget_id, BudgetCardLink.card_id == card_id,
    ).first() is not None


@pytest.fixture
def setup(db_session, cal, cards, new_preset, new_budget):
    """Budget Jan-Mar 2026 with preset P (15th, on visa) materialized: 3 unspent rows."""
    preset = new_preset(default_card_id=cards["visa"].id)
    budget = new_budget(
        end=date(2026, 3, 31),
        card_ids=[cards["visa"].id, cards["amex"].id],
        preset_ids=[preset.id],
    )
    MaterializationService(db_session, cal).materialize_linked(budget)
    return budget, preset


def _record(db, budget_id, index, amount="20"):
    row = _generated(db, budget_id)[index]
    row.actual_amount = Decimal(amount)
    db.commit()
    return row.id


# ======================================================================
# 1. Unlink preset
# ======================================================================

class TestUnlinkPreset:
    def test_one_recorded_row_goes_to_review(self, db_session, setup):
        budget, preset = setup
        recorded_id = _record(db_session, budget.id, 1)

        result = LinkGuardrail(db_session).unlink_preset(budget.id, preset.id)

        assert result.outcome == OUTCOME_REVIEW_REQUIRED
        assert result.needs_review
        assert [r.id for r in result.recorded] == [recorded_id]
        assert result.deleted_unspent == 2
        assert [r.id for r in _generated(db_session, budget.id)] == [recorded_id]
        # Structural removal waits for the review
        assert _preset_linked(db_session, budget.id, preset.id)

    def test_no_rows_is_quiet(self, db_session, setup, new_preset):
        budget, _ = setup
        idle = new_preset(title="Idle", frequency="none")
        db_session.add(BudgetPresetLink(budget_id=budget.id, preset_id=idle.id))
        db_session.commit()

        result = LinkGuardrail(db_session).unlink_preset(budget.id, idle.id)

        assert result.outcome == OUTCOME_QUIET
        assert result.completed
        assert not _preset_linked(db_session, budget.id, idle.id)

    def test_unspent_rows_wait_for_confirmation(self, db_session, setup):
        budget, preset = setup
        result = LinkGuardrail(db_session).unlink_preset(budget.id, preset.id)

        assert result.outcome == OUTCOME_CONFIRM_THEN_PURGE
        assert result.needs_confirmation
        assert not result.completed
        assert len(_generated(db_session, budget.id)) == 3
        assert _preset_linked(db_session, budget.id, preset.id)

    def test_confirmed_purges_and_unlinks(self, db_session, setup):
        budget, preset = setup
        result = LinkGuardrail(db_session).unlink_preset(budget.id, preset.id, confirmed=True)

        assert result.outcome == OUTCOME_CONFIRM_THEN_PURGE
        assert result.completed
        assert result.deleted_unspent == 3
        assert _generated(db_session, budget.id) == []
        assert not _preset_linked(db_session, budget.id, preset.id)

    def test_confirmation_disabled_purges_immediately(self, db_session, setup):
        budget, preset = setup
        result = LinkGuardrail(db_session).unlink_preset(budget.id, preset.id, confirm_before_deleting=False)

        assert result.completed
        assert result.deleted_unspent == 3
        assert not _preset_linked(db_session, budget.id, preset.id)

    def test_force_keeps_recorded_rows(self, db_session, setup):
        budget, preset = setup
        recorded_id = _record(db_session, budget.id, 0)
        guard = LinkGuardrail(db_session)
        guard.unlink_preset(budget.id, preset.id)

        result = guard.force_unlink_preset(budget.id, preset.id)

        assert result.completed
        assert not _preset_linked(db_session, budget.id, preset.id)
        assert [r.id for r in _generated(db_session, budget.id)] == [recorded_id]

    def test_keep_leaves_everything(self, db_session, setup):
        budget, preset = setup
        _record(db_session, budget.id, 0)
        guard = LinkGuardrail(db_session)
        guard.unlink_preset(budget.id, preset.id)

        result = guard.keep(TARGET_UNLINK_PRESET, budget_id=budget.id, preset_id=preset.id)

        assert result.outcome == OUTCOME_REVIEW_REQUIRED
        assert not result.completed
        assert _preset_linked(db_session, budget.id, preset.id)
        assert len(_generated(db_session, budget.id)) == 1

    def test_manual_rows_never_in_scope(self, db_session, setup, cards, workspace):
        budget, preset = setup
        manual = PlannedExpenseModel(
            workspace_id=workspace.id, title="Dinner", planned_amount=Decimal("50"),
            actual_amount=Decimal("0"), expense_date=date(2026, 1, 15), card_id=cards["visa"].id,
        )
        db_session.add(manual)
        db_session.commit()

        LinkGuardrail(db_session).unlink_preset(budget.id, preset.id, confirmed=True)

        assert db_session.get(PlannedExpenseModel, manual.id) is not None


# ======================================================================
# 2. Unlink card
# ======================================================================

class TestUnlinkCard:
    def test_only_rows_on_that_card(self, db_session, cards, setup):
        budget, _ = setup
        result = LinkGuardrail(db_session).unlink_card(budget.id, cards["amex"].id)

        assert result.outcome == OUTCOME_QUIET
        assert not _card_linked(db_session, budget.id, cards["amex"].id)
        assert len(_generated(db_session, budget.id)) == 3

    def test_confirmed_unlink_purges_card_rows(self, db_session, cards, setup):
        budget, preset = setup
        result = LinkGuardrail(db_session).unlink_card(budget.id, cards["visa"].id, confirmed=True)

        assert result.deleted_unspent == 3
        assert not _card_linked(db_session, budget.id, cards["visa"].id)
        # Preset stays linked unless asked otherwise
        assert _preset_linked(db_session, budget.id, preset.id)
        assert result.detached_preset_ids == []

    def test_detach_presets_that_fed_the_card(self, db_session, cal, cards, setup, new_preset):
        budget, preset = setup
        other = new_preset(title="Phone", default_card_id=cards["amex"].id)
        db_session.add(BudgetPresetLink(budget_id=budget.id, preset_id=other.id))
        db_session.commit()
        MaterializationService(db_session, cal).materialize_linked(budget)

        result = LinkGuardrail(db_session).unlink_card(
            budget.id, cards["visa"].id, confirmed=True, detach_presets=True,
        )

        assert result.detached_preset_ids == [preset.id]
        assert not _preset_linked(db_session, budget.id, preset.id)
        assert _preset_linked(db_session, budget.id, other.id)

    def test_detach_waits_for_confirmation(self, db_session, cards, setup):
        budget, preset = setup
        result = LinkGuardrail(db_session).unlink_card(budget.id, cards["visa"].id, detach_presets=True)

        assert result.needs_confirmation
        assert result.detached_preset_ids == []
        assert _preset_linked(db_session, budget.id, preset.id)

    def test_force_with_detach(self, db_session, cards, setup):
        budget, preset = setup
        recorded_id = _record(db_session, budget.id, 2)

        result = LinkGuardrail(db_session).force_unlink_card(budget.id, cards["visa"].id, detach_presets=True)

        assert result.completed
        assert result.detached_preset_ids == [preset.id]
        assert [r.id for r in _generated(db_session, budget.id)] == [recorded_id]


# ======================================================================
# 3. Delete budget
# ======================================================================

class TestDeleteBudget:
    def test_empty_budget_deleted_quietly(self, db_session, new_budget):
        budget_id = new_budget().id
        result = LinkGuardrail(db_session).delete_budget(budget_id)

        assert result.outcome == OUTCOME_QUIET
        assert db_session.get(BudgetModel, budget_id) is None

    def test_confirmed_delete_cascades(self, db_session, setup):
        budget, _ = setup
        budget_id = budget.id
        result = LinkGuardrail(db_session).delete_budget(budget_id, confirmed=True)

        assert result.completed
        assert db_session.get(BudgetModel, budget_id) is None
        assert _generated(db_session, budget_id) == []
        assert db_session.query(BudgetCardLink).filter(BudgetCardLink.budget_id == budget_id).count() == 0
        assert db_session.query(BudgetPresetLink).filter(BudgetPresetLink.budget_id == budget_id).count() == 0

    def test_recorded_rows_block_until_anyway(self, db_session, setup):
        budget, _ = setup
        budget_id = budget.id
        _record(db_session, budget_id, 0)
        guard = LinkGuardrail(db_session)

        review = guard.delete_budget(budget_id)
        assert review.outcome == OUTCOME_REVIEW_REQUIRED
        assert db_session.get(BudgetModel, budget_id) is not None

        result = guard.delete_budget_anyway(budget_id)
        assert result.completed
        assert db_session.get(BudgetModel, budget_id) is None
        assert _generated(db_session, budget_id) == []

    def test_review_resolved_by_deleting_recorded_rows(self, db_session, setup):
        budget, _ = setup
        budget_id = budget.id
        recorded_id = _record(db_session, budget_id, 0)
        guard = LinkGuardrail(db_session)
        guard.delete_budget(budget_id)

        # Ordinary deletion of the listed row, then the retry is quiet
        db_session.delete(db_session.get(PlannedExpenseModel, recorded_id))
        db_session.commit()
        result = guard.delete_budget(budget_id)

        assert result.outcome == OUTCOME_QUIET
        assert db_session.get(BudgetModel, budget_id) is None

    def test_unknown_budget(self, db_session):
        with pytest.raises(GuardrailError, match="not found"):
            LinkGuardrail(db_session).delete_budget(999)


# ======================================================================
# 4. Delete preset (all budgets)
# ======================================================================

class TestDeletePreset:
    def test_rows_in_every_budget_purged(self, db_session, cal, setup, new_budget):
        budget, preset = setup
        preset_id = preset.id
        second = new_budget(name="Q2", start=date(2026, 4, 1), end=date(2026, 4, 30), preset_ids=[preset_id])
        MaterializationService(db_session, cal).materialize_linked(second)

        result = LinkGuardrail(db_session).delete_preset(preset_id, confirmed=True)

        assert result.deleted_unspent == 4
        assert db_session.get(PresetModel, preset_id) is None
        assert _generated(db_session, preset_id=preset_id) == []
        assert db_session.query(BudgetPresetLink).filter(BudgetPresetLink.preset_id == preset_id).count() == 0

    def test_anyway_deletes_recorded(self, db_session, setup):
        budget, preset = setup
        preset_id = preset.id
        _record(db_session, budget.id, 0)
        result = LinkGuardrail(db_session).delete_preset_anyway(preset_id)

        assert result.completed
        assert _generated(db_session, preset_id=preset_id) == []


# ======================================================================
# 5. Preview and scan failures
# ======================================================================

class TestPreviewAndScanFailure:
    def test_preview_does_not_mutate(self, db_session, setup):
        budget, _ = setup
        _record(db_session, budget.id, 0)
        result = LinkGuardrail(db_session).preview(TARGET_DELETE_BUDGET, budget_id=budget.id)

        assert result.outcome == OUTCOME_REVIEW_REQUIRED
        assert len(result.recorded) == 1
        assert len(_generated(db_session, budget.id)) == 3

    def test_unknown_target(self, db_session):
        with pytest.raises(GuardrailError):
            LinkGuardrail(db_session).preview("rename_budget", budget_id=1)

    @pytest.mark.parametrize("target, with_budget", [
        (TARGET_UNLINK_CARD, True),
        (TARGET_UNLINK_PRESET, True),
        (TARGET_DELETE_PRESET, True),
        (TARGET_DELETE_BUDGET, False),
    ])
    def test_missing_scope_id_rejected(self, db_session, setup, target, with_budget):
        budget, _ = setup
        kwargs = {"budget_id": budget.id} if with_budget else {}
        guard = LinkGuardrail(db_session)
        with pytest.raises(GuardrailError, match="requires"):
            guard.preview(target, **kwargs)
        with pytest.raises(GuardrailError, match="requires"):
            guard.keep(target, **kwargs)

    def test_preset_preview_stays_in_its_own_rows(self, db_session, cal, setup, new_preset, new_budget):
        _, preset = setup
        other = new_preset(title="Gym", amount="40", default_card_id=preset.default_card_id)
        other_budget = new_budget(
            card_ids=[preset.default_card_id], preset_ids=[other.id], name="Other",
        )
        MaterializationService(db_session, cal).materialize_linked(other_budget)
        _record(db_session, other_budget.id, 0)

        result = LinkGuardrail(db_session).preview(TARGET_DELETE_PRESET, preset_id=preset.id)

        assert result.outcome == OUTCOME_CONFIRM_THEN_PURGE
        assert result.recorded == []

    def test_scan_failure_touches_nothing(self, db_session, setup, monkeypatch):
        budget, preset = setup

        def broken(self, **scope):
            raise StoreReadError("database is locked")

        monkeypatch.setattr(PlannedExpenseRepository, "fetch_generated", broken)
        result = LinkGuardrail(db_session).unlink_preset(budget.id, preset.id, confirm_before_deleting=False)

        assert result.outcome == OUTCOME_SCAN_FAILED
        assert not result.completed
        monkeypatch.undo()
        assert _preset_linked(db_session, budget.id, preset.id)
        assert len(_generated(db_session, budget.id)) == 3
