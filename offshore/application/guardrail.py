"""
Link Lifecycle Guardrail use cases.

Every unlink/delete action runs the same scan -> classify -> act sequence over
the generated planned expenses in its scope:

  unlink_card      source_budget_id = budget, card_id = card
  unlink_preset    source_budget_id = budget, source_preset_id = preset
  delete_budget    source_budget_id = budget
  delete_preset    source_preset_id = preset (all budgets)

Manual planned expenses are never in scope. Whether to ask before purging is
passed in by the caller (confirm_before_deleting); nothing here reads settings.
"""
import logging

from sqlalchemy.orm import Session

from offshore.domain.guardrail import (
    GuardrailResult, classify, partition,
    OUTCOME_QUIET, OUTCOME_CONFIRM_THEN_PURGE, OUTCOME_REVIEW_REQUIRED, OUTCOME_SCAN_FAILED,
    TARGET_UNLINK_CARD, TARGET_UNLINK_PRESET, TARGET_DELETE_BUDGET, TARGET_DELETE_PRESET,
    VALID_TARGETS,
)
from offshore.infrastructure.db.models import (
    BudgetModel, PresetModel, BudgetCardLink, BudgetPresetLink,
)
from offshore.infrastructure.db.repository import PlannedExpenseRepository, StoreReadError


logger = logging.getLogger(__name__)


class GuardrailError(ValueError):
    pass


def scope_for(target: str, budget_id: int | None = None, card_id: int | None = None,
              preset_id: int | None = None) -> dict:
    """Repository filter for a target. Every id the target needs must be given."""
    if target not in VALID_TARGETS:
        raise GuardrailError(f"Unknown guardrail target: {target}")
    if target == TARGET_UNLINK_CARD:
        scope = {"budget_id": budget_id, "card_id": card_id}
    elif target == TARGET_UNLINK_PRESET:
        scope = {"budget_id": budget_id, "preset_id": preset_id}
    elif target == TARGET_DELETE_BUDGET:
        scope = {"budget_id": budget_id}
    else:
        scope = {"preset_id": preset_id}

    missing = [name for name, value in scope.items() if value is None]
    if missing:
        raise GuardrailError(f"{target} requires {', '.join(missing)}")
    return scope


class LinkGuardrail:
    def __init__(self, db: Session):
        self.db = db
        self.repo = PlannedExpenseRepository(db)

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    def unlink_card(
        self, budget_id: int, card_id: int, *,
        confirm_before_deleting: bool = True,
        confirmed: bool = False,
        detach_presets: bool = False,
    ) -> GuardrailResult:
        self._get_budget(budget_id)
        return self._run(
            TARGET_UNLINK_CARD,
            scope_for(TARGET_UNLINK_CARD, budget_id=budget_id, card_id=card_id),
            remove=lambda: self._remove_card_links(budget_id, card_id),
            confirm_before_deleting=confirm_before_deleting,
            confirmed=confirmed,
            detach_presets_of_budget=budget_id if detach_presets else None,
        )

    def unlink_preset(
        self, budget_id: int, preset_id: int, *,
        confirm_before_deleting: bool = True,
        confirmed: bool = False,
    ) -> GuardrailResult:
        self._get_budget(budget_id)
        return self._run(
            TARGET_UNLINK_PRESET,
            scope_for(TARGET_UNLINK_PRESET, budget_id=budget_id, preset_id=preset_id),
            remove=lambda: self._remove_preset_links(budget_id, preset_id),
            confirm_before_deleting=confirm_before_deleting,
            confirmed=confirmed,
        )

    def delete_budget(
        self, budget_id: int, *,
        confirm_before_deleting: bool = True,
        confirmed: bool = False,
    ) -> GuardrailResult:
        budget = self._get_budget(budget_id)
        return self._run(
            TARGET_DELETE_BUDGET,
            scope_for(TARGET_DELETE_BUDGET, budget_id=budget_id),
            remove=lambda: self._remove_budget(budget),
            confirm_before_deleting=confirm_before_deleting,
            confirmed=confirmed,
        )

    def delete_preset(
        self, preset_id: int, *,
        confirm_before_deleting: bool = True,
        confirmed: bool = False,
    ) -> GuardrailResult:
        preset = self._get_preset(preset_id)
        return self._run(
            TARGET_DELETE_PRESET,
            scope_for(TARGET_DELETE_PRESET, preset_id=preset_id),
            remove=lambda: self._remove_preset(preset),
            confirm_before_deleting=confirm_before_deleting,
            confirmed=confirmed,
        )

    def preview(self, target: str, budget_id: int | None = None, card_id: int | None = None,
                preset_id: int | None = None) -> GuardrailResult:
        """Classify without touching anything."""
        scope = scope_for(target, budget_id=budget_id, card_id=card_id, preset_id=preset_id)
        try:
            rows = self.repo.fetch_generated(**scope)
        except StoreReadError:
            return GuardrailResult(target=target, outcome=OUTCOME_SCAN_FAILED)
        unspent, recorded = partition(rows)
        return GuardrailResult(
            target=target,
            outcome=classify(len(unspent), len(recorded)),
            recorded=recorded,
        )

    # ------------------------------------------------------------------
    # Review resolutions
    # ------------------------------------------------------------------

    def keep(self, target: str, budget_id: int | None = None, card_id: int | None = None,
             preset_id: int | None = None) -> GuardrailResult:
        """Abort the structural removal; links, budget and recorded rows stay."""
        result = self.preview(target, budget_id=budget_id, card_id=card_id, preset_id=preset_id)
        logger.info("Guardrail %s kept by user (scope budget=%s card=%s preset=%s)",
                    target, budget_id, card_id, preset_id)
        return result

    def force_unlink_card(self, budget_id: int, card_id: int, *, detach_presets: bool = False) -> GuardrailResult:
        """Unlink despite recorded rows. Recorded rows stay as spend history."""
        self._get_budget(budget_id)
        return self._force(
            TARGET_UNLINK_CARD,
            scope_for(TARGET_UNLINK_CARD, budget_id=budget_id, card_id=card_id),
            remove=lambda: self._remove_card_links(budget_id, card_id),
            delete_recorded=False,
            detach_presets_of_budget=budget_id if detach_presets else None,
        )

    def force_unlink_preset(self, budget_id: int, preset_id: int) -> GuardrailResult:
        """Unlink despite recorded rows. Recorded rows stay as spend history."""
        self._get_budget(budget_id)
        return self._force(
            TARGET_UNLINK_PRESET,
            scope_for(TARGET_UNLINK_PRESET, budget_id=budget_id, preset_id=preset_id),
            remove=lambda: self._remove_preset_links(budget_id, preset_id),
            delete_recorded=False,
        )

    def delete_budget_anyway(self, budget_id: int) -> GuardrailResult:
        """Delete the budget and every generated row it owns, recorded ones included."""
        budget = self._get_budget(budget_id)
        return self._force(
            TARGET_DELETE_BUDGET,
            scope_for(TARGET_DELETE_BUDGET, budget_id=budget_id),
            remove=lambda: self._remove_budget(budget),
            delete_recorded=True,
        )

    def delete_preset_anyway(self, preset_id: int) -> GuardrailResult:
        preset = self._get_preset(preset_id)
        return self._force(
            TARGET_DELETE_PRESET,
            scope_for(TARGET_DELETE_PRESET, preset_id=preset_id),
            remove=lambda: self._remove_preset(preset),
            delete_recorded=True,
        )

    # ------------------------------------------------------------------
    # State machine
    # ------------------------------------------------------------------

    def _run(self, target: str, scope: dict, remove, confirm_before_deleting: bool,
             confirmed: bool, detach_presets_of_budget: int | None = None) -> GuardrailResult:
        try:
            rows = self.repo.fetch_generated(**scope)
        except StoreReadError:
            logger.warning("Guardrail %s aborted: scan failed for %s", target, scope)
            return GuardrailResult(target=target, outcome=OUTCOME_SCAN_FAILED)

        source_preset_ids = sorted({r.source_preset_id for r in rows})
        unspent, recorded = partition(rows)
        result = GuardrailResult(target=target, outcome=classify(len(unspent), len(recorded)))

        if result.outcome == OUTCOME_QUIET:
            remove()
            result.completed = True

        elif result.outcome == OUTCOME_CONFIRM_THEN_PURGE:
            if confirm_before_deleting and not confirmed:
                logger.info("Guardrail %s awaiting confirmation for %d unspent row(s)", target, len(unspent))
                return result
            result.deleted_unspent = self.repo.delete_many(unspent)
            remove()
            result.completed = True

        else:  # OUTCOME_REVIEW_REQUIRED
            result.deleted_unspent = self.repo.delete_many(unspent)
            result.recorded = recorded

        if detach_presets_of_budget is not None:
            result.detached_preset_ids = self._detach_presets(detach_presets_of_budget, source_preset_ids)

        self.db.commit()
        logger.info(
            "Guardrail %s -> %s (deleted_unspent=%d recorded=%d completed=%s)",
            target, result.outcome, result.deleted_unspent, len(result.recorded), result.completed,
        )
        return result

    def _force(self, target: str, scope: dict, remove, delete_recorded: bool,
               detach_presets_of_budget: int | None = None) -> GuardrailResult:
        try:
            rows = self.repo.fetch_generated(**scope)
        except StoreReadError:
            logger.warning("Guardrail %s (forced) aborted: scan failed for %s", target, scope)
            return GuardrailResult(target=target, outcome=OUTCOME_SCAN_FAILED)

        source_preset_ids = sorted({r.source_preset_id for r in rows})
        unspent, recorded = partition(rows)
        result = GuardrailResult(target=target, outcome=classify(len(unspent), len(recorded)))
        result.deleted_unspent = self.repo.delete_many(unspent)
        if delete_recorded:
            self.repo.delete_many(recorded)
        else:
            result.recorded = recorded

        remove()
        result.completed = True
        if detach_presets_of_budget is not None:
            result.detached_preset_ids = self._detach_presets(detach_presets_of_budget, source_preset_ids)

        self.db.commit()
        logger.info(
            "Guardrail %s forced (deleted_unspent=%d recorded=%d recorded_deleted=%s)",
            target, result.deleted_unspent, len(recorded), delete_recorded,
        )
        return result

    # ------------------------------------------------------------------
    # Structural removals
    # ------------------------------------------------------------------

    def _remove_card_links(self, budget_id: int, card_id: int) -> None:
        self.db.query(BudgetCardLink).filter(
            BudgetCardLink.budget_id == budget_id,
            BudgetCardLink.card_id == card_id,
        ).delete(synchronize_session=False)

    def _remove_preset_links(self, budget_id: int, preset_id: int) -> None:
        self.db.query(BudgetPresetLink).filter(
            BudgetPresetLink.budget_id == budget_id,
            BudgetPresetLink.preset_id == preset_id,
        ).delete(synchronize_session=False)

    def _remove_budget(self, budget: BudgetModel) -> None:
        # Cascade: whatever generated rows are still in scope at this point
        self.repo.delete_many(self.repo.fetch_generated(budget_id=budget.id))
        self.db.query(BudgetCardLink).filter(BudgetCardLink.budget_id == budget.id).delete(synchronize_session=False)
        self.db.query(BudgetPresetLink).filter(BudgetPresetLink.budget_id == budget.id).delete(synchronize_session=False)
        self.db.delete(budget)

    def _remove_preset(self, preset: PresetModel) -> None:
        self.repo.delete_many(self.repo.fetch_generated(preset_id=preset.id))
        self.db.query(BudgetPresetLink).filter(BudgetPresetLink.preset_id == preset.id).delete(synchronize_session=False)
        self.db.delete(preset)

    def _detach_presets(self, budget_id: int, preset_ids: list[int]) -> list[int]:
        """Drop preset links that fed the unlinked card, so relinking it does not regenerate them."""
        if not preset_ids:
            return []
        self.db.query(BudgetPresetLink).filter(
            BudgetPresetLink.budget_id == budget_id,
            BudgetPresetLink.preset_id.in_(preset_ids),
        ).delete(synchronize_session=False)
        return preset_ids

    # ------------------------------------------------------------------

    def _get_budget(self, budget_id: int) -> BudgetModel:
        budget = self.db.query(BudgetModel).filter(BudgetModel.id == budget_id).first()
        if not budget:
            raise GuardrailError(f"Budget #{budget_id} not found")
        return budget

    def _get_preset(self, preset_id: int) -> PresetModel:
        preset = self.db.query(PresetModel).filter(PresetModel.id == preset_id).first()
        if not preset:
            raise GuardrailError(f"Preset #{preset_id} not found")
        return preset
