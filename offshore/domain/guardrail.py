"""
Link lifecycle guardrail - pure classification rules.

Outcomes:
  quiet              - no generated rows in scope: remove silently
  confirm_then_purge - generated rows exist, all unspent: confirm, purge, remove
  review_required    - at least one recorded row: purge unspent now, keep recorded,
                       hold the structural removal until the user resolves the review
  scan_failed        - the scan could not read persistence: nothing is touched

Targets:
  unlink_card, unlink_preset, delete_budget, delete_preset
"""
from dataclasses import dataclass, field
from decimal import Decimal


OUTCOME_QUIET = "quiet"
OUTCOME_CONFIRM_THEN_PURGE = "confirm_then_purge"
OUTCOME_REVIEW_REQUIRED = "review_required"
OUTCOME_SCAN_FAILED = "scan_failed"

TARGET_UNLINK_CARD = "unlink_card"
TARGET_UNLINK_PRESET = "unlink_preset"
TARGET_DELETE_BUDGET = "delete_budget"
TARGET_DELETE_PRESET = "delete_preset"
VALID_TARGETS = frozenset({
    TARGET_UNLINK_CARD, TARGET_UNLINK_PRESET, TARGET_DELETE_BUDGET, TARGET_DELETE_PRESET,
})


def is_recorded(actual_amount) -> bool:
    return Decimal(actual_amount or 0) > 0


def partition(expenses) -> tuple[list, list]:
    """Split generated rows into (unspent, recorded)."""
    unspent, recorded = [], []
    for e in expenses:
        (recorded if is_recorded(e.actual_amount) else unspent).append(e)
    return unspent, recorded


def classify(unspent_count: int, recorded_count: int) -> str:
    if recorded_count > 0:
        return OUTCOME_REVIEW_REQUIRED
    if unspent_count > 0:
        return OUTCOME_CONFIRM_THEN_PURGE
    return OUTCOME_QUIET


@dataclass
class GuardrailResult:
    target: str
    outcome: str
    deleted_unspent: int = 0
    recorded: list = field(default_factory=list)
    completed: bool = False  # structural removal performed
    detached_preset_ids: list[int] = field(default_factory=list)

    @property
    def needs_confirmation(self) -> bool:
        return self.outcome == OUTCOME_CONFIRM_THEN_PURGE and not self.completed

    @property
    def needs_review(self) -> bool:
        return self.outcome == OUTCOME_REVIEW_REQUIRED and not self.completed
