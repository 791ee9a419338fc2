"""
Provenance of a planned expense.

A planned expense is either entered by hand (Manual) or materialized from a
preset into a budget (Generated). The two persisted columns
source_preset_id / source_budget_id are both NULL or both set; this module is
the only place that turns them into a value.
"""
from dataclasses import dataclass


@dataclass(frozen=True)
class Manual:
    pass


@dataclass(frozen=True)
class Generated:
    preset_id: int
    budget_id: int


Provenance = Manual | Generated

MANUAL = Manual()


def provenance_from_columns(source_preset_id: int | None, source_budget_id: int | None) -> Provenance:
    if source_preset_id is None and source_budget_id is None:
        return MANUAL
    if source_preset_id is None or source_budget_id is None:
        raise ValueError("source_preset_id and source_budget_id must be set together")
    return Generated(preset_id=source_preset_id, budget_id=source_budget_id)


def provenance_to_columns(provenance: Provenance) -> tuple[int | None, int | None]:
    """Returns (source_preset_id, source_budget_id)."""
    if isinstance(provenance, Generated):
        return provenance.preset_id, provenance.budget_id
    return None, None
