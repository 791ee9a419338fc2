"""Tests for planned expense provenance"""
import pytest

from offshore.domain.provenance import (
    Generated, Manual, MANUAL, provenance_from_columns, provenance_to_columns,
)


def test_both_null_is_manual():
    assert provenance_from_columns(None, None) == MANUAL
    assert isinstance(provenance_from_columns(None, None), Manual)


def test_both_set_is_generated():
    assert provenance_from_columns(3, 7) == Generated(preset_id=3, budget_id=7)


@pytest.mark.parametrize("preset_id,budget_id", [(3, None), (None, 7)])
def test_half_set_rejected(preset_id, budget_id):
    with pytest.raises(ValueError):
        provenance_from_columns(preset_id, budget_id)


def test_to_columns():
    assert provenance_to_columns(Generated(preset_id=3, budget_id=7)) == (3, 7)
    assert provenance_to_columns(MANUAL) == (None, None)
