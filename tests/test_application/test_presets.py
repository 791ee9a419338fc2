"""Tests for preset use cases - create, update, archive."""
import pytest
from decimal import Decimal

from offshore.application.presets import (
    CreatePresetUseCase, UpdatePresetUseCase, ArchivePresetUseCase, UnarchivePresetUseCase,
    PresetValidationError, get_preset, list_presets,
)


class TestCreatePreset:
    def test_create_with_defaults(self, db_session, workspace, cards, category):
        pid = CreatePresetUseCase(db_session).execute(
            workspace_id=workspace.id, title="Rent", planned_amount="1200,50",
            default_card_id=cards["visa"].id, default_category_id=category.id,
        )
        preset = get_preset(db_session, pid)
        assert preset.title == "Rent"
        assert preset.planned_amount == Decimal("1200.50")
        assert preset.frequency == "monthly"
        assert preset.monthly_day_of_month == 15
        assert preset.default_card_id == cards["visa"].id
        assert preset.is_archived is False

    def test_rule_fields_clamped(self, db_session, workspace):
        pid = CreatePresetUseCase(db_session).execute(
            workspace_id=workspace.id, title="Odd", planned_amount="10",
            frequency="weekly", interval=0, weekly_weekday=9,
        )
        preset = get_preset(db_session, pid)
        assert preset.interval == 1
        assert preset.weekly_weekday == 7

    def test_invalid_frequency_rejected(self, db_session, workspace):
        with pytest.raises(PresetValidationError, match="Invalid frequency"):
            CreatePresetUseCase(db_session).execute(
                workspace_id=workspace.id, title="Rent", planned_amount="10", frequency="hourly",
            )

    def test_negative_amount_rejected(self, db_session, workspace):
        with pytest.raises(PresetValidationError, match="negative"):
            CreatePresetUseCase(db_session).execute(workspace_id=workspace.id, title="Rent", planned_amount="-1")

    def test_empty_title_rejected(self, db_session, workspace):
        with pytest.raises(PresetValidationError, match="Title"):
            CreatePresetUseCase(db_session).execute(workspace_id=workspace.id, title="   ", planned_amount="1")

    def test_unknown_default_card_rejected(self, db_session, workspace):
        with pytest.raises(PresetValidationError, match="Card #77"):
            CreatePresetUseCase(db_session).execute(
                workspace_id=workspace.id, title="Rent", planned_amount="1", default_card_id=77,
            )


class TestUpdatePreset:
    def test_partial_rule_update_keeps_other_fields(self, db_session, workspace):
        pid = CreatePresetUseCase(db_session).execute(
            workspace_id=workspace.id, title="Rent", planned_amount="1200", monthly_day_of_month=3,
        )
        UpdatePresetUseCase(db_session).execute(pid, monthly_is_last_day=True, planned_amount="1300")

        preset = get_preset(db_session, pid)
        assert preset.monthly_is_last_day is True
        assert preset.monthly_day_of_month == 3
        assert preset.planned_amount == Decimal("1300")

    def test_clear_default_card(self, db_session, workspace, cards):
        pid = CreatePresetUseCase(db_session).execute(
            workspace_id=workspace.id, title="Rent", planned_amount="1", default_card_id=cards["visa"].id,
        )
        UpdatePresetUseCase(db_session).execute(pid, default_card_id=None)
        assert get_preset(db_session, pid).default_card_id is None

    def test_invalid_frequency_rejected(self, db_session, new_preset):
        preset = new_preset()
        with pytest.raises(PresetValidationError):
            UpdatePresetUseCase(db_session).execute(preset.id, frequency="sometimes")


class TestArchive:
    def test_archive_hides_from_list(self, db_session, workspace, new_preset):
        preset = new_preset()
        ArchivePresetUseCase(db_session).execute(preset.id)

        assert list_presets(db_session, workspace.id) == []
        assert [p.id for p in list_presets(db_session, workspace.id, include_archived=True)] == [preset.id]
        assert get_preset(db_session, preset.id).archived_at is not None

    def test_archive_twice_rejected(self, db_session, new_preset):
        preset = new_preset(is_archived=True)
        with pytest.raises(PresetValidationError, match="already archived"):
            ArchivePresetUseCase(db_session).execute(preset.id)

    def test_unarchive(self, db_session, new_preset):
        preset = new_preset(is_archived=True)
        UnarchivePresetUseCase(db_session).execute(preset.id)
        assert get_preset(db_session, preset.id).is_archived is False
