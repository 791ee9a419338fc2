"""
Preset use cases - recurring planned-expense templates.

Works directly with the ORM. Rule fields are clamped into range by
RecurrenceRule before they are stored; only the frequency name is validated.
Editing a preset does not touch planned expenses already generated from it.
"""
from datetime import datetime, timezone
from sqlalchemy.orm import Session

from offshore.domain.recurrence import RecurrenceRule, VALID_FREQ
from offshore.infrastructure.db.models import PresetModel, CardModel, CategoryModel
from offshore.utils.validation import parse_non_negative_amount


class PresetValidationError(ValueError):
    pass


_RULE_FIELDS = (
    "frequency", "interval", "weekly_weekday", "monthly_day_of_month",
    "monthly_is_last_day", "yearly_month", "yearly_day_of_month",
)


def _apply_rule(preset: PresetModel, rule: RecurrenceRule) -> None:
    for name in _RULE_FIELDS:
        setattr(preset, name, getattr(rule, name))


def _parse_amount(value):
    try:
        return parse_non_negative_amount(value)
    except ValueError as e:
        raise PresetValidationError(str(e)) from e


def _check_defaults(db: Session, workspace_id: int, default_card_id: int | None,
                    default_category_id: int | None) -> None:
    if default_card_id is not None:
        card = db.query(CardModel).filter(CardModel.id == default_card_id).first()
        if not card or card.workspace_id != workspace_id:
            raise PresetValidationError(f"Card #{default_card_id} not found in workspace")
    if default_category_id is not None:
        cat = db.query(CategoryModel).filter(CategoryModel.id == default_category_id).first()
        if not cat or cat.workspace_id != workspace_id:
            raise PresetValidationError(f"Category #{default_category_id} not found in workspace")


def get_preset(db: Session, preset_id: int) -> PresetModel:
    preset = db.query(PresetModel).filter(PresetModel.id == preset_id).first()
    if not preset:
        raise PresetValidationError(f"Preset #{preset_id} not found")
    return preset


def list_presets(db: Session, workspace_id: int, include_archived: bool = False) -> list[PresetModel]:
    q = db.query(PresetModel).filter(PresetModel.workspace_id == workspace_id)
    if not include_archived:
        q = q.filter(PresetModel.is_archived == False)
    return q.order_by(PresetModel.title, PresetModel.id).all()


class CreatePresetUseCase:
    def __init__(self, db: Session):
        self.db = db

    def execute(
        self,
        workspace_id: int,
        title: str,
        planned_amount,
        frequency: str = "monthly",
        interval: int = 1,
        weekly_weekday: int = 6,
        monthly_day_of_month: int = 15,
        monthly_is_last_day: bool = False,
        yearly_month: int = 1,
        yearly_day_of_month: int = 15,
        default_card_id: int | None = None,
        default_category_id: int | None = None,
    ) -> int:
        title = title.strip()
        if not title:
            raise PresetValidationError("Title must not be empty")
        if frequency not in VALID_FREQ:
            raise PresetValidationError(f"Invalid frequency: {frequency}")
        amount = _parse_amount(planned_amount)
        _check_defaults(self.db, workspace_id, default_card_id, default_category_id)

        rule = RecurrenceRule(
            frequency=frequency,
            interval=interval,
            weekly_weekday=weekly_weekday,
            monthly_day_of_month=monthly_day_of_month,
            monthly_is_last_day=monthly_is_last_day,
            yearly_month=yearly_month,
            yearly_day_of_month=yearly_day_of_month,
        )
        preset = PresetModel(
            workspace_id=workspace_id,
            title=title,
            planned_amount=amount,
            default_card_id=default_card_id,
            default_category_id=default_category_id,
            is_archived=False,
        )
        _apply_rule(preset, rule)
        self.db.add(preset)
        self.db.flush()
        self.db.commit()
        return preset.id


class UpdatePresetUseCase:
    def __init__(self, db: Session):
        self.db = db

    def execute(self, preset_id: int, **changes) -> None:
        preset = get_preset(self.db, preset_id)

        if "title" in changes:
            title = (changes["title"] or "").strip()
            if not title:
                raise PresetValidationError("Title must not be empty")
            preset.title = title
        if "planned_amount" in changes:
            preset.planned_amount = _parse_amount(changes["planned_amount"])
        if "default_card_id" in changes or "default_category_id" in changes:
            card_id = changes.get("default_card_id", preset.default_card_id)
            category_id = changes.get("default_category_id", preset.default_category_id)
            _check_defaults(self.db, preset.workspace_id, card_id, category_id)
            preset.default_card_id = card_id
            preset.default_category_id = category_id

        if any(name in changes for name in _RULE_FIELDS):
            if "frequency" in changes and changes["frequency"] not in VALID_FREQ:
                raise PresetValidationError(f"Invalid frequency: {changes['frequency']}")
            current = RecurrenceRule.from_preset(preset)
            merged = {name: changes.get(name, getattr(current, name)) for name in _RULE_FIELDS}
            _apply_rule(preset, RecurrenceRule(**merged))

        self.db.commit()


class ArchivePresetUseCase:
    def __init__(self, db: Session):
        self.db = db

    def execute(self, preset_id: int) -> None:
        preset = get_preset(self.db, preset_id)
        if preset.is_archived:
            raise PresetValidationError("Preset is already archived")
        preset.is_archived = True
        preset.archived_at = datetime.now(timezone.utc)
        self.db.commit()


class UnarchivePresetUseCase:
    def __init__(self, db: Session):
        self.db = db

    def execute(self, preset_id: int) -> None:
        preset = get_preset(self.db, preset_id)
        if not preset.is_archived:
            raise PresetValidationError("Preset is not archived")
        preset.is_archived = False
        preset.archived_at = None
        self.db.commit()
