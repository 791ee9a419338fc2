"""Budget use cases - create/edit a budget window and its card/preset selection"""
from dataclasses import dataclass
from datetime import date
from sqlalchemy.orm import Session

from offshore.application.materialization import MaterializationService, ReconcileResult
from offshore.domain.calendar import CalendarProvider
from offshore.infrastructure.db.models import (
    BudgetModel, CardModel, PresetModel, WorkspaceModel, BudgetCardLink, BudgetPresetLink,
)


class BudgetValidationError(ValueError):
    pass


@dataclass
class BudgetCreated:
    budget_id: int
    materialized: int


def _to_date(value: date | str) -> date:
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(value.strip()[:10])
    except (ValueError, AttributeError) as e:
        raise BudgetValidationError(f"Invalid date: {value}") from e


def get_budget(db: Session, budget_id: int) -> BudgetModel:
    budget = db.query(BudgetModel).filter(BudgetModel.id == budget_id).first()
    if not budget:
        raise BudgetValidationError(f"Budget #{budget_id} not found")
    return budget


def list_budgets(db: Session, workspace_id: int) -> list[BudgetModel]:
    return db.query(BudgetModel).filter(
        BudgetModel.workspace_id == workspace_id
    ).order_by(BudgetModel.start_date.desc(), BudgetModel.id.desc()).all()


def _checked_ids(db: Session, model, ids, workspace_id: int, label: str) -> set[int]:
    ids = set(ids or ())
    if not ids:
        return set()
    found = {
        row.id for row in db.query(model.id).filter(
            model.id.in_(ids), model.workspace_id == workspace_id,
        ).all()
    }
    missing = ids - found
    if missing:
        raise BudgetValidationError(f"{label} not found in workspace: {sorted(missing)}")
    return ids


class CreateBudgetUseCase:
    def __init__(self, db: Session, cal: CalendarProvider | None = None):
        self.db = db
        self.cal = cal

    def execute(
        self,
        workspace_id: int,
        name: str,
        start_date: date | str,
        end_date: date | str,
        card_ids=(),
        preset_ids=(),
    ) -> BudgetCreated:
        name = (name or "").strip()
        if not name:
            raise BudgetValidationError("Name must not be empty")
        start, end = _to_date(start_date), _to_date(end_date)
        if start > end:
            raise BudgetValidationError("start_date must be on or before end_date")
        if not self.db.query(WorkspaceModel).filter(WorkspaceModel.id == workspace_id).first():
            raise BudgetValidationError(f"Workspace #{workspace_id} not found")

        cards = _checked_ids(self.db, CardModel, card_ids, workspace_id, "Cards")
        presets = _checked_ids(self.db, PresetModel, preset_ids, workspace_id, "Presets")

        budget = BudgetModel(workspace_id=workspace_id, name=name, start_date=start, end_date=end)
        self.db.add(budget)
        self.db.flush()
        for card_id in sorted(cards):
            self.db.add(BudgetCardLink(budget_id=budget.id, card_id=card_id))
        for preset_id in sorted(presets):
            self.db.add(BudgetPresetLink(budget_id=budget.id, preset_id=preset_id))
        self.db.commit()

        created = MaterializationService(self.db, self.cal).materialize_linked(budget)
        return BudgetCreated(budget_id=budget.id, materialized=created)


class UpdateBudgetUseCase:
    """
    Edit name, window and selections, then reconcile generated rows.

    card_ids / preset_ids, when given, replace the current selection.
    """
    def __init__(self, db: Session, cal: CalendarProvider | None = None):
        self.db = db
        self.cal = cal

    def execute(
        self,
        budget_id: int,
        name: str | None = None,
        start_date: date | str | None = None,
        end_date: date | str | None = None,
        card_ids=None,
        preset_ids=None,
    ) -> ReconcileResult:
        budget = get_budget(self.db, budget_id)

        if name is not None:
            name = name.strip()
            if not name:
                raise BudgetValidationError("Name must not be empty")
            budget.name = name
        start = _to_date(start_date) if start_date is not None else budget.start_date
        end = _to_date(end_date) if end_date is not None else budget.end_date
        if start > end:
            raise BudgetValidationError("start_date must be on or before end_date")
        budget.start_date, budget.end_date = start, end

        if card_ids is not None:
            wanted = _checked_ids(self.db, CardModel, card_ids, budget.workspace_id, "Cards")
            self._replace_links(BudgetCardLink, "card_id", budget.id, wanted)
        if preset_ids is not None:
            wanted = _checked_ids(self.db, PresetModel, preset_ids, budget.workspace_id, "Presets")
            self._replace_links(BudgetPresetLink, "preset_id", budget.id, wanted)

        self.db.commit()
        return MaterializationService(self.db, self.cal).reconcile(budget)

    def _replace_links(self, model, attr: str, budget_id: int, wanted: set[int]) -> None:
        current = {
            getattr(link, attr): link
            for link in self.db.query(model).filter(model.budget_id == budget_id).all()
        }
        for target_id, link in current.items():
            if target_id not in wanted:
                self.db.delete(link)
        for target_id in sorted(wanted - current.keys()):
            self.db.add(model(budget_id=budget_id, **{attr: target_id}))
