"""Workspace, card and category use cases"""
import logging
from dataclasses import dataclass

from sqlalchemy.orm import Session

from offshore.infrastructure.db.models import (
    WorkspaceModel, CardModel, CategoryModel, PresetModel, PlannedExpenseModel,
)


logger = logging.getLogger(__name__)


class CardValidationError(ValueError):
    pass


@dataclass
class CardDeletion:
    card_id: int
    expenses: int  # planned expenses attributed to the card
    recorded: int  # of which money was already recorded against
    completed: bool = False

    @property
    def needs_confirmation(self) -> bool:
        return not self.completed


def _clean_name(name: str) -> str:
    name = (name or "").strip()
    if not name:
        raise CardValidationError("Name must not be empty")
    return name


def _check_workspace(db: Session, workspace_id: int) -> None:
    if not db.query(WorkspaceModel).filter(WorkspaceModel.id == workspace_id).first():
        raise CardValidationError(f"Workspace #{workspace_id} not found")


class CreateWorkspaceUseCase:
    def __init__(self, db: Session):
        self.db = db

    def execute(self, name: str) -> int:
        ws = WorkspaceModel(name=_clean_name(name))
        self.db.add(ws)
        self.db.flush()
        self.db.commit()
        return ws.id


class CreateCardUseCase:
    def __init__(self, db: Session):
        self.db = db

    def execute(self, workspace_id: int, name: str) -> int:
        _check_workspace(self.db, workspace_id)
        card = CardModel(workspace_id=workspace_id, name=_clean_name(name))
        self.db.add(card)
        self.db.flush()
        self.db.commit()
        return card.id


class CreateCategoryUseCase:
    def __init__(self, db: Session):
        self.db = db

    def execute(self, workspace_id: int, name: str) -> int:
        _check_workspace(self.db, workspace_id)
        cat = CategoryModel(workspace_id=workspace_id, name=_clean_name(name))
        self.db.add(cat)
        self.db.flush()
        self.db.commit()
        return cat.id


class DeleteCardUseCase:
    """
    Delete a card together with the planned expenses attributed to it.

    When the card still has planned expenses and confirm_before_deleting is
    set, nothing is removed until the caller repeats with confirmed=True.
    Budget links to the card are left dangling and removed by the orphan sweep
    the next time the budget's links are viewed.
    """
    def __init__(self, db: Session):
        self.db = db

    def execute(self, card_id: int, *, confirm_before_deleting: bool = True,
                confirmed: bool = False) -> CardDeletion:
        card = self.db.query(CardModel).filter(CardModel.id == card_id).first()
        if not card:
            raise CardValidationError(f"Card #{card_id} not found")

        expenses = self.db.query(PlannedExpenseModel).filter(PlannedExpenseModel.card_id == card_id)
        result = CardDeletion(
            card_id=card_id,
            expenses=expenses.count(),
            recorded=expenses.filter(PlannedExpenseModel.actual_amount > 0).count(),
        )
        if result.expenses and confirm_before_deleting and not confirmed:
            logger.info("Card %s deletion awaiting confirmation (%d planned expense(s), %d recorded)",
                        card_id, result.expenses, result.recorded)
            return result

        expenses.delete(synchronize_session=False)
        self.db.query(PresetModel).filter(
            PresetModel.default_card_id == card_id,
        ).update({PresetModel.default_card_id: None}, synchronize_session=False)
        self.db.delete(card)
        self.db.commit()
        result.completed = True
        logger.info("Deleted card %s with %d planned expense(s)", card_id, result.expenses)
        return result


def list_cards(db: Session, workspace_id: int) -> list[CardModel]:
    return db.query(CardModel).filter(
        CardModel.workspace_id == workspace_id
    ).order_by(CardModel.name, CardModel.id).all()


def list_categories(db: Session, workspace_id: int) -> list[CategoryModel]:
    return db.query(CategoryModel).filter(
        CategoryModel.workspace_id == workspace_id
    ).order_by(CategoryModel.name, CategoryModel.id).all()
