"""Budget link use cases - attach cards/presets to a budget, orphan sweep"""
import logging
from dataclasses import dataclass, field

from sqlalchemy import exists
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from offshore.application.materialization import MaterializationService, linked_card_ids, linked_presets
from offshore.domain.calendar import CalendarProvider
from offshore.infrastructure.db.models import (
    BudgetModel, CardModel, PresetModel, BudgetCardLink, BudgetPresetLink,
)


logger = logging.getLogger(__name__)


class LinkValidationError(ValueError):
    pass


@dataclass
class BudgetLinks:
    budget_id: int
    card_ids: list[int] = field(default_factory=list)
    preset_ids: list[int] = field(default_factory=list)
    purged: int = 0


def _get_budget(db: Session, budget_id: int) -> BudgetModel:
    budget = db.query(BudgetModel).filter(BudgetModel.id == budget_id).first()
    if not budget:
        raise LinkValidationError(f"Budget #{budget_id} not found")
    return budget


def purge_orphan_links(db: Session, budget_id: int | None = None) -> int:
    """
    Delete link rows whose budget, card or preset no longer exists.

    Best effort: a failure is logged and the sweep reports 0, eligibility is
    re-derived from live links on every materialization anyway.
    """
    try:
        card_q = db.query(BudgetCardLink).filter(
            ~exists().where(CardModel.id == BudgetCardLink.card_id)
            | ~exists().where(BudgetModel.id == BudgetCardLink.budget_id)
        )
        preset_q = db.query(BudgetPresetLink).filter(
            ~exists().where(PresetModel.id == BudgetPresetLink.preset_id)
            | ~exists().where(BudgetModel.id == BudgetPresetLink.budget_id)
        )
        if budget_id is not None:
            card_q = card_q.filter(BudgetCardLink.budget_id == budget_id)
            preset_q = preset_q.filter(BudgetPresetLink.budget_id == budget_id)

        purged = 0
        for link in card_q.all() + preset_q.all():
            db.delete(link)
            purged += 1
        if purged:
            db.commit()
            logger.info("Purged %d orphaned link(s) (budget=%s)", purged, budget_id)
        return purged
    except SQLAlchemyError:
        db.rollback()
        logger.warning("Orphan link sweep failed (budget=%s)", budget_id, exc_info=True)
        return 0


def get_budget_links(db: Session, budget_id: int) -> BudgetLinks:
    """Links of a budget, after the orphan sweep."""
    _get_budget(db, budget_id)
    purged = purge_orphan_links(db, budget_id)
    return BudgetLinks(
        budget_id=budget_id,
        card_ids=sorted(linked_card_ids(db, budget_id)),
        preset_ids=[p.id for p in linked_presets(db, budget_id)],
        purged=purged,
    )


class LinkPresetUseCase:
    """Attach a preset to a budget and materialize its occurrences."""
    def __init__(self, db: Session, cal: CalendarProvider | None = None):
        self.db = db
        self.cal = cal

    def execute(self, budget_id: int, preset_id: int) -> int:
        budget = _get_budget(self.db, budget_id)
        preset = self.db.query(PresetModel).filter(PresetModel.id == preset_id).first()
        if not preset:
            raise LinkValidationError(f"Preset #{preset_id} not found")
        if preset.workspace_id != budget.workspace_id:
            raise LinkValidationError("Preset belongs to another workspace")
        if preset.is_archived:
            raise LinkValidationError("Archived presets cannot be linked")

        link = self.db.query(BudgetPresetLink).filter(
            BudgetPresetLink.budget_id == budget_id,
            BudgetPresetLink.preset_id == preset_id,
        ).first()
        if not link:
            self.db.add(BudgetPresetLink(budget_id=budget_id, preset_id=preset_id))
            self.db.commit()

        return MaterializationService(self.db, self.cal).materialize(
            budget, [preset], linked_card_ids(self.db, budget_id)
        )


class LinkCardUseCase:
    """
    Attach a card to a budget.

    Linked presets are materialized again so occurrences that do not exist yet
    pick up a default card that just became eligible. Existing rows are not
    re-attributed.
    """
    def __init__(self, db: Session, cal: CalendarProvider | None = None):
        self.db = db
        self.cal = cal

    def execute(self, budget_id: int, card_id: int) -> int:
        budget = _get_budget(self.db, budget_id)
        card = self.db.query(CardModel).filter(CardModel.id == card_id).first()
        if not card:
            raise LinkValidationError(f"Card #{card_id} not found")
        if card.workspace_id != budget.workspace_id:
            raise LinkValidationError("Card belongs to another workspace")

        link = self.db.query(BudgetCardLink).filter(
            BudgetCardLink.budget_id == budget_id,
            BudgetCardLink.card_id == card_id,
        ).first()
        if not link:
            self.db.add(BudgetCardLink(budget_id=budget_id, card_id=card_id))
            self.db.commit()

        return MaterializationService(self.db, self.cal).materialize_linked(budget)
