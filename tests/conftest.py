"""
Pytest fixtures for testing
"""
import pytest
from datetime import date
from decimal import Decimal
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool

from offshore.domain.calendar import CalendarProvider
from offshore.infrastructure.db.session import Base
from offshore.infrastructure.db.models import (
    WorkspaceModel, CardModel, CategoryModel, PresetModel, BudgetModel,
    BudgetCardLink, BudgetPresetLink,
)


@pytest.fixture
def db_engine():
    """In-memory SQLite engine shared across threads (TestClient runs sync routes in a pool)."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db_session(db_engine) -> Session:
    """Create database session for tests"""
    SessionLocal = sessionmaker(bind=db_engine, autoflush=False)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture
def cal():
    """Sunday-first calendar in UTC"""
    return CalendarProvider(tz="UTC", first_weekday=1)


@pytest.fixture
def workspace(db_session):
    ws = WorkspaceModel(name="Home")
    db_session.add(ws)
    db_session.flush()
    return ws


@pytest.fixture
def cards(db_session, workspace):
    visa = CardModel(workspace_id=workspace.id, name="Visa")
    amex = CardModel(workspace_id=workspace.id, name="Amex")
    db_session.add_all([visa, amex])
    db_session.flush()
    return {"visa": visa, "amex": amex}


@pytest.fixture
def category(db_session, workspace):
    cat = CategoryModel(workspace_id=workspace.id, name="Bills")
    db_session.add(cat)
    db_session.flush()
    return cat


@pytest.fixture
def new_preset(db_session, workspace):
    """Factory: new_preset(title=..., amount=..., **rule_fields)"""
    def _make(title="Rent", amount="1200", **fields):
        preset = PresetModel(
            workspace_id=workspace.id,
            title=title,
            planned_amount=Decimal(amount),
            frequency=fields.pop("frequency", "monthly"),
            interval=fields.pop("interval", 1),
            weekly_weekday=fields.pop("weekly_weekday", 6),
            monthly_day_of_month=fields.pop("monthly_day_of_month", 15),
            monthly_is_last_day=fields.pop("monthly_is_last_day", False),
            yearly_month=fields.pop("yearly_month", 1),
            yearly_day_of_month=fields.pop("yearly_day_of_month", 15),
            default_card_id=fields.pop("default_card_id", None),
            default_category_id=fields.pop("default_category_id", None),
            is_archived=fields.pop("is_archived", False),
        )
        db_session.add(preset)
        db_session.flush()
        return preset
    return _make


@pytest.fixture
def new_budget(db_session, workspace):
    """Factory: new_budget(start=..., end=..., card_ids=..., preset_ids=...), links committed"""
    def _make(start=date(2026, 1, 1), end=date(2026, 1, 31), card_ids=(), preset_ids=(), name="January"):
        budget = BudgetModel(workspace_id=workspace.id, name=name, start_date=start, end_date=end)
        db_session.add(budget)
        db_session.flush()
        for card_id in card_ids:
            db_session.add(BudgetCardLink(budget_id=budget.id, card_id=card_id))
        for preset_id in preset_ids:
            db_session.add(BudgetPresetLink(budget_id=budget.id, preset_id=preset_id))
        db_session.commit()
        return budget
    return _make


@pytest.fixture
def client(db_engine):
    """TestClient wired to the in-memory database"""
    from offshore.main import app
    from offshore.api.deps import get_db

    SessionLocal = sessionmaker(bind=db_engine, autoflush=False)

    def _override_get_db():
        db = SessionLocal()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = _override_get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
