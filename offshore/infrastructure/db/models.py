"""
SQLAlchemy ORM models
"""
from decimal import Decimal
from datetime import date as date_type
from sqlalchemy import (
    String, DateTime, Integer, SmallInteger, Text, TIMESTAMP, Date, Boolean, Numeric,
    UniqueConstraint, CheckConstraint, Index, func, false,
)
from sqlalchemy.orm import Mapped, mapped_column

from offshore.infrastructure.db.session import Base
from offshore.domain.provenance import Provenance, provenance_from_columns
from offshore.domain.recurrence import FREQ_MONTHLY


class WorkspaceModel(Base):
    """Top-level owner of cards, categories, presets and budgets"""
    __tablename__ = "workspaces"

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    created_at: Mapped[DateTime] = mapped_column(
        TIMESTAMP(timezone=True), server_default=func.now(), nullable=False
    )


class CardModel(Base):
    __tablename__ = "cards"

    id: Mapped[int] = mapped_column(primary_key=True)
    workspace_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    created_at: Mapped[DateTime] = mapped_column(
        TIMESTAMP(timezone=True), server_default=func.now(), nullable=False
    )


class CategoryModel(Base):
    __tablename__ = "categories"

    id: Mapped[int] = mapped_column(primary_key=True)
    workspace_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    created_at: Mapped[DateTime] = mapped_column(
        TIMESTAMP(timezone=True), server_default=func.now(), nullable=False
    )


class PresetModel(Base):
    """Recurring planned-expense template"""
    __tablename__ = "presets"

    id: Mapped[int] = mapped_column(primary_key=True)
    workspace_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)

    title: Mapped[str] = mapped_column(Text, nullable=False)
    planned_amount: Mapped[Decimal] = mapped_column(Numeric(precision=20, scale=2), nullable=False, default=Decimal("0"))

    # Recurrence rule fields
    frequency: Mapped[str] = mapped_column(String(16), nullable=False, default=FREQ_MONTHLY)  # none/daily/weekly/monthly/yearly
    interval: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    weekly_weekday: Mapped[int] = mapped_column(SmallInteger, nullable=False, default=6)  # 1..7
    monthly_day_of_month: Mapped[int] = mapped_column(SmallInteger, nullable=False, default=15)  # 1..31
    monthly_is_last_day: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default=false())
    yearly_month: Mapped[int] = mapped_column(SmallInteger, nullable=False, default=1)  # 1..12
    yearly_day_of_month: Mapped[int] = mapped_column(SmallInteger, nullable=False, default=15)  # 1..31

    default_card_id: Mapped[int | None] = mapped_column(Integer, nullable=True)  # -> cards
    default_category_id: Mapped[int | None] = mapped_column(Integer, nullable=True)  # -> categories

    is_archived: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default=false())
    created_at: Mapped[DateTime] = mapped_column(
        TIMESTAMP(timezone=True), server_default=func.now(), nullable=False
    )
    archived_at: Mapped[DateTime | None] = mapped_column(TIMESTAMP(timezone=True), nullable=True)


class BudgetModel(Base):
    """Named, inclusive date window"""
    __tablename__ = "budgets"

    id: Mapped[int] = mapped_column(primary_key=True)
    workspace_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    start_date: Mapped[date_type] = mapped_column(Date, nullable=False)
    end_date: Mapped[date_type] = mapped_column(Date, nullable=False)
    created_at: Mapped[DateTime] = mapped_column(
        TIMESTAMP(timezone=True), server_default=func.now(), nullable=False
    )


class BudgetCardLink(Base):
    """Join row: card attached to a budget. Endpoints are plain ids and may dangle."""
    __tablename__ = "budget_card_links"

    id: Mapped[int] = mapped_column(primary_key=True)
    budget_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    card_id: Mapped[int] = mapped_column(Integer, nullable=False)

    __table_args__ = (
        UniqueConstraint('budget_id', 'card_id', name='uq_budget_card_link'),
    )


class BudgetPresetLink(Base):
    """Join row: preset attached to a budget. Endpoints are plain ids and may dangle."""
    __tablename__ = "budget_preset_links"

    id: Mapped[int] = mapped_column(primary_key=True)
    budget_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    preset_id: Mapped[int] = mapped_column(Integer, nullable=False)

    __table_args__ = (
        UniqueConstraint('budget_id', 'preset_id', name='uq_budget_preset_link'),
    )


class PlannedExpenseModel(Base):
    """Planned expense, either manual or generated from a preset into a budget"""
    __tablename__ = "planned_expenses"

    id: Mapped[int] = mapped_column(primary_key=True)
    workspace_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)

    title: Mapped[str] = mapped_column(Text, nullable=False)
    planned_amount: Mapped[Decimal] = mapped_column(Numeric(precision=20, scale=2), nullable=False, default=Decimal("0"))
    actual_amount: Mapped[Decimal] = mapped_column(Numeric(precision=20, scale=2), nullable=False, default=Decimal("0"))
    expense_date: Mapped[date_type] = mapped_column(Date, nullable=False)

    card_id: Mapped[int | None] = mapped_column(Integer, nullable=True)  # -> cards
    category_id: Mapped[int | None] = mapped_column(Integer, nullable=True)  # -> categories

    # Provenance: both NULL (manual) or both set (generated)
    source_preset_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    source_budget_id: Mapped[int | None] = mapped_column(Integer, nullable=True)

    created_at: Mapped[DateTime] = mapped_column(
        TIMESTAMP(timezone=True), server_default=func.now(), nullable=False
    )

    __table_args__ = (
        CheckConstraint(
            "(source_preset_id IS NULL AND source_budget_id IS NULL) OR "
            "(source_preset_id IS NOT NULL AND source_budget_id IS NOT NULL)",
            name='ck_planned_expense_provenance',
        ),
        UniqueConstraint('source_budget_id', 'source_preset_id', 'expense_date', name='uq_generated_planned_expense'),
        Index('ix_planned_expense_budget_card', 'source_budget_id', 'card_id'),
    )

    @property
    def provenance(self) -> Provenance:
        return provenance_from_columns(self.source_preset_id, self.source_budget_id)

    @property
    def is_generated(self) -> bool:
        return self.source_preset_id is not None and self.source_budget_id is not None

    @property
    def is_recorded(self) -> bool:
        return (self.actual_amount or 0) > 0

    @property
    def effective_amount(self) -> Decimal:
        """Actual amount once something was recorded, otherwise the planned amount."""
        if self.is_recorded:
            return self.actual_amount
        return self.planned_amount
