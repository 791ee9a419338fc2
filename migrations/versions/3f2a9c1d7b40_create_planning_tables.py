"""create planning tables

Revision ID: 3f2a9c1d7b40
Revises:
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3f2a9c1d7b40'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'workspaces',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(128), nullable=False),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), server_default=sa.func.now(), nullable=False),
    )

    for table in ('cards', 'categories'):
        op.create_table(
            table,
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('workspace_id', sa.Integer(), nullable=False, index=True),
            sa.Column('name', sa.String(128), nullable=False),
            sa.Column('created_at', sa.TIMESTAMP(timezone=True), server_default=sa.func.now(), nullable=False),
        )

    op.create_table(
        'presets',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('workspace_id', sa.Integer(), nullable=False, index=True),
        sa.Column('title', sa.Text(), nullable=False),
        sa.Column('planned_amount', sa.Numeric(precision=20, scale=2), nullable=False, server_default='0'),
        sa.Column('frequency', sa.String(16), nullable=False, server_default='monthly'),
        sa.Column('interval', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('weekly_weekday', sa.SmallInteger(), nullable=False, server_default='6'),
        sa.Column('monthly_day_of_month', sa.SmallInteger(), nullable=False, server_default='15'),
        sa.Column('monthly_is_last_day', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('yearly_month', sa.SmallInteger(), nullable=False, server_default='1'),
        sa.Column('yearly_day_of_month', sa.SmallInteger(), nullable=False, server_default='15'),
        sa.Column('default_card_id', sa.Integer(), nullable=True),
        sa.Column('default_category_id', sa.Integer(), nullable=True),
        sa.Column('is_archived', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('archived_at', sa.TIMESTAMP(timezone=True), nullable=True),
    )

    op.create_table(
        'budgets',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('workspace_id', sa.Integer(), nullable=False, index=True),
        sa.Column('name', sa.String(128), nullable=False),
        sa.Column('start_date', sa.Date(), nullable=False),
        sa.Column('end_date', sa.Date(), nullable=False),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), server_default=sa.func.now(), nullable=False),
    )

    op.create_table(
        'budget_card_links',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('budget_id', sa.Integer(), nullable=False, index=True),
        sa.Column('card_id', sa.Integer(), nullable=False),
        sa.UniqueConstraint('budget_id', 'card_id', name='uq_budget_card_link'),
    )

    op.create_table(
        'budget_preset_links',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('budget_id', sa.Integer(), nullable=False, index=True),
        sa.Column('preset_id', sa.Integer(), nullable=False),
        sa.UniqueConstraint('budget_id', 'preset_id', name='uq_budget_preset_link'),
    )

    op.create_table(
        'planned_expenses',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('workspace_id', sa.Integer(), nullable=False, index=True),
        sa.Column('title', sa.Text(), nullable=False),
        sa.Column('planned_amount', sa.Numeric(precision=20, scale=2), nullable=False, server_default='0'),
        sa.Column('actual_amount', sa.Numeric(precision=20, scale=2), nullable=False, server_default='0'),
        sa.Column('expense_date', sa.Date(), nullable=False),
        sa.Column('card_id', sa.Integer(), nullable=True),
        sa.Column('category_id', sa.Integer(), nullable=True),
        sa.Column('source_preset_id', sa.Integer(), nullable=True),
        sa.Column('source_budget_id', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.CheckConstraint(
            "(source_preset_id IS NULL AND source_budget_id IS NULL) OR "
            "(source_preset_id IS NOT NULL AND source_budget_id IS NOT NULL)",
            name='ck_planned_expense_provenance',
        ),
        sa.UniqueConstraint('source_budget_id', 'source_preset_id', 'expense_date',
                            name='uq_generated_planned_expense'),
    )

    op.create_index('ix_planned_expense_budget_card', 'planned_expenses', ['source_budget_id', 'card_id'])


def downgrade() -> None:
    op.drop_index('ix_planned_expense_budget_card', table_name='planned_expenses')
    op.drop_table('planned_expenses')
    op.drop_table('budget_preset_links')
    op.drop_table('budget_card_links')
    op.drop_table('budgets')
    op.drop_table('presets')
    op.drop_table('categories')
    op.drop_table('cards')
    op.drop_table('workspaces')
