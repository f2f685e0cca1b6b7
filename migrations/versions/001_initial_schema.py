"""Initial schema: item catalog, optimization jobs and results

Revision ID: 001
Revises: 
Create Date: 2026-10-17 10:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Create items table (the optional planning columns may be absent in older catalogs)
    op.create_table(
        'items',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('sku', sa.String(length=100), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('avg_daily_demand', sa.Float(), nullable=True),
        sa.Column('lead_time_days', sa.Float(), nullable=True),
        sa.Column('unit_cost', sa.Float(), nullable=True),
        sa.Column('order_cost', sa.Float(), nullable=True),
        sa.Column('safety_stock', sa.Float(), nullable=True),
        sa.Column('eoq', sa.Float(), nullable=True),
        sa.Column('reorder_point', sa.Float(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('sku')
    )
    op.create_index(op.f('ix_items_id'), 'items', ['id'], unique=False)
    op.create_index(op.f('ix_items_sku'), 'items', ['sku'], unique=True)
    op.create_index(op.f('ix_items_is_active'), 'items', ['is_active'], unique=False)

    # Create optimization_jobs table
    op.create_table(
        'optimization_jobs',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('horizon_days', sa.Integer(), nullable=False),
        sa.Column('service_level', sa.Float(), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='pending'),
        sa.Column('items_total', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('items_processed', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('results', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('started_at', sa.DateTime(), nullable=True),
        sa.Column('completed_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_optimization_jobs_id'), 'optimization_jobs', ['id'], unique=False)
    op.create_index(op.f('ix_optimization_jobs_user_id'), 'optimization_jobs', ['user_id'], unique=False)
    op.create_index(op.f('ix_optimization_jobs_status'), 'optimization_jobs', ['status'], unique=False)
    op.create_index(op.f('ix_optimization_jobs_created_at'), 'optimization_jobs', ['created_at'], unique=False)

    # Create optimization_results table
    op.create_table(
        'optimization_results',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('job_id', sa.Integer(), nullable=False),
        sa.Column('item_id', sa.Integer(), nullable=False),
        sa.Column('eoq', sa.Float(), nullable=True),
        sa.Column('reorder_point', sa.Float(), nullable=True),
        sa.Column('safety_stock', sa.Float(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.ForeignKeyConstraint(['job_id'], ['optimization_jobs.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('job_id', 'item_id', name='uq_optimization_results_job_item')
    )
    op.create_index(op.f('ix_optimization_results_id'), 'optimization_results', ['id'], unique=False)
    op.create_index(op.f('ix_optimization_results_job_id'), 'optimization_results', ['job_id'], unique=False)
    op.create_index(op.f('ix_optimization_results_item_id'), 'optimization_results', ['item_id'], unique=False)


def downgrade() -> None:
    op.drop_table('optimization_results')
    op.drop_table('optimization_jobs')
    op.drop_table('items')
