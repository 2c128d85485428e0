"""Broker metrics time series

Revision ID: 001
Revises:
Create Date: 2026-10-18

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
    op.create_table(
        'broker_metrics',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('broker_name', sa.String(length=32), nullable=False),
        sa.Column('is_connected', sa.Boolean(), nullable=False),
        sa.Column('messages_per_second', sa.Integer(), nullable=True),
        sa.Column('p50_latency_ms', sa.Float(), nullable=True),
        sa.Column('p95_latency_ms', sa.Float(), nullable=True),
        sa.Column('p99_latency_ms', sa.Float(), nullable=True),
        sa.Column('memory_usage_mb', sa.Float(), nullable=True),
        sa.Column('cpu_percentage', sa.Float(), nullable=True),
        sa.Column('connection_count', sa.Integer(), nullable=True),
        sa.Column('uptime', sa.String(length=64), nullable=True),
        sa.Column('partition_count', sa.Integer(), nullable=True),
        sa.Column('broker_count', sa.Integer(), nullable=True),
        sa.Column('topic_stats', sa.JSON(), nullable=True),
        sa.Column('data_source', sa.String(length=16), nullable=True),
        sa.Column('metric_quality', sa.JSON(), nullable=True),
        sa.Column('error_message', sa.Text(), nullable=True),
        sa.Column('captured_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(
        'idx_broker_metrics_broker_captured', 'broker_metrics', ['broker_name', 'captured_at']
    )
    op.create_index('idx_broker_metrics_captured', 'broker_metrics', ['captured_at'])


def downgrade() -> None:
    op.drop_index('idx_broker_metrics_captured', table_name='broker_metrics')
    op.drop_index('idx_broker_metrics_broker_captured', table_name='broker_metrics')
    op.drop_table('broker_metrics')
