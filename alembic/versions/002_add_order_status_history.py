"""add order status history

Revision ID: 002
Revises: 001
Create Date: 2025-01-01 12:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '002'
down_revision: Union[str, None] = '001'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'order_status_history',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('order_id', sa.String(length=36), nullable=False),
        sa.Column('source', sa.String(length=20), nullable=False),
        sa.Column('from_status', sa.String(length=20), nullable=True),
        sa.Column('to_status', sa.String(length=20), nullable=True),
        sa.Column('payment', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('payment_id', sa.String(length=64), nullable=True),
        sa.Column('provider_status', sa.String(length=40), nullable=True),
        sa.Column('applied', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('note', sa.String(length=500), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('idx_order_status_history_order_created', 'order_status_history', ['order_id', 'created_at'])
    op.create_index(op.f('ix_order_status_history_order_id'), 'order_status_history', ['order_id'])


def downgrade() -> None:
    op.drop_index(op.f('ix_order_status_history_order_id'), table_name='order_status_history')
    op.drop_index('idx_order_status_history_order_created', table_name='order_status_history')
    op.drop_table('order_status_history')
