"""add trial_history, subscription_analytics and plan prices

Revision ID: 002
Revises: 001
Create Date: 2026-10-19 09:05:00.000000
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
        'trial_history',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('clinic_id', sa.Uuid(), sa.ForeignKey('clinics.id', ondelete='CASCADE'), nullable=False),
        sa.Column('activated_by', sa.Uuid(), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('activated_at', sa.DateTime(), nullable=False),
        sa.Column('duration_days', sa.Integer(), nullable=False),
        sa.Column('expires_at', sa.DateTime(), nullable=False),
        sa.Column('status', sa.String(), nullable=False, server_default='active'),
        sa.Column('ended_at', sa.DateTime(), nullable=True),
    )
    op.create_index(op.f('ix_trial_history_clinic_id'), 'trial_history', ['clinic_id'], unique=False)
    # At most one active trial per clinic
    op.create_index(
        'uq_trial_history_one_active',
        'trial_history',
        ['clinic_id'],
        unique=True,
        postgresql_where=sa.text("status = 'active'"),
        sqlite_where=sa.text("status = 'active'"),
    )

    op.create_table(
        'subscription_analytics',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('clinic_id', sa.Uuid(), sa.ForeignKey('clinics.id', ondelete='CASCADE'), nullable=False),
        sa.Column('plan_name', sa.String(), nullable=False),
        sa.Column('event_type', sa.String(), nullable=False),
        sa.Column('event_data', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )
    op.create_index(op.f('ix_subscription_analytics_clinic_id'), 'subscription_analytics', ['clinic_id'], unique=False)
    op.create_index(
        'ix_subscription_analytics_type_created',
        'subscription_analytics',
        ['event_type', 'created_at'],
        unique=False,
    )

    op.create_table(
        'subscription_plan_prices',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('plan_name', sa.String(), nullable=False, unique=True),
        sa.Column('price_per_patient', sa.Numeric(10, 2), nullable=False),
        sa.Column('description', sa.String(), nullable=True),
        sa.Column('active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
    )


def downgrade() -> None:
    op.drop_table('subscription_plan_prices')
    op.drop_index('ix_subscription_analytics_type_created', table_name='subscription_analytics')
    op.drop_index(op.f('ix_subscription_analytics_clinic_id'), table_name='subscription_analytics')
    op.drop_table('subscription_analytics')
    op.drop_index('uq_trial_history_one_active', table_name='trial_history')
    op.drop_index(op.f('ix_trial_history_clinic_id'), table_name='trial_history')
    op.drop_table('trial_history')
