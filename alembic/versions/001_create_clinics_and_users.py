"""create clinics and users tables

Revision ID: 001
Revises:
Create Date: 2026-10-19 09:00:00.000000
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
        'clinics',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('subscription_plan', sa.String(), nullable=False, server_default='scheduling'),
        sa.Column('trial_pro_enabled', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('trial_pro_expires_at', sa.DateTime(), nullable=True),
        sa.Column('max_patients', sa.Integer(), nullable=True),
        sa.Column('total_patients', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('monthly_revenue', sa.Numeric(12, 2), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.CheckConstraint(
            "subscription_plan IN ('pro', 'scheduling')",
            name='ck_clinics_subscription_plan',
        ),
        sa.CheckConstraint(
            'NOT trial_pro_enabled OR trial_pro_expires_at IS NOT NULL',
            name='ck_clinics_trial_expiry_set',
        ),
    )
    op.create_index('ix_clinics_trial_sweep', 'clinics', ['trial_pro_enabled', 'trial_pro_expires_at'], unique=False)

    op.create_table(
        'users',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('email', sa.String(), nullable=False),
        sa.Column('full_name', sa.String(), nullable=True),
        sa.Column('clinic_id', sa.Uuid(), sa.ForeignKey('clinics.id'), nullable=True),
        sa.Column('role', sa.String(), nullable=False, server_default='user'),
        sa.Column('is_active', sa.Boolean(), nullable=True, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(), nullable=True),
    )
    op.create_index(op.f('ix_users_email'), 'users', ['email'], unique=True)
    op.create_index(op.f('ix_users_clinic_id'), 'users', ['clinic_id'], unique=False)


def downgrade() -> None:
    op.drop_index(op.f('ix_users_clinic_id'), table_name='users')
    op.drop_index(op.f('ix_users_email'), table_name='users')
    op.drop_table('users')
    op.drop_index('ix_clinics_trial_sweep', table_name='clinics')
    op.drop_table('clinics')
