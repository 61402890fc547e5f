"""create guards, guard_skills and guard_site_assignments

Revision ID: create_guards
Revises:
Create Date: 2026-10-17 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = 'create_guards'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


employment_type = sa.Enum('full-time', 'part-time', 'contract', name='employment_type')
guard_status = sa.Enum('active', 'inactive', 'suspended', 'terminated', name='guard_status')


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        'guards',
        sa.Column('guard_id', sa.Uuid(), nullable=False),
        sa.Column('employee_id', sa.String(length=10), nullable=False),
        sa.Column('first_name', sa.String(length=50), nullable=False),
        sa.Column('last_name', sa.String(length=50), nullable=False),
        sa.Column('email', sa.String(length=254), nullable=False),
        sa.Column('phone', sa.String(length=30), nullable=False),
        sa.Column('address_street', sa.String(length=100), nullable=False),
        sa.Column('address_city', sa.String(length=50), nullable=False),
        sa.Column('address_province', sa.String(length=2), nullable=False),
        sa.Column('address_postal_code', sa.String(length=7), nullable=False),
        sa.Column('address_country', sa.String(length=20), nullable=False),
        sa.Column('emergency_contact_name', sa.String(length=100), nullable=False),
        sa.Column('emergency_contact_relationship', sa.String(length=50), nullable=False),
        sa.Column('emergency_contact_phone', sa.String(length=30), nullable=False),
        sa.Column('hire_date', sa.Date(), nullable=False),
        sa.Column('employment_type', employment_type, nullable=False),
        sa.Column('hourly_rate', sa.Float(), nullable=False),
        sa.Column('status', guard_status, nullable=False),
        sa.Column('license_number', sa.String(length=50), nullable=False),
        sa.Column('license_issue_date', sa.DateTime(), nullable=False),
        sa.Column('license_expiry_date', sa.DateTime(), nullable=False),
        sa.Column('license_issuing_authority', sa.String(length=100), nullable=False),
        sa.Column('first_aid_number', sa.String(length=50), nullable=True),
        sa.Column('first_aid_issue_date', sa.DateTime(), nullable=True),
        sa.Column('first_aid_expiry_date', sa.DateTime(), nullable=True),
        sa.Column('first_aid_issuing_authority', sa.String(length=100), nullable=True),
        sa.Column('loss_prevention_number', sa.String(length=50), nullable=True),
        sa.Column('loss_prevention_issue_date', sa.DateTime(), nullable=True),
        sa.Column('loss_prevention_expiry_date', sa.DateTime(), nullable=True),
        sa.Column('loss_prevention_issuing_authority', sa.String(length=100), nullable=True),
        sa.Column('profile_image', sa.String(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('search_vector', sa.Text(), nullable=False, server_default=''),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
        sa.PrimaryKeyConstraint('guard_id'),
        sa.UniqueConstraint('employee_id', name='uq_guards_employee_id'),
        sa.UniqueConstraint('email', name='uq_guards_email'),
        sa.UniqueConstraint('license_number', name='uq_guards_license_number'),
    )
    op.create_index('ix_guards_status', 'guards', ['status'])
    op.create_index('ix_guards_employment_type', 'guards', ['employment_type'])
    op.create_index('ix_guards_name', 'guards', ['first_name', 'last_name'])
    op.create_index('ix_guards_license_expiry_date', 'guards', ['license_expiry_date'])

    op.create_table(
        'guard_skills',
        sa.Column('skill_id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('guard_id', sa.Uuid(), nullable=False),
        sa.Column('position', sa.Integer(), nullable=False),
        sa.Column('skill', sa.String(), nullable=False),
        sa.ForeignKeyConstraint(['guard_id'], ['guards.guard_id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('skill_id'),
    )
    op.create_index('ix_guard_skills_guard_id', 'guard_skills', ['guard_id'])
    op.create_index('ix_guard_skills_skill', 'guard_skills', ['skill'])

    op.create_table(
        'guard_site_assignments',
        sa.Column('assignment_id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('guard_id', sa.Uuid(), nullable=False),
        sa.Column('site_id', sa.String(), nullable=False),
        sa.Column('assigned_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
        sa.ForeignKeyConstraint(['guard_id'], ['guards.guard_id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('assignment_id'),
        sa.UniqueConstraint('guard_id', 'site_id', name='uq_guard_site_assignments_guard_site'),
    )
    op.create_index('ix_guard_site_assignments_guard_id', 'guard_site_assignments', ['guard_id'])
    op.create_index('ix_guard_site_assignments_site_id', 'guard_site_assignments', ['site_id'])


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_table('guard_site_assignments')
    op.drop_table('guard_skills')
    op.drop_index('ix_guards_license_expiry_date', table_name='guards')
    op.drop_index('ix_guards_name', table_name='guards')
    op.drop_index('ix_guards_employment_type', table_name='guards')
    op.drop_index('ix_guards_status', table_name='guards')
    op.drop_table('guards')
    guard_status.drop(op.get_bind(), checkfirst=True)
    employment_type.drop(op.get_bind(), checkfirst=True)
