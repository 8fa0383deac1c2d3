"""initial_placement_schema

Revision ID: 3f1c2a9d7b10
Revises:
Create Date: 2026-10-19 09:00:00.000000+00:00

"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision = '3f1c2a9d7b10'
down_revision = None
branch_labels = None
depends_on = None

JSONType = sa.JSON().with_variant(postgresql.JSONB(), "postgresql")


def _common_columns():
    return [
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
    ]


def _uuid_fk(name, target, nullable=False, ondelete=None):
    return sa.Column(name, sa.Uuid(), sa.ForeignKey(target, ondelete=ondelete), nullable=nullable)


def upgrade() -> None:
    """Create users, organisations, requirements, assignments and notifications."""

    op.create_table(
        'users',
        *_common_columns(),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('full_name', sa.String(length=255), nullable=False),
        sa.Column('role', sa.String(length=40), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_users_email', 'users', ['email'], unique=True)
    op.create_index('ix_users_role', 'users', ['role'])

    op.create_table(
        'clients',
        *_common_columns(),
        _uuid_fk('user_id', 'users.id'),
        sa.Column('company_name', sa.String(length=255), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_clients_user_id', 'clients', ['user_id'], unique=True)

    op.create_table(
        'agencies',
        *_common_columns(),
        _uuid_fk('user_id', 'users.id'),
        sa.Column('agency_name', sa.String(length=255), nullable=False),
        sa.Column('country', sa.String(length=100), nullable=True),
        sa.Column('status', sa.String(length=40), nullable=False, server_default='PENDING'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_agencies_user_id', 'agencies', ['user_id'], unique=True)
    op.create_index('ix_agencies_agency_name', 'agencies', ['agency_name'])
    op.create_index('ix_agencies_status', 'agencies', ['status'])

    op.create_table(
        'requirements',
        *_common_columns(),
        _uuid_fk('client_id', 'clients.id'),
        sa.Column('status', sa.String(length=40), nullable=False, server_default='DRAFT'),
        sa.Column('rejection_reason', sa.Text(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_requirements_client_id', 'requirements', ['client_id'])
    op.create_index('ix_requirements_status', 'requirements', ['status'])

    op.create_table(
        'job_roles',
        *_common_columns(),
        _uuid_fk('requirement_id', 'requirements.id', ondelete='CASCADE'),
        sa.Column('title', sa.String(length=255), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('sort_order', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('nationality', sa.String(length=100), nullable=True),
        sa.Column('salary', sa.String(length=100), nullable=True),
        sa.Column('food_allowance', sa.String(length=100), nullable=True),
        sa.Column('housing_allowance', sa.String(length=100), nullable=True),
        sa.Column('transportation_allowance', sa.String(length=100), nullable=True),
        sa.Column('languages', JSONType, nullable=True),
        sa.Column('min_experience', sa.Integer(), nullable=True),
        sa.Column('max_age', sa.Integer(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        _uuid_fk('assigned_agency_id', 'agencies.id', nullable=True),
        sa.Column('agency_status', sa.String(length=40), nullable=False, server_default='PENDING'),
        sa.Column('admin_status', sa.String(length=40), nullable=False, server_default='PENDING'),
        sa.Column('forwarded_quantity', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('needs_more_labour', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_job_roles_requirement_id', 'job_roles', ['requirement_id'])
    op.create_index('ix_job_roles_assigned_agency_id', 'job_roles', ['assigned_agency_id'])

    op.create_table(
        'job_role_forwardings',
        *_common_columns(),
        _uuid_fk('job_role_id', 'job_roles.id', ondelete='CASCADE'),
        _uuid_fk('agency_id', 'agencies.id'),
        sa.Column('quantity', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('status', sa.String(length=40), nullable=False, server_default='FORWARDED'),
        sa.Column('rejection_reason', sa.Text(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('job_role_id', 'agency_id', name='uq_job_role_forwarding_role_agency'),
    )
    op.create_index('ix_job_role_forwardings_job_role_id', 'job_role_forwardings', ['job_role_id'])
    op.create_index('ix_job_role_forwardings_agency_id', 'job_role_forwardings', ['agency_id'])

    op.create_table(
        'offer_letter_details',
        *_common_columns(),
        _uuid_fk('requirement_id', 'requirements.id', ondelete='CASCADE'),
        sa.Column('working_hours', sa.String(length=100), nullable=True),
        sa.Column('working_days', sa.String(length=100), nullable=True),
        sa.Column('leave_salary', sa.String(length=255), nullable=True),
        sa.Column('end_of_service', sa.String(length=255), nullable=True),
        sa.Column('probation_period', sa.String(length=255), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('requirement_id'),
    )

    op.create_table(
        'labour_profiles',
        *_common_columns(),
        _uuid_fk('agency_id', 'agencies.id'),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column('phone', sa.String(length=30), nullable=True),
        sa.Column('nationality', sa.String(length=100), nullable=True),
        sa.Column('passport_number', sa.String(length=50), nullable=True),
        sa.Column('date_of_birth', sa.Date(), nullable=True),
        sa.Column('languages', JSONType, nullable=True),
        sa.Column('experience_years', sa.String(length=20), nullable=True),
        sa.Column('status', sa.String(length=40), nullable=False, server_default='RECEIVED'),
        sa.Column('verification_status', sa.String(length=40), nullable=False, server_default='PENDING'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_labour_profiles_agency_id', 'labour_profiles', ['agency_id'])
    op.create_index('ix_labour_profiles_passport_number', 'labour_profiles', ['passport_number'])
    op.create_index('ix_labour_profiles_status', 'labour_profiles', ['status'])

    op.create_table(
        'labour_assignments',
        *_common_columns(),
        _uuid_fk('labour_id', 'labour_profiles.id'),
        _uuid_fk('job_role_id', 'job_roles.id', ondelete='CASCADE'),
        _uuid_fk('agency_id', 'agencies.id'),
        sa.Column('agency_status', sa.String(length=40), nullable=False, server_default='ACCEPTED'),
        sa.Column('admin_status', sa.String(length=40), nullable=False, server_default='PENDING'),
        sa.Column('client_status', sa.String(length=40), nullable=False, server_default='PENDING'),
        sa.Column('admin_feedback', sa.Text(), nullable=True),
        sa.Column('client_feedback', sa.Text(), nullable=True),
        sa.Column('is_backup', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('current_stage', sa.String(length=40), nullable=False, server_default='OFFER_LETTER_SIGN'),
        sa.Column('signed_offer_letter_url', sa.String(length=500), nullable=True),
        sa.Column('visa_url', sa.String(length=500), nullable=True),
        sa.Column('flight_ticket_url', sa.String(length=500), nullable=True),
        sa.Column('medical_certificate_url', sa.String(length=500), nullable=True),
        sa.Column('police_clearance_url', sa.String(length=500), nullable=True),
        sa.Column('employment_contract_url', sa.String(length=500), nullable=True),
        sa.Column('additional_documents_urls', JSONType, nullable=True),
        sa.Column('travel_date', sa.Date(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_labour_assignments_labour_id', 'labour_assignments', ['labour_id'])
    op.create_index('ix_labour_assignments_job_role_id', 'labour_assignments', ['job_role_id'])
    op.create_index('ix_labour_assignments_agency_id', 'labour_assignments', ['agency_id'])
    op.create_index('ix_labour_assignments_current_stage', 'labour_assignments', ['current_stage'])

    op.create_table(
        'labour_stage_history',
        *_common_columns(),
        _uuid_fk('assignment_id', 'labour_assignments.id', ondelete='CASCADE'),
        sa.Column('stage', sa.String(length=40), nullable=False),
        sa.Column('status', sa.String(length=40), nullable=False, server_default='PENDING'),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('completed_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_labour_stage_history_assignment_id', 'labour_stage_history', ['assignment_id'])

    op.create_table(
        'notifications',
        *_common_columns(),
        _uuid_fk('recipient_id', 'users.id', ondelete='CASCADE'),
        sa.Column('type', sa.String(length=40), nullable=False),
        sa.Column('title', sa.String(length=255), nullable=False),
        sa.Column('message', sa.Text(), nullable=False),
        sa.Column('priority', sa.String(length=40), nullable=False, server_default='NORMAL'),
        sa.Column('action_url', sa.String(length=500), nullable=True),
        sa.Column('is_read', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_notifications_recipient_id', 'notifications', ['recipient_id'])
    op.create_index('ix_notifications_is_read', 'notifications', ['is_read'])

    op.create_table(
        'audit_logs',
        *_common_columns(),
        sa.Column('action', sa.String(length=100), nullable=False),
        sa.Column('entity_type', sa.String(length=100), nullable=False),
        sa.Column('entity_id', sa.String(length=64), nullable=False),
        _uuid_fk('performed_by_id', 'users.id', nullable=True),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('old_data', JSONType, nullable=True),
        sa.Column('new_data', JSONType, nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_audit_logs_action', 'audit_logs', ['action'])
    op.create_index('ix_audit_logs_entity_id', 'audit_logs', ['entity_id'])


def downgrade() -> None:
    """Drop every placement table."""
    for table in (
        'audit_logs',
        'notifications',
        'labour_stage_history',
        'labour_assignments',
        'labour_profiles',
        'offer_letter_details',
        'job_role_forwardings',
        'job_roles',
        'requirements',
        'agencies',
        'clients',
        'users',
    ):
        op.drop_table(table)
