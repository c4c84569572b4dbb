"""Initial access-consent schema

Revision ID: 001
Revises:
Create Date: 2026-10-19 12:00:00.000000

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '001'
down_revision = None
branch_labels = None
depends_on = None

ENUM_TYPES = (
    'userrole',
    'accessrequeststatus',
    'grantstatus',
    'followuptype',
    'followupstatus',
)


def _audit_columns():
    return [
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    ]


def upgrade() -> None:
    # Directory tables
    op.create_table('clinics',
        *_audit_columns(),
        sa.Column('name', sa.String(length=200), nullable=False),
        sa.Column('phone_number', sa.String(length=20), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )

    op.create_table('users',
        *_audit_columns(),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('first_name', sa.String(length=100), nullable=False),
        sa.Column('last_name', sa.String(length=100), nullable=False),
        sa.Column('role', sa.Enum('pet_owner', 'veterinarian', 'vet_tech', 'clinic_admin', name='userrole'), nullable=False),
        sa.Column('clinic_id', sa.Uuid(), nullable=True),
        sa.ForeignKeyConstraint(['clinic_id'], ['clinics.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('email'),
    )
    op.create_index('idx_users_clinic', 'users', ['clinic_id'])

    op.create_table('pets',
        *_audit_columns(),
        sa.Column('owner_id', sa.Uuid(), nullable=False),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('species', sa.String(length=50), nullable=True),
        sa.ForeignKeyConstraint(['owner_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_pets_owner_id', 'pets', ['owner_id'])

    # Access requests
    op.create_table('access_requests',
        *_audit_columns(),
        sa.Column('pet_id', sa.Uuid(), nullable=False),
        sa.Column('clinic_id', sa.Uuid(), nullable=False),
        sa.Column('requesting_actor_id', sa.Uuid(), nullable=True),
        sa.Column('reason', sa.Text(), nullable=False),
        sa.Column('status', sa.Enum('pending', 'approved', 'rejected', 'expired', name='accessrequeststatus'), nullable=False),
        sa.Column('decided_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('rejection_reason', sa.String(length=500), nullable=True),
        sa.CheckConstraint('expires_at > created_at', name='ck_access_requests_expires_after_created'),
        sa.CheckConstraint("status = 'rejected' OR rejection_reason IS NULL", name='ck_access_requests_rejection_reason_only_when_rejected'),
        sa.CheckConstraint("status = 'pending' OR decided_at IS NOT NULL", name='ck_access_requests_decided_at_when_terminal'),
        sa.ForeignKeyConstraint(['pet_id'], ['pets.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['clinic_id'], ['clinics.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['requesting_actor_id'], ['users.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(
        'uq_access_requests_pending_pair', 'access_requests', ['pet_id', 'clinic_id'],
        unique=True,
        postgresql_where=sa.text("status = 'pending'"),
        sqlite_where=sa.text("status = 'pending'"),
    )
    op.create_index('idx_access_requests_pet_clinic', 'access_requests', ['pet_id', 'clinic_id'])
    op.create_index('idx_access_requests_clinic_status', 'access_requests', ['clinic_id', 'status'])
    op.create_index('idx_access_requests_status_expires', 'access_requests', ['status', 'expires_at'])

    # Access grants
    op.create_table('access_grants',
        *_audit_columns(),
        sa.Column('pet_id', sa.Uuid(), nullable=False),
        sa.Column('clinic_id', sa.Uuid(), nullable=False),
        sa.Column('source_request_id', sa.Uuid(), nullable=True),
        sa.Column('granted_by_actor_id', sa.Uuid(), nullable=True),
        sa.Column('granted_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('status', sa.Enum('active', 'revoked', 'expired', name='grantstatus'), nullable=False),
        sa.Column('revoked_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('revoked_by_actor_id', sa.Uuid(), nullable=True),
        sa.Column('expired_at', sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint('expires_at IS NULL OR expires_at > granted_at', name='ck_access_grants_expires_after_granted'),
        sa.CheckConstraint("status != 'revoked' OR revoked_at IS NOT NULL", name='ck_access_grants_revoked_at_when_revoked'),
        sa.ForeignKeyConstraint(['pet_id'], ['pets.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['clinic_id'], ['clinics.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['source_request_id'], ['access_requests.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['granted_by_actor_id'], ['users.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['revoked_by_actor_id'], ['users.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('source_request_id'),
    )
    op.create_index(
        'uq_access_grants_active_pair', 'access_grants', ['pet_id', 'clinic_id'],
        unique=True,
        postgresql_where=sa.text("status = 'active'"),
        sqlite_where=sa.text("status = 'active'"),
    )
    op.create_index('idx_access_grants_pair_granted', 'access_grants', ['pet_id', 'clinic_id', 'granted_at'])
    op.create_index('idx_access_grants_status_expires', 'access_grants', ['status', 'expires_at'])

    # Follow-up requests
    op.create_table('follow_up_requests',
        *_audit_columns(),
        sa.Column('pet_id', sa.Uuid(), nullable=False),
        sa.Column('clinic_id', sa.Uuid(), nullable=False),
        sa.Column('veterinarian_id', sa.Uuid(), nullable=True),
        sa.Column('follow_up_type', sa.Enum('post_surgery', 'medication', 'chronic_condition', 'recovery', 'checkup', name='followuptype'), nullable=False),
        sa.Column('scheduled_date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('reason', sa.Text(), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('status', sa.Enum('pending', 'approved', 'rejected', name='followupstatus'), nullable=False),
        sa.Column('approved_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('rejected_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('rejection_reason', sa.String(length=500), nullable=True),
        sa.CheckConstraint("status != 'approved' OR approved_at IS NOT NULL", name='ck_follow_up_requests_approved_at_when_approved'),
        sa.CheckConstraint("status != 'rejected' OR rejected_at IS NOT NULL", name='ck_follow_up_requests_rejected_at_when_rejected'),
        sa.ForeignKeyConstraint(['pet_id'], ['pets.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['clinic_id'], ['clinics.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['veterinarian_id'], ['users.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(
        'uq_follow_up_requests_pending_pair', 'follow_up_requests', ['pet_id', 'clinic_id'],
        unique=True,
        postgresql_where=sa.text("status = 'pending'"),
        sqlite_where=sa.text("status = 'pending'"),
    )
    op.create_index('idx_follow_up_requests_pet_clinic', 'follow_up_requests', ['pet_id', 'clinic_id'])
    op.create_index('idx_follow_up_requests_clinic_scheduled', 'follow_up_requests', ['clinic_id', 'scheduled_date'])


def downgrade() -> None:
    # Drop tables in reverse dependency order
    op.drop_table('follow_up_requests')
    op.drop_table('access_grants')
    op.drop_table('access_requests')
    op.drop_table('pets')
    op.drop_table('users')
    op.drop_table('clinics')

    # Drop enum types (no-op on backends without named types)
    bind = op.get_bind()
    for name in ENUM_TYPES:
        sa.Enum(name=name).drop(bind, checkfirst=True)
