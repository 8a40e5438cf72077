"""Create thesis workflow tables

Revision ID: 001
Revises:
Create Date: 2026-10-19 00:00:00.000000

Creates thesis (versioned workflow record), review_feedback_entry
(append-only reviewer comments) and audit_log.
"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = '001'
down_revision = None
branch_labels = None
depends_on = None

THESIS_STATUSES = (
    'draft',
    'submitted',
    'under_review',
    'revision_needed',
    'approved',
    'rejected',
    'published',
)


def upgrade():
    """Create thesis, review_feedback_entry and audit_log tables."""

    thesis_status = postgresql.ENUM(*THESIS_STATUSES, name='thesis_status')
    thesis_status.create(op.get_bind(), checkfirst=True)

    op.create_table(
        'thesis',
        sa.Column('id', postgresql.UUID(as_uuid=True), server_default=sa.text('gen_random_uuid()'), nullable=False),
        sa.Column('title', sa.Text(), nullable=False),
        sa.Column('abstract', sa.Text(), nullable=True),
        sa.Column('keywords', postgresql.JSONB(), server_default=sa.text("'[]'::jsonb"), nullable=False),
        sa.Column('student_ref', sa.Text(), nullable=False),
        sa.Column('supervisor_ref', sa.Text(), nullable=False),
        sa.Column(
            'status',
            postgresql.ENUM(*THESIS_STATUSES, name='thesis_status', create_type=False),
            server_default='draft',
            nullable=False,
        ),
        sa.Column('document_ref', sa.Text(), nullable=True),
        sa.Column('submission_date', sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column('last_resubmitted_at', sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column('approval_date', sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column('review_feedback', sa.Text(), nullable=True),
        sa.Column('version', sa.Integer(), server_default='0', nullable=False),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), server_default=sa.text('NOW()'), nullable=False),
        sa.Column('updated_at', sa.TIMESTAMP(timezone=True), server_default=sa.text('NOW()'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint('version >= 0', name='ck_thesis_version_non_negative'),
        sa.CheckConstraint("length(trim(title)) > 0", name='ck_thesis_title_not_blank'),
    )
    op.create_index('ix_thesis_status', 'thesis', ['status'])
    op.create_index('ix_thesis_student_ref', 'thesis', ['student_ref'])
    op.create_index('ix_thesis_supervisor_ref', 'thesis', ['supervisor_ref'])

    # No FK to thesis: entries outlive a deleted draft as part of the audit trail
    op.create_table(
        'review_feedback_entry',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('thesis_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('status', sa.Text(), nullable=False),
        sa.Column('comment', sa.Text(), nullable=False),
        sa.Column('author_ref', sa.Text(), nullable=True),
        sa.Column('authored_at', sa.TIMESTAMP(timezone=True), server_default=sa.text('NOW()'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(
        'ix_review_feedback_entry_thesis_authored',
        'review_feedback_entry',
        ['thesis_id', 'authored_at'],
    )

    op.create_table(
        'audit_log',
        sa.Column('id', postgresql.UUID(as_uuid=True), server_default=sa.text('gen_random_uuid()'), nullable=False),
        sa.Column('actor_id', sa.Text(), nullable=True),
        sa.Column('actor_role', sa.Text(), nullable=True),
        sa.Column('action', sa.Text(), nullable=False),
        sa.Column('entity_type', sa.Text(), nullable=True),
        sa.Column('entity_id', postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column('metadata_json', postgresql.JSONB(), nullable=True),
        sa.Column('ip_address', sa.Text(), nullable=True),
        sa.Column('user_agent', sa.Text(), nullable=True),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), server_default=sa.text('NOW()'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_audit_log_entity', 'audit_log', ['entity_type', 'entity_id'])
    op.create_index('ix_audit_log_created_at', 'audit_log', ['created_at'])


def downgrade():
    """Drop thesis workflow tables."""
    op.drop_index('ix_audit_log_created_at', table_name='audit_log')
    op.drop_index('ix_audit_log_entity', table_name='audit_log')
    op.drop_table('audit_log')

    op.drop_index('ix_review_feedback_entry_thesis_authored', table_name='review_feedback_entry')
    op.drop_table('review_feedback_entry')

    op.drop_index('ix_thesis_supervisor_ref', table_name='thesis')
    op.drop_index('ix_thesis_student_ref', table_name='thesis')
    op.drop_index('ix_thesis_status', table_name='thesis')
    op.drop_table('thesis')

    postgresql.ENUM(name='thesis_status').drop(op.get_bind(), checkfirst=True)
