"""create_approval_workflow_tables

Revision ID: 7b1e4c2a9d10
Revises:
Create Date: 2026-10-12 09:20:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = '7b1e4c2a9d10'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'approval_items',
        sa.Column('id', postgresql.UUID(as_uuid=True), server_default=sa.text('gen_random_uuid()'), nullable=False),
        sa.Column('reference', sa.String(100), nullable=False),
        sa.Column('amount', sa.Numeric(18, 2), nullable=False),
        sa.Column('category', sa.String(50), nullable=False),
        sa.Column('priority', sa.String(20), nullable=False),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column('contractor_name', sa.String(255), nullable=True),
        sa.Column('submitted_by', sa.String(255), nullable=True),
        sa.Column('project_code', sa.String(50), nullable=True),
        sa.Column('attachments', sa.JSON(), nullable=False),
        sa.Column('metadata', sa.JSON(), nullable=False),
        sa.Column('tier', sa.String(100), nullable=False),
        sa.Column('rule_version', sa.String(100), nullable=False),
        sa.Column('max_level', sa.Integer(), nullable=False),
        sa.Column('escalation_after_seconds', sa.Integer(), nullable=False),
        sa.Column('allow_batch', sa.Boolean(), nullable=False),
        sa.Column('requires_signature', sa.Boolean(), nullable=False),
        sa.Column('current_level', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(20), nullable=False),
        sa.Column('escalation_count', sa.Integer(), nullable=False),
        sa.Column('submitted_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('due_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('last_activity_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('decided_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('version', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.CheckConstraint('current_level >= 1 AND current_level <= max_level', name='ck_approval_items_level'),
        sa.PrimaryKeyConstraint('id', name='pk_approval_items'),
    )
    op.create_index('ix_approval_items_reference', 'approval_items', ['reference'])
    op.create_index('ix_approval_items_category', 'approval_items', ['category'])
    op.create_index('ix_approval_items_status', 'approval_items', ['status'])
    op.create_index('ix_approval_items_status_due_at', 'approval_items', ['status', 'due_at'])

    op.create_table(
        'approval_history',
        sa.Column('id', postgresql.UUID(as_uuid=True), server_default=sa.text('gen_random_uuid()'), nullable=False),
        sa.Column('item_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('sequence', sa.Integer(), nullable=False),
        sa.Column('level', sa.Integer(), nullable=False),
        sa.Column('actor_name', sa.String(255), nullable=False),
        sa.Column('actor_role', sa.String(100), nullable=False),
        sa.Column('action', sa.String(20), nullable=False),
        sa.Column('acted_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('time_spent_seconds', sa.Float(), nullable=False),
        sa.Column('comments', sa.Text(), nullable=True),
        sa.Column('signature', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.ForeignKeyConstraint(['item_id'], ['approval_items.id'], name='fk_approval_history_item_id_approval_items'),
        sa.PrimaryKeyConstraint('id', name='pk_approval_history'),
        sa.UniqueConstraint('item_id', 'sequence', name='uq_approval_history_item_sequence'),
    )
    op.create_index('ix_approval_history_item_id', 'approval_history', ['item_id'])

    op.create_table(
        'audit_logs',
        sa.Column('id', postgresql.UUID(as_uuid=True), server_default=sa.text('gen_random_uuid()'), nullable=False),
        sa.Column('actor_name', sa.String(255), nullable=True),
        sa.Column('actor_role', sa.String(100), nullable=True),
        sa.Column('action', sa.String(100), nullable=False),
        sa.Column('entity_type', sa.String(100), nullable=False),
        sa.Column('entity_id', postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column('after_state', sa.Text(), nullable=True),
        sa.Column('rule_version', sa.String(100), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.PrimaryKeyConstraint('id', name='pk_audit_logs'),
    )
    op.create_index('ix_audit_logs_action', 'audit_logs', ['action'])
    op.create_index('ix_audit_logs_entity_type', 'audit_logs', ['entity_type'])
    op.create_index('ix_audit_logs_entity_id', 'audit_logs', ['entity_id'])


def downgrade() -> None:
    op.drop_index('ix_audit_logs_entity_id', table_name='audit_logs')
    op.drop_index('ix_audit_logs_entity_type', table_name='audit_logs')
    op.drop_index('ix_audit_logs_action', table_name='audit_logs')
    op.drop_table('audit_logs')
    op.drop_index('ix_approval_history_item_id', table_name='approval_history')
    op.drop_table('approval_history')
    op.drop_index('ix_approval_items_status_due_at', table_name='approval_items')
    op.drop_index('ix_approval_items_status', table_name='approval_items')
    op.drop_index('ix_approval_items_category', table_name='approval_items')
    op.drop_index('ix_approval_items_reference', table_name='approval_items')
    op.drop_table('approval_items')
