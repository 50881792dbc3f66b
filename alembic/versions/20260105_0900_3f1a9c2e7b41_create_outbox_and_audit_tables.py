"""create outbox and audit tables

Revision ID: 3f1a9c2e7b41
Revises:
Create Date: 2026-01-05 09:00:00.000000+00:00

"""
from __future__ import annotations

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = '3f1a9c2e7b41'
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

JSON_TYPE = sa.JSON().with_variant(postgresql.JSONB(astext_type=sa.Text()), 'postgresql')


def upgrade() -> None:
    """Upgrade database schema."""
    op.create_table(
        'outbox_messages',
        sa.Column('type', sa.String(length=255), nullable=False, comment='Payload discriminator'),
        sa.Column('content', sa.Text(), nullable=False, comment='JSON-serialized payload'),
        sa.Column('status', sa.String(length=20), nullable=False, comment='Pending, Processed or Failed'),
        sa.Column(
            'scheduled_at',
            sa.DateTime(timezone=True),
            nullable=False,
            comment='Earliest time the message is eligible for delivery',
        ),
        sa.Column('retry_count', sa.Integer(), nullable=False, comment='Number of failed delivery attempts'),
        sa.Column('last_error', sa.Text(), nullable=True, comment='Last failure description'),
        sa.Column(
            'processed_at',
            sa.DateTime(timezone=True),
            nullable=True,
            comment='When the message was successfully delivered',
        ),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, comment='When the message was staged'),
        sa.Column('id', sa.Uuid(), nullable=False, comment='UUID v7 primary key (time-sortable)'),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_outbox_messages')),
    )
    op.create_index(op.f('ix_outbox_messages_type'), 'outbox_messages', ['type'], unique=False)
    op.create_index(op.f('ix_outbox_messages_processed_at'), 'outbox_messages', ['processed_at'], unique=False)
    op.create_index(
        'ix_outbox_messages_status_scheduled_at',
        'outbox_messages',
        ['status', 'scheduled_at'],
        unique=False,
    )

    op.create_table(
        'audit_logs',
        sa.Column('entity_type', sa.String(length=100), nullable=False, comment='Type of entity affected'),
        sa.Column('entity_id', sa.String(length=255), nullable=False, comment='ID of the affected entity'),
        sa.Column('action', sa.String(length=20), nullable=False, comment='Create, Update or Delete'),
        sa.Column('user_id', sa.String(length=255), nullable=True, comment='Actor who performed the action'),
        sa.Column('old_values', JSON_TYPE, nullable=False, comment='Previous state'),
        sa.Column('new_values', JSON_TYPE, nullable=False, comment='New state'),
        sa.Column('ip_address', sa.String(length=45), nullable=True, comment='Client IP address'),
        sa.Column('user_agent', sa.String(length=500), nullable=True, comment='Client user agent'),
        sa.Column('app_version', sa.String(length=50), nullable=True, comment='Application version that wrote the entry'),
        sa.Column('occurred_at', sa.DateTime(timezone=True), nullable=False, comment='When the mutation occurred'),
        sa.Column('id', sa.Uuid(), nullable=False, comment='UUID v7 primary key (time-sortable)'),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_audit_logs')),
    )
    op.create_index(op.f('ix_audit_logs_action'), 'audit_logs', ['action'], unique=False)
    op.create_index(op.f('ix_audit_logs_user_id'), 'audit_logs', ['user_id'], unique=False)
    op.create_index(op.f('ix_audit_logs_occurred_at'), 'audit_logs', ['occurred_at'], unique=False)
    op.create_index('ix_audit_logs_entity', 'audit_logs', ['entity_type', 'entity_id'], unique=False)


def downgrade() -> None:
    """Downgrade database schema."""
    op.drop_index('ix_audit_logs_entity', table_name='audit_logs')
    op.drop_index(op.f('ix_audit_logs_occurred_at'), table_name='audit_logs')
    op.drop_index(op.f('ix_audit_logs_user_id'), table_name='audit_logs')
    op.drop_index(op.f('ix_audit_logs_action'), table_name='audit_logs')
    op.drop_table('audit_logs')

    op.drop_index('ix_outbox_messages_status_scheduled_at', table_name='outbox_messages')
    op.drop_index(op.f('ix_outbox_messages_processed_at'), table_name='outbox_messages')
    op.drop_index(op.f('ix_outbox_messages_type'), table_name='outbox_messages')
    op.drop_table('outbox_messages')
