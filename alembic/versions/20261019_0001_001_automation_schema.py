"""Automation schema - task queue, event log, notifications and outreach entities.

Revision ID: 001
Revises: None
Create Date: 2026-10-19

This migration creates:
- automation_tasks: persisted task queue polled by the dispatcher
- event_log: append-only record of emitted events
- notifications and activities: operator alerts and account timeline
- accounts, send_accounts, scheduled_messages, sent_messages, sequences,
  send_log, unsubscribes: outbound messaging state
- review_requests, retention_reminders: customer follow-up state
- outreach_settings, system_flags: operator settings and daily markers

Enum columns store member names, matching SQLModel's mapping.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

JSON_TYPE = sa.JSON().with_variant(postgresql.JSONB(), "postgresql")


def _enum(name: str, *members: str) -> sa.Enum:
    return sa.Enum(*members, name=name)


def upgrade() -> None:
    # Task queue
    op.create_table(
        'automation_tasks',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('task_type', _enum(
            'tasktype',
            'SEND_MESSAGE', 'FOLLOWUP_STEP', 'POLL_INBOX', 'WARMUP_INCREMENT',
            'RESET_COUNTERS', 'SEND_REVIEW_REQUEST', 'SEND_REVIEW_FOLLOWUP',
            'SEND_RETENTION_REMINDER', 'GENERATE_REPORT', 'COMPUTE_ANALYTICS',
        ), nullable=False),
        sa.Column('subject_id', sa.Uuid(), nullable=True),
        sa.Column('scheduled_at', sa.DateTime(), nullable=False),
        sa.Column('payload', JSON_TYPE, nullable=False),
        sa.Column('priority', _enum('taskpriority', 'LOW', 'NORMAL', 'HIGH'), nullable=False),
        sa.Column('status', _enum(
            'taskstatus', 'PENDING', 'PROCESSING', 'COMPLETED', 'DEAD_LETTER',
        ), nullable=False),
        sa.Column('retry_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('max_retries', sa.Integer(), nullable=False, server_default='3'),
        sa.Column('error_log', JSON_TYPE, nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('last_attempt_at', sa.DateTime(), nullable=True),
        sa.Column('completed_at', sa.DateTime(), nullable=True),
    )
    op.create_index('ix_automation_tasks_task_type', 'automation_tasks', ['task_type'])
    op.create_index('ix_automation_tasks_subject_id', 'automation_tasks', ['subject_id'])
    op.create_index('ix_automation_tasks_scheduled_at', 'automation_tasks', ['scheduled_at'])
    op.create_index('ix_automation_tasks_status', 'automation_tasks', ['status'])

    # Event log
    op.create_table(
        'event_log',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('event_type', sa.String(50), nullable=False),
        sa.Column('subject_id', sa.Uuid(), nullable=True),
        sa.Column('data', JSON_TYPE, nullable=False),
        sa.Column('timestamp', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_event_log_event_type', 'event_log', ['event_type'])
    op.create_index('ix_event_log_subject_id', 'event_log', ['subject_id'])
    op.create_index('ix_event_log_timestamp', 'event_log', ['timestamp'])

    # Notifications and timeline
    op.create_table(
        'notifications',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('notification_type', _enum(
            'notificationtype',
            'REPLY_RECEIVED', 'SEND_FAILED', 'WARMUP_MILESTONE', 'DAILY_LIMIT_REACHED',
            'BOUNCE_DETECTED', 'REVIEW_ALERT', 'TASK_FAILED',
        ), nullable=False),
        sa.Column('title', sa.String(200), nullable=False),
        sa.Column('message', sa.String(), nullable=False),
        sa.Column('subject_id', sa.Uuid(), nullable=True),
        sa.Column('action_url', sa.String(500), nullable=True),
        sa.Column('is_read', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_notifications_notification_type', 'notifications', ['notification_type'])
    op.create_index('ix_notifications_subject_id', 'notifications', ['subject_id'])
    op.create_index('ix_notifications_is_read', 'notifications', ['is_read'])

    op.create_table(
        'activities',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('activity_type', sa.String(50), nullable=False),
        sa.Column('description', sa.String(), nullable=False),
        sa.Column('subject_id', sa.Uuid(), nullable=True),
        sa.Column('timestamp', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_activities_activity_type', 'activities', ['activity_type'])
    op.create_index('ix_activities_subject_id', 'activities', ['subject_id'])
    op.create_index('ix_activities_timestamp', 'activities', ['timestamp'])

    # Accounts
    op.create_table(
        'accounts',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('business_name', sa.String(200), nullable=False),
        sa.Column('contact_name', sa.String(200), nullable=True),
        sa.Column('contact_email', sa.String(255), nullable=True),
        sa.Column('contact_phone', sa.String(50), nullable=True),
        sa.Column('location', sa.String(200), nullable=True),
        sa.Column('services', JSON_TYPE, nullable=False),
        sa.Column('lifecycle_stage', _enum(
            'lifecyclestage',
            'PROSPECT', 'CONTACTED', 'ENGAGED', 'QUALIFIED', 'WON', 'ACTIVE_CLIENT', 'LOST',
        ), nullable=False),
        sa.Column('pipeline_stage', sa.String(50), nullable=True),
        sa.Column('unsubscribed', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('exclude_from_sequences', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('last_contacted', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_accounts_contact_email', 'accounts', ['contact_email'])
    op.create_index('ix_accounts_lifecycle_stage', 'accounts', ['lifecycle_stage'])

    # Outbound messaging
    op.create_table(
        'send_accounts',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('label', sa.String(100), nullable=False),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('daily_limit', sa.Integer(), nullable=False, server_default='50'),
        sa.Column('send_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('imap_host', sa.String(255), nullable=True),
        sa.Column('last_used_at', sa.DateTime(), nullable=True),
    )
    op.create_index('ix_send_accounts_is_active', 'send_accounts', ['is_active'])

    op.create_table(
        'scheduled_messages',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('subject_id', sa.Uuid(), nullable=False),
        sa.Column('sequence_id', sa.Uuid(), nullable=True),
        sa.Column('step_index', sa.Integer(), nullable=True),
        sa.Column('recipient', sa.String(255), nullable=False),
        sa.Column('subject', sa.String(300), nullable=False),
        sa.Column('body', sa.String(), nullable=False),
        sa.Column('scheduled_at', sa.DateTime(), nullable=False),
        sa.Column('status', _enum(
            'scheduledmessagestatus', 'PENDING', 'SENT', 'FAILED', 'CANCELLED',
        ), nullable=False),
        sa.Column('error', sa.String(1000), nullable=True),
        sa.Column('send_account_id', sa.Uuid(), nullable=True),
        sa.Column('sent_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_scheduled_messages_subject_id', 'scheduled_messages', ['subject_id'])
    op.create_index('ix_scheduled_messages_sequence_id', 'scheduled_messages', ['sequence_id'])
    op.create_index('ix_scheduled_messages_scheduled_at', 'scheduled_messages', ['scheduled_at'])
    op.create_index('ix_scheduled_messages_status', 'scheduled_messages', ['status'])

    op.create_table(
        'sent_messages',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('subject_id', sa.Uuid(), nullable=False),
        sa.Column('subject', sa.String(300), nullable=False),
        sa.Column('body', sa.String(), nullable=False),
        sa.Column('template_used', sa.String(50), nullable=False),
        sa.Column('tracking_id', sa.Uuid(), nullable=False),
        sa.Column('sent_at', sa.DateTime(), nullable=False),
        sa.Column('opened_at', sa.DateTime(), nullable=True),
        sa.Column('responded_at', sa.DateTime(), nullable=True),
    )
    op.create_index('ix_sent_messages_subject_id', 'sent_messages', ['subject_id'])
    op.create_index('ix_sent_messages_tracking_id', 'sent_messages', ['tracking_id'])

    op.create_table(
        'sequences',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('name', sa.String(100), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('steps', JSON_TYPE, nullable=False),
    )
    op.create_index('ix_sequences_is_active', 'sequences', ['is_active'])

    op.create_table(
        'send_log',
        sa.Column('day', sa.String(10), primary_key=True),
        sa.Column('count', sa.Integer(), nullable=False, server_default='0'),
    )

    op.create_table(
        'unsubscribes',
        sa.Column('email', sa.String(255), primary_key=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )

    # Customer follow-up
    op.create_table(
        'review_requests',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('subject_id', sa.Uuid(), nullable=False),
        sa.Column('customer_name', sa.String(200), nullable=False),
        sa.Column('customer_email', sa.String(255), nullable=True),
        sa.Column('job_description', sa.String(500), nullable=False),
        sa.Column('job_date', sa.DateTime(), nullable=False),
        sa.Column('review_link', sa.String(500), nullable=False),
        sa.Column('status', _enum(
            'reviewrequeststatus', 'PENDING', 'INITIAL_SENT', 'FOLLOWUP_SENT', 'COMPLETED',
        ), nullable=False),
        sa.Column('initial_sent_at', sa.DateTime(), nullable=True),
        sa.Column('followup_sent_at', sa.DateTime(), nullable=True),
    )
    op.create_index('ix_review_requests_subject_id', 'review_requests', ['subject_id'])
    op.create_index('ix_review_requests_status', 'review_requests', ['status'])

    op.create_table(
        'retention_reminders',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('subject_id', sa.Uuid(), nullable=False),
        sa.Column('customer_name', sa.String(200), nullable=False),
        sa.Column('customer_email', sa.String(255), nullable=True),
        sa.Column('reminder_type', sa.String(50), nullable=False),
        sa.Column('message', sa.String(), nullable=False),
        sa.Column('due_at', sa.DateTime(), nullable=False),
        sa.Column('status', _enum(
            'retentionreminderstatus', 'PENDING', 'SENT', 'CANCELLED',
        ), nullable=False),
        sa.Column('sent_at', sa.DateTime(), nullable=True),
    )
    op.create_index('ix_retention_reminders_subject_id', 'retention_reminders', ['subject_id'])
    op.create_index('ix_retention_reminders_due_at', 'retention_reminders', ['due_at'])
    op.create_index('ix_retention_reminders_status', 'retention_reminders', ['status'])

    # Settings
    op.create_table(
        'outreach_settings',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('sender_name', sa.String(100), nullable=False),
        sa.Column('sender_email', sa.String(255), nullable=False),
        sa.Column('service_offering', sa.String(500), nullable=False),
        sa.Column('value_prop', sa.String(500), nullable=False),
        sa.Column('daily_send_limit', sa.Integer(), nullable=False, server_default='50'),
        sa.Column('warmup_enabled', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('warmup_day_count', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('inbox_polling_enabled', sa.Boolean(), nullable=False, server_default=sa.false()),
    )

    op.create_table(
        'system_flags',
        sa.Column('key', sa.String(100), primary_key=True),
        sa.Column('value', sa.String(255), nullable=False),
    )


def downgrade() -> None:
    # Drop tables in reverse order
    for table in (
        'system_flags',
        'outreach_settings',
        'retention_reminders',
        'review_requests',
        'unsubscribes',
        'send_log',
        'sequences',
        'sent_messages',
        'scheduled_messages',
        'send_accounts',
        'accounts',
        'activities',
        'notifications',
        'event_log',
        'automation_tasks',
    ):
        op.drop_table(table)

    # Drop enums (PostgreSQL only; no-op elsewhere)
    bind = op.get_bind()
    for enum_name in (
        'retentionreminderstatus',
        'reviewrequeststatus',
        'scheduledmessagestatus',
        'lifecyclestage',
        'notificationtype',
        'taskstatus',
        'taskpriority',
        'tasktype',
    ):
        sa.Enum(name=enum_name).drop(bind, checkfirst=True)
