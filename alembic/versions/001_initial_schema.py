"""Initial schema - users, support network, health signals, assessments, support

Revision ID: 001_initial_schema
Revises:
Create Date: 2026-10-19 00:00:00.000000

Creates the MindMate analysis and peer-support schema:
- users, buddy_peers, community_memberships: who can be asked for help
- health_samples, check_ins: signals read by the analysis pipeline
- assessments, baselines: pipeline results and the escalation state
- support_statistics, support_history: support counters and log
- notifications: in-app notifications raised by the support flow
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers
revision: str = '001_initial_schema'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _user_fk(name: str = 'user_id', primary_key: bool = False) -> sa.Column:
    return sa.Column(
        name,
        postgresql.UUID(as_uuid=True),
        sa.ForeignKey('users.id', ondelete='CASCADE'),
        nullable=False,
        primary_key=primary_key,
    )


def upgrade() -> None:
    # Users and support network
    op.create_table(
        'users',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('username', sa.String(100), nullable=False),
        sa.Column('display_name', sa.String(255), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_users_username', 'users', ['username'], unique=True)
    op.create_index('ix_users_is_active', 'users', ['is_active'])

    op.create_table(
        'buddy_peers',
        _user_fk(primary_key=True),
        _user_fk('peer_id', primary_key=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now(), nullable=False),
    )
    op.create_index('ix_buddy_peers_peer_id', 'buddy_peers', ['peer_id'])

    op.create_table(
        'community_memberships',
        sa.Column('community_id', postgresql.UUID(as_uuid=True), primary_key=True),
        _user_fk(primary_key=True),
        sa.Column('joined_at', sa.DateTime(), server_default=sa.func.now(), nullable=False),
    )
    op.create_index('ix_community_memberships_user_id', 'community_memberships', ['user_id'])

    # Health signals
    op.create_table(
        'health_samples',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        _user_fk(),
        sa.Column('day', sa.Date(), nullable=False),
        sa.Column('sleep_duration_seconds', sa.Integer(), nullable=True),
        sa.Column('sleep_quality', sa.String(10), nullable=True),
        sa.Column('steps', sa.Integer(), nullable=True),
        sa.Column('exercise_seconds', sa.Integer(), nullable=True),
        sa.Column('exercises', postgresql.JSONB(), nullable=True, server_default='[]'),
        sa.Column('last_synced_at', sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('user_id', 'day', name='uq_health_samples_user_day'),
    )
    op.create_index('ix_health_samples_user_id', 'health_samples', ['user_id'])
    op.create_index('ix_health_samples_day', 'health_samples', ['day'])

    op.create_table(
        'check_ins',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        _user_fk(),
        sa.Column('timestamp', sa.DateTime(), nullable=False),
        sa.Column('mood_score', sa.Float(), nullable=False),
        sa.Column('mood_label', sa.String(50), nullable=False, server_default=''),
        sa.Column('mood_description', sa.Text(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_check_ins_user_id', 'check_ins', ['user_id'])
    op.create_index('ix_check_ins_timestamp', 'check_ins', ['timestamp'])

    # Assessments and baselines
    op.create_table(
        'assessments',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        _user_fk(),
        sa.Column('timestamp', sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.Column('status', sa.String(20), nullable=False),
        sa.Column('confidence_score', sa.Float(), nullable=False),
        sa.Column('reasoning_data', postgresql.JSONB(), nullable=True, server_default='{}'),
        sa.Column('analysis_type', sa.String(20), nullable=False),
        sa.Column('parse_outcome', sa.String(20), nullable=False, server_default='strict'),
        sa.Column('baseline_comparison', postgresql.JSONB(), nullable=True),
        sa.Column('needs_support', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('support_request_status', sa.String(30), nullable=False, server_default='none'),
        sa.Column('support_request_time', sa.DateTime(), nullable=True),
        sa.Column('support_provided_by', postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column('support_provided_time', sa.DateTime(), nullable=True),
        sa.Column('support_reason', sa.Text(), nullable=True),
        sa.Column('support_tips', postgresql.JSONB(), nullable=True, server_default='[]'),
        sa.Column('escalation_due_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_assessments_user_id', 'assessments', ['user_id'])
    op.create_index('ix_assessments_status', 'assessments', ['status'])
    op.create_index('ix_assessments_analysis_type', 'assessments', ['analysis_type'])
    op.create_index('ix_assessments_support_request_status', 'assessments', ['support_request_status'])
    op.create_index('ix_assessments_user_timestamp', 'assessments', ['user_id', 'timestamp'])
    op.create_index('ix_assessments_escalation_due', 'assessments', ['escalation_due_at'])

    op.create_table(
        'baselines',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        _user_fk(),
        sa.Column('established_at', sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.Column('metrics', postgresql.JSONB(), nullable=True, server_default='{}'),
        sa.Column('exercise_minutes_per_week', sa.Float(), nullable=True),
        sa.Column('confidence_score', sa.Float(), nullable=False),
        sa.Column('raw_assessment', postgresql.JSONB(), nullable=True, server_default='{}'),
        sa.Column('parse_outcome', sa.String(20), nullable=False, server_default='strict'),
        sa.Column('total_days', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('days_with_sleep_data', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('days_with_activity_data', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('check_ins_count', sa.Integer(), nullable=False, server_default='0'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_baselines_user_id', 'baselines', ['user_id'])
    op.create_index('ix_baselines_user_established', 'baselines', ['user_id', 'established_at'])

    # Support statistics and notifications
    op.create_table(
        'support_statistics',
        _user_fk(primary_key=True),
        sa.Column('provided_total', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('provided_buddy', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('provided_community', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('provided_global', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('last_provided_at', sa.DateTime(), nullable=True),
        sa.Column('received_total', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('received_buddy', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('received_community', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('received_global', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('last_received_at', sa.DateTime(), nullable=True),
    )

    op.create_table(
        'support_history',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        _user_fk(),
        sa.Column('direction', sa.String(10), nullable=False),
        sa.Column('tier', sa.String(10), nullable=False),
        sa.Column('timestamp', sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.Column('counterpart_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('assessment_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_support_history_user_id', 'support_history', ['user_id'])

    op.create_table(
        'notifications',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        _user_fk(),
        sa.Column('type', sa.String(30), nullable=False),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('message', sa.Text(), nullable=False),
        sa.Column('action_route', sa.String(100), nullable=True),
        sa.Column('related_id', sa.String(64), nullable=True),
        sa.Column('data', postgresql.JSONB(), nullable=True, server_default='{}'),
        sa.Column('read', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_notifications_user_id', 'notifications', ['user_id'])


def downgrade() -> None:
    op.drop_table('notifications')
    op.drop_table('support_history')
    op.drop_table('support_statistics')
    op.drop_table('baselines')
    op.drop_table('assessments')
    op.drop_table('check_ins')
    op.drop_table('health_samples')
    op.drop_table('community_memberships')
    op.drop_table('buddy_peers')
    op.drop_table('users')
