"""Initial migration - create all tables

Revision ID: 001_initial
Revises: None
Create Date: 2025-09-01

Creates all database tables for Batch Desk:
- batches: training batches
- students: roster entries with the cached points balance
- batch_people: trainers and coordinators
- point_updates: append-only points ledger
- weekly_best_performers: saved weekly winners
- session_reports: saved session attendance
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers
revision: str = '001_initial'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # ── Batches Table ─────────────────────────────────────────
    op.create_table(
        'batches',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('code', sa.Text(), nullable=False),
        sa.Column('group_name', sa.Text(), nullable=True),
        sa.Column('default_meet_url', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True),
                  server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True),
                  server_default=sa.func.now(), nullable=False),
    )

    # ── Students Table (composite key: ids are unique per batch) ──
    op.create_table(
        'students',
        sa.Column('batch_id', sa.String(36),
                  sa.ForeignKey('batches.id', ondelete='CASCADE'), primary_key=True),
        sa.Column('id', sa.String(64), primary_key=True),
        sa.Column('name', sa.Text(), nullable=False),
        sa.Column('email', sa.Text(), nullable=True),
        sa.Column('phone', sa.Text(), nullable=True),
        sa.Column('points', sa.Integer(), nullable=True),
        sa.Column('position', sa.Integer(), nullable=False, server_default='0'),
    )

    # ── Trainers / Coordinators ───────────────────────────────
    op.create_table(
        'batch_people',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('batch_id', sa.String(36),
                  sa.ForeignKey('batches.id', ondelete='CASCADE'), nullable=False),
        sa.Column('role', sa.String(16), nullable=False),
        sa.Column('name', sa.Text(), nullable=False),
        sa.Column('email', sa.Text(), nullable=True),
        sa.Column('phone', sa.Text(), nullable=True),
        sa.Column('position', sa.Integer(), nullable=False, server_default='0'),
    )

    # ── Point Updates (ledger) ────────────────────────────────
    op.create_table(
        'point_updates',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('student_id', sa.String(64), nullable=False),
        sa.Column('student_name', sa.Text(), nullable=False),
        sa.Column('batch_id', sa.String(36), nullable=False),
        sa.Column('batch_code', sa.Text(), nullable=False),
        sa.Column('points_change', sa.Integer(), nullable=False),
        sa.Column('reason', sa.Text(), nullable=False),
        sa.Column('updated_by', sa.Text(), nullable=False),
        sa.Column('date_iso', sa.String(10), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True),
                  server_default=sa.func.now(), nullable=False),
        sa.CheckConstraint('points_change <> 0', name='ck_point_updates_nonzero'),
    )
    op.create_index('ix_point_updates_batch_id', 'point_updates', ['batch_id'])
    op.create_index('ix_point_updates_student_id', 'point_updates', ['student_id'])
    op.create_index('ix_point_updates_created_at', 'point_updates', ['created_at'])

    # ── Weekly Best Performers ────────────────────────────────
    op.create_table(
        'weekly_best_performers',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('batch_id', sa.String(36), nullable=False),
        sa.Column('batch_code', sa.Text(), nullable=False),
        sa.Column('week_number', sa.Integer(), nullable=False),
        sa.Column('week_start_date', sa.String(10), nullable=False),
        sa.Column('week_end_date', sa.String(10), nullable=False),
        sa.Column('student_id', sa.String(64), nullable=False),
        sa.Column('student_name', sa.Text(), nullable=False),
        sa.Column('final_points', sa.Integer(), nullable=False),
        sa.Column('points_earned', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('points_lost', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('total_students', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('average_points', sa.Float(), nullable=False, server_default='0'),
        sa.Column('is_manual', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('created_by', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True),
                  server_default=sa.func.now(), nullable=False),
    )
    op.create_index('ix_weekly_best_performers_batch_id', 'weekly_best_performers', ['batch_id'])

    # ── Session Reports ───────────────────────────────────────
    op.create_table(
        'session_reports',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('batch_id', sa.String(36), nullable=False),
        sa.Column('batch_code', sa.Text(), nullable=False),
        sa.Column('date_iso', sa.String(10), nullable=False),
        sa.Column('activity_title', sa.Text(), nullable=False),
        sa.Column('activity_description', sa.Text(), nullable=True),
        sa.Column('present_student_ids', sa.Text(), nullable=False, server_default='[]'),
        sa.Column('another_session_student_ids', sa.Text(), nullable=False, server_default='[]'),
        sa.Column('absentee_student_ids', sa.Text(), nullable=False, server_default='[]'),
        sa.Column('tldv_url', sa.Text(), nullable=True),
        sa.Column('meet_url', sa.Text(), nullable=True),
        sa.Column('reported_by', sa.Text(), nullable=False, server_default=''),
        sa.Column('created_at', sa.DateTime(timezone=True),
                  server_default=sa.func.now(), nullable=False),
    )
    op.create_index('ix_session_reports_batch_id', 'session_reports', ['batch_id'])


def downgrade() -> None:
    """Drop all tables in reverse dependency order."""
    op.drop_index('ix_session_reports_batch_id', table_name='session_reports')
    op.drop_table('session_reports')
    op.drop_index('ix_weekly_best_performers_batch_id', table_name='weekly_best_performers')
    op.drop_table('weekly_best_performers')
    op.drop_index('ix_point_updates_created_at', table_name='point_updates')
    op.drop_index('ix_point_updates_student_id', table_name='point_updates')
    op.drop_index('ix_point_updates_batch_id', table_name='point_updates')
    op.drop_table('point_updates')
    op.drop_table('batch_people')
    op.drop_table('students')
    op.drop_table('batches')
