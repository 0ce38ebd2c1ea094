"""create_video_progress_tables

Revision ID: b7c1d2e3f4a5
Revises:
Create Date: 2026-10-19 10:30:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = 'b7c1d2e3f4a5'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create users, video_progress and video_checkpoints tables."""
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('username', sa.String(100), nullable=True),
        sa.Column('full_name', sa.String(255), nullable=True),
        sa.Column('role', sa.String(20), nullable=False, server_default='USER'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_users_email', 'users', ['email'], unique=True)

    op.create_table(
        'video_progress',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('course_id', sa.String(64), nullable=False),
        sa.Column('video_id', sa.String(64), nullable=False),
        sa.Column('current_time', sa.Float(), nullable=False, server_default='0.0'),
        sa.Column('duration', sa.Float(), nullable=False, server_default='0.0'),
        sa.Column('progress', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('total_watch_time', sa.Float(), nullable=False, server_default='0.0'),
        sa.Column('is_completed', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('last_watched', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=True),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('user_id', 'course_id', 'video_id', name='uq_user_course_video'),
    )
    op.create_index('ix_video_progress_id', 'video_progress', ['id'])
    op.create_index('ix_video_progress_user_id', 'video_progress', ['user_id'])
    op.create_index('ix_video_progress_course_id', 'video_progress', ['course_id'])
    op.create_index('ix_video_progress_video_id', 'video_progress', ['video_id'])

    op.create_table(
        'video_checkpoints',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('progress_id', sa.Integer(), nullable=False),
        sa.Column('percentage', sa.Integer(), nullable=False),
        sa.Column('time', sa.Float(), nullable=False, server_default='0.0'),
        sa.Column('reached_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=True),
        sa.ForeignKeyConstraint(['progress_id'], ['video_progress.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('progress_id', 'percentage', name='uq_progress_percentage'),
    )
    op.create_index('ix_video_checkpoints_progress_id', 'video_checkpoints', ['progress_id'])


def downgrade() -> None:
    """Drop video progress tables."""
    op.drop_index('ix_video_checkpoints_progress_id', table_name='video_checkpoints')
    op.drop_table('video_checkpoints')
    op.drop_index('ix_video_progress_video_id', table_name='video_progress')
    op.drop_index('ix_video_progress_course_id', table_name='video_progress')
    op.drop_index('ix_video_progress_user_id', table_name='video_progress')
    op.drop_index('ix_video_progress_id', table_name='video_progress')
    op.drop_table('video_progress')
    op.drop_index('ix_users_email', table_name='users')
    op.drop_table('users')
