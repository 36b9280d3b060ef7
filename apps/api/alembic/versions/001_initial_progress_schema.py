"""initial progress schema: users, playlists, video_progress, notes_usage

Revision ID: 001_initial_progress_schema
Revises:
Create Date: 2025-01-15 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '001_initial_progress_schema'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'users',
        sa.Column('id', sa.Text(), primary_key=True),
        sa.Column('email', sa.Text(), nullable=True),
        sa.Column('name', sa.Text(), nullable=True),
        sa.Column('avatar_url', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )

    op.create_table(
        'playlists',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('user_id', sa.Text(), nullable=False),
        sa.Column('youtube_playlist_id', sa.Text(), nullable=False),
        sa.Column('title', sa.Text(), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('thumbnail_url', sa.Text(), nullable=True),
        sa.Column('channel_id', sa.Text(), nullable=True),
        sa.Column('channel_title', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint('user_id', 'youtube_playlist_id', name='uq_playlists_user_youtube_playlist'),
    )
    op.create_index('ix_playlists_user_id', 'playlists', ['user_id'])

    op.create_table(
        'video_progress',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('user_id', sa.Text(), nullable=False),
        sa.Column('playlist_id', sa.Text(), nullable=False),
        sa.Column('video_id', sa.Text(), nullable=False),
        sa.Column('watched_seconds', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('total_seconds', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('completed', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('last_watched', sa.DateTime(timezone=True), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint('user_id', 'playlist_id', 'video_id', name='uq_video_progress_user_playlist_video'),
        sa.CheckConstraint('watched_seconds >= 0', name='ck_video_progress_watched_nonneg'),
        sa.CheckConstraint('total_seconds >= 0', name='ck_video_progress_total_nonneg'),
    )
    op.create_index('ix_video_progress_user_last_watched', 'video_progress', ['user_id', 'last_watched'])

    op.create_table(
        'notes_usage',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('user_id', sa.Text(), nullable=False),
        sa.Column('day', sa.Date(), nullable=False),
        sa.Column('count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint('user_id', 'day', name='uq_notes_usage_user_day'),
        sa.CheckConstraint('count >= 0', name='ck_notes_usage_count_nonneg'),
    )


def downgrade() -> None:
    op.drop_table('notes_usage')
    op.drop_index('ix_video_progress_user_last_watched', table_name='video_progress')
    op.drop_table('video_progress')
    op.drop_index('ix_playlists_user_id', table_name='playlists')
    op.drop_table('playlists')
    op.drop_table('users')
