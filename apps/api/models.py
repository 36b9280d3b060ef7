from sqlalchemy import Column, Integer, Boolean, CheckConstraint, Date, DateTime, Text, Index, UniqueConstraint
from sqlalchemy.sql import func
from core.database import Base


class User(Base):
    """
    Signed-in user profile.

    The primary key is the identity provider's subject, so it is also the
    ``sub`` claim of every bearer token the API accepts.
    """

    __tablename__ = "users"

    id = Column(Text, primary_key=True)
    email = Column(Text, nullable=True)
    name = Column(Text, nullable=True)
    avatar_url = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)


class Playlist(Base):
    """A YouTube playlist imported by a user. Re-importing refreshes metadata."""

    __tablename__ = "playlists"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Text, nullable=False, index=True)
    youtube_playlist_id = Column(Text, nullable=False)
    title = Column(Text, nullable=False)
    description = Column(Text, nullable=True)
    thumbnail_url = Column(Text, nullable=True)
    channel_id = Column(Text, nullable=True)
    channel_title = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (
        UniqueConstraint("user_id", "youtube_playlist_id", name="uq_playlists_user_youtube_playlist"),
    )


class VideoProgress(Base):
    """
    Watch progress for one video within one playlist for one user.

    Exactly one row per (user_id, playlist_id, video_id); writes go through
    an upsert on that key. ``completed`` is sticky: once true, normal
    progress updates never set it back to false.
    """

    __tablename__ = "video_progress"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Text, nullable=False)
    playlist_id = Column(Text, nullable=False)
    video_id = Column(Text, nullable=False)

    watched_seconds = Column(Integer, default=0, nullable=False)
    # Best known video length; 0 when unknown
    total_seconds = Column(Integer, default=0, nullable=False)
    completed = Column(Boolean, default=False, nullable=False)
    last_watched = Column(DateTime(timezone=True), nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (
        UniqueConstraint("user_id", "playlist_id", "video_id", name="uq_video_progress_user_playlist_video"),
        CheckConstraint("watched_seconds >= 0", name="ck_video_progress_watched_nonneg"),
        CheckConstraint("total_seconds >= 0", name="ck_video_progress_total_nonneg"),
        Index("ix_video_progress_user_last_watched", "user_id", "last_watched"),
    )


class NotesUsage(Base):
    """
    Study-notes generations per user per usage day.

    ``day`` is the calendar date in the fixed usage timezone (see
    services.notes_usage.usage_day). ``count`` never exceeds the daily cap;
    the increment is a conditional upsert so concurrent requests cannot
    overshoot it.
    """

    __tablename__ = "notes_usage"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Text, nullable=False)
    day = Column(Date, nullable=False)
    count = Column(Integer, default=0, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    __table_args__ = (
        UniqueConstraint("user_id", "day", name="uq_notes_usage_user_day"),
        CheckConstraint("count >= 0", name="ck_notes_usage_count_nonneg"),
    )
