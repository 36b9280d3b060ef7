"""
Video Progress Service

Derivation rules for the per-(user, playlist, video) watch record and its
persistence.

Rules:
- A video is complete at 90% watched, or when the viewer says so.
- Completion is sticky: a later, smaller position never clears it.
- A known stored length survives a transient zero length from the player;
  otherwise the freshly reported length wins.
- Every write stamps ``last_watched`` with the current time.

Writes go through a single upsert on (user_id, playlist_id, video_id). The
conflict branch ORs the stored and incoming ``completed`` flags in SQL so two
concurrent writers can never revert a completion.
"""

import logging
import math
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Iterable, List, Optional, Tuple

from sqlalchemy import or_
from sqlalchemy.orm import Session

from models import VideoProgress

logger = logging.getLogger(__name__)

COMPLETION_THRESHOLD = 0.9

# A record needs this much watched time (seconds) before it offers a resume point
RESUME_MIN_SECONDS = 30


@dataclass
class ProgressState:
    """Watch state produced by a merge, before or after persistence."""
    watched_seconds: int
    total_seconds: int
    completed: bool
    last_watched: datetime


def to_whole_seconds(value: Any) -> int:
    """Round half up to a non-negative int; None/NaN/negative become 0."""
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0
    if not math.isfinite(number) or number <= 0:
        return 0
    return int(math.floor(number + 0.5))


def completion_ratio(watched_seconds: int, total_seconds: int) -> float:
    """watched / total, defined as 0 when the total is unknown."""
    if not total_seconds or total_seconds <= 0:
        return 0.0
    return watched_seconds / total_seconds


def merge_progress(
    existing: Optional[Any],
    video_duration: Any,
    watched_seconds: Any,
    explicit_completed: bool = False,
    fallback_duration: Any = 0,
    now: Optional[datetime] = None,
) -> ProgressState:
    """
    Produce the record to persist from the stored one (if any) and a new observation.

    Args:
        existing: stored record (anything with watched_seconds, total_seconds,
            completed) or None for a first write
        video_duration: length of the video as reported now; 0/None when unknown
        watched_seconds: playback position being saved
        explicit_completed: viewer marked the video as watched
        fallback_duration: length to use for a new record when the video's own
            duration is unknown (e.g. the catalog listing)
        now: write time, defaults to the current UTC time
    """
    now = now or datetime.now(timezone.utc)
    watched = to_whole_seconds(watched_seconds)
    duration = to_whole_seconds(video_duration)

    if existing is None:
        total = duration or to_whole_seconds(fallback_duration)
        stored_completed = False
    else:
        stored_total = to_whole_seconds(existing.total_seconds)
        total = stored_total if stored_total > 0 and duration == 0 else duration
        stored_completed = bool(existing.completed)

    completed = (
        bool(explicit_completed)
        or completion_ratio(watched, total) >= COMPLETION_THRESHOLD
        or stored_completed
    )

    return ProgressState(
        watched_seconds=watched,
        total_seconds=total,
        completed=completed,
        last_watched=now,
    )


def mark_completed(state: ProgressState, now: Optional[datetime] = None) -> ProgressState:
    """Manual "mark as watched": position jumps to the end and the flag is set."""
    return ProgressState(
        watched_seconds=state.total_seconds,
        total_seconds=state.total_seconds,
        completed=True,
        last_watched=now or datetime.now(timezone.utc),
    )


def resume_position(record: Any) -> Optional[int]:
    """Where playback should resume, or None when the record should start over."""
    if record is None or record.completed:
        return None
    watched = to_whole_seconds(record.watched_seconds)
    if watched <= RESUME_MIN_SECONDS:
        return None
    return watched


def continue_watching(records: Iterable[Any]) -> Optional[Any]:
    """Most recently watched record that still has a resume position."""
    candidates = [r for r in records if resume_position(r) is not None]
    if not candidates:
        return None
    return max(candidates, key=lambda r: _as_utc(r.last_watched))


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes; everything is stored in UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _dialect_insert(db: Session):
    dialect = db.get_bind().dialect.name
    if dialect == "postgresql":
        from sqlalchemy.dialects.postgresql import insert
    elif dialect == "sqlite":
        from sqlalchemy.dialects.sqlite import insert
    else:
        raise RuntimeError(f"Upsert not supported for dialect {dialect}")
    return insert


def get_progress(db: Session, user_id: str, playlist_id: str, video_id: str) -> Optional[VideoProgress]:
    return db.query(VideoProgress).filter(
        VideoProgress.user_id == user_id,
        VideoProgress.playlist_id == playlist_id,
        VideoProgress.video_id == video_id,
    ).first()


def list_progress(db: Session, user_id: str, playlist_id: Optional[str] = None) -> List[VideoProgress]:
    """A user's records, most recently watched first, optionally for one playlist."""
    query = db.query(VideoProgress).filter(VideoProgress.user_id == user_id)
    if playlist_id:
        query = query.filter(VideoProgress.playlist_id == playlist_id)
    return query.order_by(VideoProgress.last_watched.desc(), VideoProgress.id.desc()).all()


def save_progress(
    db: Session,
    user_id: str,
    playlist_id: str,
    video_id: str,
    watched_seconds: Any,
    video_duration: Any,
    completed: bool = False,
    fallback_duration: Any = 0,
    now: Optional[datetime] = None,
) -> Tuple[VideoProgress, bool]:
    """
    Merge a playback observation into the stored record and upsert it.

    Returns (record, created). Runs inside the caller's transaction; the
    request-scoped session commits on success.
    """
    existing = db.query(VideoProgress).filter(
        VideoProgress.user_id == user_id,
        VideoProgress.playlist_id == playlist_id,
        VideoProgress.video_id == video_id,
    ).with_for_update().first()

    merged = merge_progress(
        existing,
        video_duration=video_duration,
        watched_seconds=watched_seconds,
        explicit_completed=completed,
        fallback_duration=fallback_duration,
        now=now,
    )

    insert = _dialect_insert(db)
    stmt = insert(VideoProgress).values(
        user_id=user_id,
        playlist_id=playlist_id,
        video_id=video_id,
        watched_seconds=merged.watched_seconds,
        total_seconds=merged.total_seconds,
        completed=merged.completed,
        last_watched=merged.last_watched,
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=["user_id", "playlist_id", "video_id"],
        set_={
            "watched_seconds": stmt.excluded.watched_seconds,
            "total_seconds": stmt.excluded.total_seconds,
            "completed": or_(VideoProgress.completed, stmt.excluded.completed),
            "last_watched": stmt.excluded.last_watched,
        },
    )

    record = db.scalars(
        stmt.returning(VideoProgress),
        execution_options={"populate_existing": True},
    ).one()

    created = existing is None
    logger.info(
        "Saved video progress",
        extra={"extra_fields": {
            "user_id": user_id,
            "playlist_id": playlist_id,
            "video_id": video_id,
            "watched_seconds": record.watched_seconds,
            "total_seconds": record.total_seconds,
            "completed": record.completed,
            "created": created,
        }},
    )
    return record, created
