"""
Study Notes Usage Gate

Caps AI study-notes generation per user per day.

Days roll over at midnight in a fixed reference timezone (UTC+05:30 unless
USAGE_DAY_UTC_OFFSET_MINUTES says otherwise), independent of where the
caller is. The instant of midnight itself belongs to the new day.

The check and the increment are one conditional upsert:

    INSERT ... VALUES (user, day, 1)
    ON CONFLICT (user_id, day) DO UPDATE SET count = count + 1
    WHERE notes_usage.count < :cap
    RETURNING count

No returned row means the cap was already reached; nothing was changed.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from typing import Optional

from sqlalchemy.orm import Session
from sqlalchemy.sql import func

from core.config import settings
from models import NotesUsage

logger = logging.getLogger(__name__)


@dataclass
class UsageCheck:
    """Outcome of a gated increment."""
    allowed: bool
    current_count: int
    max_count: int

    @property
    def remaining(self) -> int:
        return max(0, self.max_count - self.current_count)


def reference_timezone(offset_minutes: Optional[int] = None) -> timezone:
    minutes = settings.USAGE_DAY_UTC_OFFSET_MINUTES if offset_minutes is None else offset_minutes
    return timezone(timedelta(minutes=minutes))


def usage_day(now: Optional[datetime] = None, offset_minutes: Optional[int] = None) -> date:
    """
    Calendar day in the reference timezone that ``now`` falls on.

    Naive datetimes are taken as UTC. 00:00:00 reference time is the first
    instant of its day.
    """
    now = now or datetime.now(timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return now.astimezone(reference_timezone(offset_minutes)).date()


def daily_limit() -> int:
    return settings.NOTES_DAILY_LIMIT


def get_count(db: Session, user_id: str, now: Optional[datetime] = None) -> int:
    """Generations used today. Read-only."""
    count = (
        db.query(NotesUsage.count)
        .filter(NotesUsage.user_id == user_id, NotesUsage.day == usage_day(now))
        .scalar()
    )
    return int(count or 0)


def _dialect_insert(db: Session):
    dialect = db.get_bind().dialect.name
    if dialect == "postgresql":
        from sqlalchemy.dialects.postgresql import insert
    elif dialect == "sqlite":
        from sqlalchemy.dialects.sqlite import insert
    else:
        raise RuntimeError(f"Upsert not supported for dialect {dialect}")
    return insert


def check_and_increment(db: Session, user_id: str, now: Optional[datetime] = None) -> UsageCheck:
    """
    Consume one generation if the user is under today's cap.

    Runs in the caller's transaction: if the request later fails and rolls
    back, the generation is not counted.
    """
    cap = daily_limit()
    day = usage_day(now)

    insert = _dialect_insert(db)
    stmt = insert(NotesUsage).values(user_id=user_id, day=day, count=1)
    stmt = stmt.on_conflict_do_update(
        index_elements=["user_id", "day"],
        set_={"count": NotesUsage.count + 1, "updated_at": func.now()},
        where=NotesUsage.count < cap,
    ).returning(NotesUsage.count)

    new_count = db.execute(stmt).scalar_one_or_none()

    if new_count is None:
        current = get_count(db, user_id, now)
        logger.info(
            "Notes usage limit reached",
            extra={"extra_fields": {"user_id": user_id, "day": day.isoformat(), "count": current, "cap": cap}},
        )
        return UsageCheck(allowed=False, current_count=current, max_count=cap)

    logger.info(
        "Notes usage incremented",
        extra={"extra_fields": {"user_id": user_id, "day": day.isoformat(), "count": new_count, "cap": cap}},
    )
    return UsageCheck(allowed=True, current_count=int(new_count), max_count=cap)


def reset_label(offset_minutes: Optional[int] = None) -> str:
    """The reference timezone as ``UTC+05:30``, for user-facing messages."""
    minutes = settings.USAGE_DAY_UTC_OFFSET_MINUTES if offset_minutes is None else offset_minutes
    sign = "+" if minutes >= 0 else "-"
    hours, mins = divmod(abs(minutes), 60)
    return f"UTC{sign}{hours:02d}:{mins:02d}"
