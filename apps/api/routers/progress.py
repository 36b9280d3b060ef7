"""
Video Progress API Router

Saves playback progress for the signed-in user and returns their progress
records with dashboard analytics (totals, daily activity, streaks).
"""

from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from core.auth import get_current_user_id
from core.database import get_db
from models import VideoProgress
from schemas import (
    ProgressListResponse,
    ProgressSaveRequest,
    ProgressSaveResponse,
    VideoProgressResponse,
)
from services.progress_analytics import display_timezone, summarize_progress
from services.video_progress import (
    continue_watching,
    list_progress,
    resume_position,
    save_progress,
)

import logging

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/progress", tags=["Progress"])


def _to_response(record: VideoProgress) -> VideoProgressResponse:
    response = VideoProgressResponse.model_validate(record)
    response.resume_position = resume_position(record)
    return response


@router.get("", response_model=ProgressListResponse)
def get_progress(
    playlist_id: Optional[str] = Query(default=None, description="Limit to one playlist"),
    tz_offset_minutes: int = Query(
        default=0, ge=-840, le=840,
        description="Caller's UTC offset in minutes (east positive) for calendar days",
    ),
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """
    Progress records (most recently watched first) plus analytics.

    Daily activity and streaks use the caller's calendar, given as a UTC offset.
    """
    records = list_progress(db, user_id, playlist_id)
    analytics = summarize_progress(
        records,
        now=datetime.now(timezone.utc),
        tz=display_timezone(tz_offset_minutes),
    )
    resume = continue_watching(records)

    return ProgressListResponse(
        progress=[_to_response(r) for r in records],
        analytics=analytics.to_dict(),
        continue_watching=_to_response(resume) if resume is not None else None,
    )


@router.post("", response_model=ProgressSaveResponse)
def post_progress(
    request: ProgressSaveRequest,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """Upsert progress for one video. Completion is never cleared by a save."""
    record, created = save_progress(
        db,
        user_id=user_id,
        playlist_id=request.playlist_id,
        video_id=request.video_id,
        watched_seconds=request.current_time,
        video_duration=request.duration,
        completed=request.completed,
        fallback_duration=request.fallback_duration or 0,
    )
    return ProgressSaveResponse(created=created, progress=_to_response(record))
