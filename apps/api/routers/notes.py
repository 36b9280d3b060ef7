"""
Study Notes API Router

AI study notes from a video transcript, limited per user per day, and PDF
export of the notes.
"""

from datetime import datetime, timezone

from fastapi import APIRouter, Depends
from fastapi.responses import Response
from sqlalchemy.orm import Session

from core.auth import get_current_user_id
from core.database import get_db
from core.exceptions import QuotaExceededError
from schemas import (
    NotesGenerateRequest,
    NotesGenerateResponse,
    NotesPdfRequest,
    NotesUsageResponse,
    UsageInfo,
)
from services.notes_pdf import notes_pdf_filename, render_notes_pdf
from services.notes_usage import check_and_increment, daily_limit, get_count, reset_label
from services.study_notes import StudyNotesGenerator, get_notes_generator, validate_transcript

import logging

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/notes", tags=["Study Notes"])


@router.get("/usage", response_model=NotesUsageResponse)
def get_usage(
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """Today's notes generations for the user. Read-only."""
    current = get_count(db, user_id)
    cap = daily_limit()
    return NotesUsageResponse(
        current_count=current,
        max_count=cap,
        remaining=max(0, cap - current),
        can_use=current < cap,
    )


@router.post("/generate", response_model=NotesGenerateResponse)
def generate_notes(
    request: NotesGenerateRequest,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
    generator: StudyNotesGenerator = Depends(get_notes_generator),
):
    """
    Generate Markdown study notes from a transcript.

    The transcript is validated before the daily allowance is touched. A
    generation that fails rolls back with the request, so it is not counted.
    """
    transcript = validate_transcript(request.transcript)

    usage = check_and_increment(db, user_id)
    if not usage.allowed:
        raise QuotaExceededError(
            "Daily usage limit exceeded",
            details={
                "message": (
                    f"You have used all {usage.max_count} daily notes generations. "
                    f"The limit resets at midnight {reset_label()}."
                ),
                "current_count": usage.current_count,
                "max_count": usage.max_count,
            },
        )

    result = generator.generate(transcript)

    logger.info(f"User {user_id} generated notes for {request.video_id} ({usage.current_count}/{usage.max_count})")
    return NotesGenerateResponse(
        notes=result.notes,
        video_id=request.video_id,
        usage_info=UsageInfo(
            current_count=usage.current_count,
            max_count=usage.max_count,
            remaining=usage.remaining,
        ),
        generated_at=datetime.now(timezone.utc),
    )


@router.post("/pdf")
def export_notes_pdf(
    request: NotesPdfRequest,
    user_id: str = Depends(get_current_user_id),
):
    """Download the notes as a PDF."""
    pdf = render_notes_pdf(request.notes, title=request.video_title, video_id=request.video_id)
    filename = notes_pdf_filename(request.video_title)

    logger.info(f"User {user_id} exported notes PDF for {request.video_id or 'unknown video'}")
    return Response(
        content=pdf,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
