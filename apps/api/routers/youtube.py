"""
YouTube API Router

Catalog reads for the player page: playlist pages, comments and transcripts.
Playlist pages and comments are public; transcripts require sign-in.
"""

import asyncio
from typing import Optional

from fastapi import APIRouter, Depends, Query

from core.auth import get_current_user_id, get_current_user_id_optional
from core.exceptions import ValidationError
from schemas import TranscriptResponse
from services.playlist_pagination import PlaylistPaginator
from services.transcript_service import TranscriptFetcher, get_transcript_fetcher, is_valid_video_id
from services.youtube_client import YouTubeClient, get_youtube_client

import logging

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/youtube", tags=["YouTube"])


@router.get("/playlist")
async def get_playlist_page(
    id: Optional[str] = Query(default=None, description="YouTube playlist id"),
    page_token: Optional[str] = Query(default=None, description="Cursor from a previous page"),
    catalog: YouTubeClient = Depends(get_youtube_client),
):
    """
    One page of a playlist's videos.

    The first page (no token) also carries the playlist details. A playlist
    that exists but has no videos returns an empty list rather than 404.
    """
    if not id:
        raise ValidationError("Playlist ID is required", field="id")

    if page_token:
        page = await asyncio.to_thread(catalog.get_playlist_page, id, page_token)
        return {
            "playlist_details": None,
            "videos": [v.to_dict() for v in page.videos],
            "total_results": len(page.videos),
            "next_page_token": page.next_cursor,
        }

    paginator = PlaylistPaginator(catalog, id)
    page = await paginator.fetch_page()

    return {
        "playlist_details": paginator.metadata.to_dict(),
        "videos": [v.to_dict() for v in page.videos],
        "total_results": len(page.videos),
        "next_page_token": page.next_cursor,
    }


@router.get("/comments")
async def get_comments(
    video_id: Optional[str] = Query(default=None),
    caller_id: Optional[str] = Depends(get_current_user_id_optional),
    catalog: YouTubeClient = Depends(get_youtube_client),
):
    """Top comments for a video, by relevance. Empty when comments are disabled."""
    if not video_id:
        raise ValidationError("Video ID is required", field="video_id")

    comments = await asyncio.to_thread(catalog.get_comments, video_id)
    logger.debug(f"Comments for {video_id}: {len(comments)} (caller={caller_id or 'anonymous'})")
    return {"comments": [c.to_dict() for c in comments]}


@router.get("/transcript", response_model=TranscriptResponse)
async def get_transcript(
    video_id: Optional[str] = Query(default=None),
    user_id: str = Depends(get_current_user_id),
    fetcher: TranscriptFetcher = Depends(get_transcript_fetcher),
):
    """Caption text for a video, trying each retrieval method in turn."""
    if not video_id:
        raise ValidationError("Video ID is required", field="video_id")
    if not is_valid_video_id(video_id):
        raise ValidationError("Invalid video ID format", field="video_id")

    transcript = await asyncio.to_thread(fetcher.get_transcript, video_id)
    logger.info(f"User {user_id} fetched transcript for {video_id} ({len(transcript)} chars)")
    return TranscriptResponse(transcript=transcript, video_id=video_id, length=len(transcript))
