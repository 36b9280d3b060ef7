"""
Playlists API Router

Imports YouTube playlists into the signed-in user's library and lists them.
"""

from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from core.auth import get_current_user_id
from core.database import get_db
from core.exceptions import ValidationError
from models import Playlist
from schemas import PlaylistImportRequest, PlaylistImportResponse, PlaylistResponse
from services.playlist_pagination import PlaylistPaginator, extract_playlist_id
from services.youtube_client import YouTubeClient, get_youtube_client

import logging

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/playlists", tags=["Playlists"])


@router.get("", response_model=List[PlaylistResponse])
def list_playlists(
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """The user's imported playlists, newest first."""
    return (
        db.query(Playlist)
        .filter(Playlist.user_id == user_id)
        .order_by(Playlist.created_at.desc(), Playlist.id.desc())
        .all()
    )


@router.post("", response_model=PlaylistImportResponse)
async def import_playlist(
    request: PlaylistImportRequest,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
    catalog: YouTubeClient = Depends(get_youtube_client),
):
    """
    Import a playlist from its URL.

    Loads metadata and the first page of videos; importing the same playlist
    again refreshes the stored metadata.
    """
    playlist_id = extract_playlist_id(request.url)
    if not playlist_id:
        raise ValidationError("Invalid playlist URL", field="url")

    paginator = PlaylistPaginator(catalog, playlist_id)
    page = await paginator.fetch_page()
    details = paginator.metadata

    playlist = (
        db.query(Playlist)
        .filter(Playlist.user_id == user_id, Playlist.youtube_playlist_id == playlist_id)
        .first()
    )
    if playlist is None:
        playlist = Playlist(user_id=user_id, youtube_playlist_id=playlist_id)
        db.add(playlist)

    playlist.title = details.title
    playlist.description = details.description
    playlist.thumbnail_url = details.thumbnail_url
    playlist.channel_id = details.channel_id
    playlist.channel_title = details.channel_title
    db.flush()
    db.refresh(playlist)

    logger.info(f"User {user_id} imported playlist {playlist_id} ({len(page.videos)} videos on first page)")

    return PlaylistImportResponse(
        playlist=PlaylistResponse.model_validate(playlist),
        details=details.to_dict(),
        videos=[v.to_dict() for v in page.videos],
        next_cursor=page.next_cursor,
    )
