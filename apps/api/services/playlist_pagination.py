"""
Playlist Pagination

Incrementally loads a playlist's videos through the catalog's cursor API.

The first fetch also loads playlist metadata, concurrently with the first
batch. Each later batch is appended with duplicates removed against
everything loaded so far, since YouTube can repeat items across pages. A
missing next cursor is the only end-of-list signal.
"""

import asyncio
import logging
import re
from typing import Any, List, Optional, Protocol, Set

from core.exceptions import NotFoundError
from services.youtube_client import PlaylistMetadata, PlaylistPage, VideoDescriptor

logger = logging.getLogger(__name__)

_PLAYLIST_URL_PATTERNS = (
    re.compile(r"[?&]list=([^#&?]+)"),
    re.compile(r"youtube\.com/playlist/([^#&?]+)"),
)


class VideoCatalog(Protocol):
    def get_playlist_metadata(self, playlist_id: str) -> Optional[PlaylistMetadata]: ...

    def get_playlist_page(self, playlist_id: str, cursor: Optional[str] = None) -> PlaylistPage: ...


class PaginationInFlightError(RuntimeError):
    """A page request for this playlist is already running."""


def extract_playlist_id(url: Optional[str]) -> Optional[str]:
    """Playlist id from a ``...?list=<id>`` or ``youtube.com/playlist/<id>`` URL."""
    if not url:
        return None
    for pattern in _PLAYLIST_URL_PATTERNS:
        match = pattern.search(url)
        if match:
            return match.group(1)
    return None


def dedupe_videos(existing: List[VideoDescriptor], incoming: List[VideoDescriptor]) -> List[VideoDescriptor]:
    """Videos from ``incoming`` whose id is not in ``existing`` (or earlier in ``incoming``)."""
    seen: Set[str] = {v.id for v in existing}
    fresh: List[VideoDescriptor] = []
    for video in incoming:
        if video.id in seen:
            continue
        seen.add(video.id)
        fresh.append(video)
    return fresh


class PlaylistPaginator:
    """
    Accumulates one playlist's videos across pages.

    The catalog is synchronous (HTTP via requests), so its calls run on worker
    threads. Only one page request may be in flight at a time.

    Usage:
        paginator = PlaylistPaginator(get_youtube_client(), playlist_id)
        page = await paginator.fetch_page()
        while paginator.has_more:
            await paginator.load_more()
    """

    def __init__(self, catalog: VideoCatalog, playlist_id: str):
        self.catalog = catalog
        self.playlist_id = playlist_id
        self.metadata: Optional[PlaylistMetadata] = None
        self.videos: List[VideoDescriptor] = []
        self.next_cursor: Optional[str] = None
        self._started = False
        self._in_flight = False

    @property
    def has_more(self) -> bool:
        return self._started and self.next_cursor is not None

    @property
    def loading(self) -> bool:
        return self._in_flight

    async def fetch_page(self) -> PlaylistPage:
        """
        Load metadata and the first batch.

        Raises NotFoundError when the playlist does not exist. An existing
        playlist with no videos yields an empty page with no cursor.
        """
        self._begin()
        try:
            metadata_result, page_result = await asyncio.gather(
                asyncio.to_thread(self.catalog.get_playlist_metadata, self.playlist_id),
                asyncio.to_thread(self.catalog.get_playlist_page, self.playlist_id, None),
                return_exceptions=True,
            )

            # A missing playlist can surface from either call
            if metadata_result is None or isinstance(metadata_result, NotFoundError):
                raise NotFoundError("Playlist", self.playlist_id)
            if isinstance(metadata_result, BaseException):
                raise metadata_result
            if isinstance(page_result, BaseException):
                raise page_result

            self.metadata = metadata_result
            self.videos = dedupe_videos([], page_result.videos)
            self.next_cursor = page_result.next_cursor
            self._started = True

            logger.info(
                "Loaded first playlist page",
                extra={"extra_fields": {
                    "playlist_id": self.playlist_id,
                    "videos": len(self.videos),
                    "has_more": self.next_cursor is not None,
                }},
            )
            return PlaylistPage(videos=list(self.videos), next_cursor=self.next_cursor)
        finally:
            self._in_flight = False

    async def load_more(self) -> List[VideoDescriptor]:
        """
        Append the next batch and return only the newly added videos.

        Returns an empty list when there is nothing more to load.
        """
        if not self._started:
            page = await self.fetch_page()
            return page.videos
        if self.next_cursor is None:
            return []

        self._begin()
        try:
            page = await asyncio.to_thread(
                self.catalog.get_playlist_page, self.playlist_id, self.next_cursor
            )
            fresh = dedupe_videos(self.videos, page.videos)
            self.videos.extend(fresh)
            self.next_cursor = page.next_cursor

            skipped = len(page.videos) - len(fresh)
            if skipped:
                logger.debug(f"Dropped {skipped} duplicate videos from playlist {self.playlist_id}")
            return fresh
        finally:
            self._in_flight = False

    def _begin(self) -> None:
        if self._in_flight:
            raise PaginationInFlightError(f"Playlist {self.playlist_id} is already loading")
        self._in_flight = True

    def to_dict(self) -> Any:
        return {
            "playlist": self.metadata.to_dict() if self.metadata else None,
            "videos": [v.to_dict() for v in self.videos],
            "next_cursor": self.next_cursor,
            "total_results": len(self.videos),
        }
