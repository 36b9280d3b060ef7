"""
YouTube Data API v3 client.

Read-only access to playlists, playlist items, videos and comment threads
with an API key. Playlist metadata and pages are cached in Redis because
every call spends API quota and playlists change rarely.

Failures are raised as the API's typed errors:
- quota / rate-limit reasons -> UpstreamQuotaError
- unknown playlist -> NotFoundError
- network errors and anything else unexpected -> TransientUpstreamError
Nothing is retried here.
"""

import logging
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional

import requests

from core.cache import cache_key, get_cache, set_cache
from core.config import settings
from core.exceptions import NotFoundError, TransientUpstreamError, UpstreamQuotaError
from services.duration import format_duration, parse_duration

logger = logging.getLogger(__name__)

SERVICE_NAME = "YouTube Data API"

# API maximum for playlistItems.list and videos.list
PAGE_SIZE = 50

QUOTA_REASONS = {"quotaExceeded", "dailyLimitExceeded", "rateLimitExceeded", "userRateLimitExceeded"}
NOT_FOUND_REASONS = {"playlistNotFound", "videoNotFound", "notFound"}


@dataclass
class VideoDescriptor:
    id: str
    title: str
    description: str
    thumbnail: str
    duration: str               # ISO-8601, e.g. "PT4M13S"
    published_at: str
    channel_title: str
    view_count: str
    duration_seconds: int = 0

    @property
    def duration_label(self) -> str:
        return format_duration(self.duration_seconds)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["duration_label"] = self.duration_label
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "VideoDescriptor":
        return cls(**{k: v for k, v in data.items() if k != "duration_label"})


@dataclass
class PlaylistMetadata:
    id: str
    title: str
    description: str
    thumbnails: Dict[str, Dict[str, Any]]
    channel_id: str
    channel_title: str
    item_count: int = 0

    @property
    def thumbnail_url(self) -> str:
        return _best_thumbnail(self.thumbnails)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PlaylistMetadata":
        return cls(**data)


@dataclass
class PlaylistPage:
    videos: List[VideoDescriptor] = field(default_factory=list)
    next_cursor: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "videos": [v.to_dict() for v in self.videos],
            "next_cursor": self.next_cursor,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PlaylistPage":
        return cls(
            videos=[VideoDescriptor.from_dict(v) for v in data.get("videos", [])],
            next_cursor=data.get("next_cursor"),
        )


@dataclass
class Comment:
    id: str
    text: str
    author_name: str
    author_profile_image_url: str
    like_count: int
    published_at: str
    updated_at: str
    replies: List["Comment"] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _error_reasons(payload: Any) -> List[str]:
    try:
        errors = (payload or {}).get("error", {}).get("errors", []) or []
        return [str(e.get("reason")) for e in errors if e.get("reason")]
    except AttributeError:
        return []


def _best_thumbnail(thumbnails: Optional[Dict[str, Any]]) -> str:
    thumbnails = thumbnails or {}
    for size in ("high", "medium", "default"):
        url = (thumbnails.get(size) or {}).get("url")
        if url:
            return url
    return ""


def _parse_comment(comment_id: str, snippet: Dict[str, Any]) -> Comment:
    return Comment(
        id=comment_id or "",
        text=snippet.get("textDisplay") or "",
        author_name=snippet.get("authorDisplayName") or "",
        author_profile_image_url=snippet.get("authorProfileImageUrl") or "",
        like_count=int(snippet.get("likeCount") or 0),
        published_at=snippet.get("publishedAt") or "",
        updated_at=snippet.get("updatedAt") or "",
    )


class YouTubeClient:
    """
    Thin wrapper over the YouTube Data API v3 REST endpoints.

    Construct once per process (see ``get_youtube_client``) or inject a fake
    with the same methods in tests.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[int] = None,
        session: Optional[requests.Session] = None,
        use_cache: bool = True,
    ):
        self.api_key = api_key if api_key is not None else settings.YOUTUBE_API_KEY
        self.base_url = (base_url or settings.YOUTUBE_API_BASE).rstrip("/")
        self.timeout = timeout or settings.EXTERNAL_API_TIMEOUT
        self.session = session or requests.Session()
        self.use_cache = use_cache

    def _get(self, resource: str, params: Dict[str, Any], not_found: Optional[NotFoundError] = None) -> Dict[str, Any]:
        if not self.api_key:
            raise TransientUpstreamError(SERVICE_NAME, "YouTube API key is not configured")

        url = f"{self.base_url}/{resource}"
        try:
            r = self.session.get(url, params={**params, "key": self.api_key}, timeout=self.timeout)
        except requests.exceptions.RequestException as e:
            logger.error(f"YouTube {resource} request failed: {e}")
            raise TransientUpstreamError(SERVICE_NAME) from e

        if r.status_code == 200:
            return r.json()

        try:
            payload = r.json()
        except ValueError:
            payload = None
        reasons = _error_reasons(payload)

        if QUOTA_REASONS.intersection(reasons) or r.status_code == 429:
            logger.warning(f"YouTube quota exhausted on {resource}: {reasons}")
            raise UpstreamQuotaError("YouTube API quota exceeded. Please try again later.")
        if r.status_code == 404 or NOT_FOUND_REASONS.intersection(reasons):
            if not_found is not None:
                raise not_found
            raise NotFoundError("YouTube resource", resource)

        logger.error(
            f"YouTube {resource} returned {r.status_code}",
            extra={"extra_fields": {"status_code": r.status_code, "reasons": reasons}},
        )
        err = TransientUpstreamError(SERVICE_NAME)
        err.details = {"status_code": r.status_code, "reasons": reasons}
        raise err

    def get_playlist_metadata(self, playlist_id: str) -> Optional[PlaylistMetadata]:
        """Playlist title, description, thumbnails and channel; None if it does not exist."""
        key = cache_key("yt_playlist_meta", playlist_id)
        if self.use_cache:
            hit = get_cache(key)
            if hit is not None:
                return PlaylistMetadata.from_dict(hit)

        data = self._get("playlists", {"part": "snippet,contentDetails", "id": playlist_id})
        items = data.get("items") or []
        if not items or not items[0].get("snippet"):
            return None

        item = items[0]
        snippet = item["snippet"]
        metadata = PlaylistMetadata(
            id=item.get("id") or playlist_id,
            title=snippet.get("title") or "Untitled Playlist",
            description=snippet.get("description") or "",
            thumbnails={
                size: {
                    "url": thumb.get("url") or "",
                    "width": thumb.get("width"),
                    "height": thumb.get("height"),
                }
                for size, thumb in (snippet.get("thumbnails") or {}).items()
                if size in ("default", "medium", "high")
            },
            channel_id=snippet.get("channelId") or "",
            channel_title=snippet.get("channelTitle") or "Unknown Channel",
            item_count=int((item.get("contentDetails") or {}).get("itemCount") or 0),
        )

        if self.use_cache:
            set_cache(key, metadata.to_dict(), settings.CACHE_TTL_PLAYLIST)
        return metadata

    def get_playlist_page(self, playlist_id: str, cursor: Optional[str] = None) -> PlaylistPage:
        """
        One batch of up to 50 videos plus the cursor for the next batch.

        Durations and view counts come from a single batched videos.list call.
        Items whose video is gone (deleted or private) are skipped. Duplicate
        ids within the batch are dropped.
        """
        key = cache_key("yt_playlist_page", playlist_id, cursor)
        if self.use_cache:
            hit = get_cache(key)
            if hit is not None:
                return PlaylistPage.from_dict(hit)

        params: Dict[str, Any] = {
            "part": "snippet,contentDetails",
            "playlistId": playlist_id,
            "maxResults": PAGE_SIZE,
        }
        if cursor:
            params["pageToken"] = cursor

        data = self._get("playlistItems", params, not_found=NotFoundError("Playlist", playlist_id))
        items = data.get("items") or []
        next_cursor = data.get("nextPageToken") or None

        video_ids = [
            (item.get("contentDetails") or {}).get("videoId")
            for item in items
        ]
        video_ids = [vid for vid in video_ids if vid]

        details: Dict[str, Dict[str, Any]] = {}
        if video_ids:
            detail_data = self._get(
                "videos",
                {"part": "contentDetails,statistics", "id": ",".join(dict.fromkeys(video_ids))},
            )
            details = {v.get("id"): v for v in detail_data.get("items") or []}

        videos: List[VideoDescriptor] = []
        seen = set()
        for item in items:
            snippet = item.get("snippet")
            video_id = (item.get("contentDetails") or {}).get("videoId")
            if not snippet or not video_id or video_id in seen:
                continue
            detail = details.get(video_id)
            if not detail:
                continue
            seen.add(video_id)

            duration = (detail.get("contentDetails") or {}).get("duration") or "PT0S"
            videos.append(VideoDescriptor(
                id=video_id,
                title=snippet.get("title") or "Untitled Video",
                description=snippet.get("description") or "",
                thumbnail=_best_thumbnail(snippet.get("thumbnails")),
                duration=duration,
                published_at=snippet.get("publishedAt") or "",
                channel_title=snippet.get("channelTitle") or "Unknown Channel",
                view_count=str((detail.get("statistics") or {}).get("viewCount") or "0"),
                duration_seconds=parse_duration(duration),
            ))

        page = PlaylistPage(videos=videos, next_cursor=next_cursor)
        logger.info(
            "Fetched playlist page",
            extra={"extra_fields": {
                "playlist_id": playlist_id,
                "items": len(items),
                "videos": len(videos),
                "has_next": bool(next_cursor),
            }},
        )

        if self.use_cache:
            set_cache(key, page.to_dict(), settings.CACHE_TTL_PLAYLIST)
        return page

    def get_comments(self, video_id: str, max_results: int = 20) -> List[Comment]:
        """Top-level comments by relevance, with their inline replies. Empty if disabled."""
        try:
            data = self._get(
                "commentThreads",
                {
                    "part": "snippet,replies",
                    "videoId": video_id,
                    "maxResults": max_results,
                    "order": "relevance",
                },
                not_found=NotFoundError("Video", video_id),
            )
        except TransientUpstreamError as e:
            if "commentsDisabled" in ((e.details or {}).get("reasons") or []):
                return []
            raise

        comments: List[Comment] = []
        for thread in data.get("items") or []:
            top = ((thread.get("snippet") or {}).get("topLevelComment") or {}).get("snippet")
            if not top:
                continue
            comment = _parse_comment(thread.get("id"), top)
            for reply in (thread.get("replies") or {}).get("comments") or []:
                if reply.get("snippet"):
                    comment.replies.append(_parse_comment(reply.get("id"), reply["snippet"]))
            comments.append(comment)
        return comments


_client: Optional[YouTubeClient] = None


def get_youtube_client() -> YouTubeClient:
    """Process-wide client, used as a FastAPI dependency."""
    global _client
    if _client is None:
        _client = YouTubeClient()
    return _client

