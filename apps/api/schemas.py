from pydantic import BaseModel, ConfigDict, Field
from datetime import datetime, date
from typing import Optional, List, Dict, Any


class UserUpsert(BaseModel):
    """Profile fields sent by the sign-in bridge. The id always comes from the token."""
    email: Optional[str] = None
    name: Optional[str] = None
    avatar_url: Optional[str] = None


class UserResponse(BaseModel):
    id: str
    email: Optional[str] = None
    name: Optional[str] = None
    avatar_url: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class ProgressSaveRequest(BaseModel):
    playlist_id: str = Field(..., min_length=1)
    video_id: str = Field(..., min_length=1)
    current_time: float = Field(..., ge=0)
    duration: float = Field(..., ge=0)
    completed: bool = False
    # Catalog length in seconds, used when the player reports no duration
    fallback_duration: Optional[float] = Field(default=None, ge=0)


class VideoProgressResponse(BaseModel):
    id: int
    playlist_id: str
    video_id: str
    watched_seconds: int
    total_seconds: int
    completed: bool
    last_watched: datetime
    resume_position: Optional[int] = None

    model_config = ConfigDict(from_attributes=True)


class ProgressSaveResponse(BaseModel):
    success: bool = True
    created: bool
    progress: VideoProgressResponse


class DailyBucketResponse(BaseModel):
    date: date
    day: str
    videos: int
    minutes: int


class ProgressAnalyticsResponse(BaseModel):
    total_videos: int
    completed_videos: int
    total_watch_time: int
    total_duration: int
    completion_rate: float
    daily_progress: List[DailyBucketResponse]
    current_streak: int
    longest_streak: int


class ProgressListResponse(BaseModel):
    progress: List[VideoProgressResponse]
    analytics: ProgressAnalyticsResponse
    continue_watching: Optional[VideoProgressResponse] = None


class PlaylistImportRequest(BaseModel):
    url: str = Field(..., min_length=1)


class PlaylistResponse(BaseModel):
    id: int
    youtube_playlist_id: str
    title: str
    description: Optional[str] = None
    thumbnail_url: Optional[str] = None
    channel_id: Optional[str] = None
    channel_title: Optional[str] = None
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class PlaylistImportResponse(BaseModel):
    playlist: PlaylistResponse
    details: Dict[str, Any]
    videos: List[Dict[str, Any]]
    next_cursor: Optional[str] = None


class NotesGenerateRequest(BaseModel):
    video_id: str = Field(..., min_length=1)
    transcript: Optional[str] = None
    language: Optional[str] = None


class UsageInfo(BaseModel):
    current_count: int
    max_count: int
    remaining: int


class NotesGenerateResponse(BaseModel):
    notes: str
    video_id: str
    usage_info: UsageInfo
    generated_at: datetime


class NotesUsageResponse(BaseModel):
    current_count: int
    max_count: int
    remaining: int
    can_use: bool


class NotesPdfRequest(BaseModel):
    notes: str = Field(..., min_length=1)
    video_title: Optional[str] = None
    video_id: Optional[str] = None


class TranscriptResponse(BaseModel):
    transcript: str
    video_id: str
    length: int
