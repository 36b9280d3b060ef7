"""
Progress Sync (client side)

Decides when a player's playback position is pushed to ``POST /v1/progress``
and keeps the local view of progress consistent with what was saved. Used by
the web/desktop player clients and by the sync tests; the server never runs
it.

Timing rules (all driven by an injectable clock):
- Player ticks (about once per second) update local progress.
- A "next video" prompt is raised once per video when 60s or less remain and
  another video follows.
- An automatic save is requested once 30s have passed since the last
  successful save and the position is past 0. Requests go through a
  CoalescingWriter, so a burst of ticks produces one write carrying the
  latest position.
- "Save now" skips the threshold and the coalescing window and restarts the
  30s baseline on success.
- "Mark completed" updates local state first and restores it if the write
  fails.
- Teardown fires a beacon with the last known position when any time was
  watched.
Nothing is retried; failures are logged.
"""

import logging
import threading
import time
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Callable, Dict, Generic, Optional, Protocol, TypeVar

import httpx

from services.video_progress import COMPLETION_THRESHOLD, completion_ratio

logger = logging.getLogger(__name__)

AUTO_SAVE_INTERVAL_S = 30.0
NEXT_PROMPT_THRESHOLD_S = 60.0
STALE_FLUSH_AGE_S = 30.0
DEFAULT_COALESCE_WINDOW_S = 1.0

T = TypeVar("T")

Clock = Callable[[], float]


@dataclass
class ProgressUpdate:
    """Body of one progress write."""
    playlist_id: str
    video_id: str
    current_time: float
    duration: float
    completed: bool = False

    def to_payload(self) -> Dict[str, Any]:
        return {
            "playlist_id": self.playlist_id,
            "video_id": self.video_id,
            "current_time": self.current_time,
            "duration": self.duration,
            "completed": self.completed,
        }


@dataclass
class LocalProgress:
    """What the client currently believes about one video."""
    video_id: str
    watched_seconds: float = 0.0
    total_seconds: float = 0.0
    completed: bool = False
    updated_at: float = 0.0     # clock time of the last local change
    saved_at: Optional[float] = None    # clock time of the last successful write
    unsaved: bool = False


class ProgressTransport(Protocol):
    def save(self, update: ProgressUpdate) -> Dict[str, Any]: ...

    def send_beacon(self, update: ProgressUpdate) -> None: ...


class VideoPlayer(Protocol):
    def get_current_time(self) -> float: ...

    def get_duration(self) -> float: ...

    def destroy(self) -> None: ...


class PlayerState(str, Enum):
    UNINITIALIZED = "uninitialized"
    READY = "ready"
    PLAYING = "playing"
    ERROR = "error"


class CoalescingWriter(Generic[T]):
    """
    Collapses repeated write requests into one send.

    The first ``request`` opens a window; further requests inside it only
    replace the pending value. When the window closes, ``pump`` sends the
    most recent value once. ``flush_now`` sends immediately and discards
    anything pending.
    """

    def __init__(self, send: Callable[[T], Any], clock: Clock = time.monotonic, window: float = DEFAULT_COALESCE_WINDOW_S):
        self._send = send
        self._clock = clock
        self.window = window
        self._pending: Optional[T] = None
        self._due_at: Optional[float] = None

    @property
    def pending(self) -> Optional[T]:
        return self._pending

    def request(self, value: T) -> None:
        self._pending = value
        if self._due_at is None:
            self._due_at = self._clock() + self.window

    def pump(self) -> bool:
        """Send the pending value if its window has closed. Returns True if sent."""
        if self._due_at is None or self._clock() < self._due_at:
            return False
        value = self._pending
        self.cancel()
        self._send(value)
        return True

    def flush_now(self, value: T) -> Any:
        self.cancel()
        return self._send(value)

    def cancel(self) -> None:
        self._pending = None
        self._due_at = None


class ProgressSync:
    """
    Sync policy for one playlist view.

    Callers feed it player events (``on_ready``/``on_tick``/``on_ended``/
    ``on_error``) and user actions (``save_now``, ``mark_completed``,
    ``switch_video``, ``teardown``), and call ``pump`` from their timer loop.
    """

    def __init__(
        self,
        transport: ProgressTransport,
        playlist_id: str,
        clock: Clock = time.monotonic,
        coalesce_window: float = DEFAULT_COALESCE_WINDOW_S,
        on_next_prompt: Optional[Callable[[str, bool], None]] = None,
    ):
        self.transport = transport
        self.playlist_id = playlist_id
        self.clock = clock
        self.on_next_prompt = on_next_prompt
        self.writer: CoalescingWriter[ProgressUpdate] = CoalescingWriter(
            self._write, clock=clock, window=coalesce_window
        )

        self.progress: Dict[str, LocalProgress] = {}
        self.active_video_id: Optional[str] = None
        self.has_next = False
        self.player: Optional[VideoPlayer] = None
        self.state = PlayerState.UNINITIALIZED
        self.next_prompt_visible = False
        self._prompted_for: Optional[str] = None
        self._last_save_at = clock()

    # ------------------------------------------------------------------
    # Video / player lifecycle
    # ------------------------------------------------------------------

    def switch_video(self, video_id: str, duration: float = 0, has_next: bool = False, player: Optional[VideoPlayer] = None) -> None:
        """
        Make ``video_id`` the active video.

        A write already scheduled for the outgoing video is sent first. Other
        videos with unsaved time whose last local update is more than 30s old
        are flushed. The previous player is destroyed before the new one is
        attached. The auto-save baseline is left alone; only a successful
        write moves it.
        """
        now = self.clock()
        pending = self.writer.pending
        if pending is not None:
            self.writer.flush_now(self._update_for(self._local(pending.video_id)))

        for other in list(self.progress.values()):
            if other.video_id == video_id or not other.unsaved or other.watched_seconds <= 0:
                continue
            if now - other.updated_at > STALE_FLUSH_AGE_S:
                self._write(self._update_for(other))

        if self.player is not None and self.player is not player:
            self.player.destroy()
        self.player = player
        self.state = PlayerState.UNINITIALIZED

        self.active_video_id = video_id
        self.has_next = has_next
        self._set_prompt(False)
        self._prompted_for = None

        local = self._local(video_id)
        if duration and not local.total_seconds:
            local.total_seconds = float(duration)

    def on_ready(self) -> None:
        self.state = PlayerState.READY

    def on_error(self, error: Any = None) -> None:
        self.state = PlayerState.ERROR
        logger.warning(f"Player error on {self.active_video_id}: {error}")

    def on_tick(self, position: float, duration: float) -> None:
        """One playback tick for the active video."""
        if self.active_video_id is None or self.state == PlayerState.ERROR:
            return
        self.state = PlayerState.PLAYING
        local = self._observe(self.active_video_id, position, duration)

        remaining = local.total_seconds - local.watched_seconds
        if 0 < remaining <= NEXT_PROMPT_THRESHOLD_S and self.has_next:
            if self._prompted_for != local.video_id:
                self._prompted_for = local.video_id
                self._set_prompt(True)
        elif remaining > NEXT_PROMPT_THRESHOLD_S and self.next_prompt_visible:
            # Seeking back out of the last minute hides it again
            self._prompted_for = None
            self._set_prompt(False)

        if self.clock() - self._last_save_at >= AUTO_SAVE_INTERVAL_S and local.watched_seconds > 0:
            self.writer.request(self._update_for(local))

        self.writer.pump()

    def on_ended(self) -> bool:
        self.state = PlayerState.READY
        return self.mark_completed()

    def pump(self) -> bool:
        return self.writer.pump()

    # ------------------------------------------------------------------
    # User actions
    # ------------------------------------------------------------------

    def save_now(self) -> bool:
        """Save the live player position immediately. Returns True on success."""
        if self.active_video_id is None:
            return False
        local = self._local(self.active_video_id)
        position, duration = local.watched_seconds, local.total_seconds

        if self.player is not None:
            try:
                position = float(self.player.get_current_time())
                duration = float(self.player.get_duration()) or duration
            except (TypeError, ValueError) as e:
                logger.warning(f"Could not read position from player: {e}")

        local = self._observe(self.active_video_id, position, duration)
        return self.writer.flush_now(self._update_for(local)) is not None

    def mark_completed(self) -> bool:
        """Optimistically mark the active video watched; roll back if the write fails."""
        if self.active_video_id is None:
            return False
        local = self._local(self.active_video_id)
        snapshot = replace(local)

        local.watched_seconds = local.total_seconds
        local.completed = True
        local.updated_at = self.clock()
        local.unsaved = True

        update = self._update_for(local)
        update.completed = True
        if self.writer.flush_now(update) is None:
            self.progress[snapshot.video_id] = snapshot
            logger.info(f"Rolled back completion of {snapshot.video_id}")
            return False
        return True

    def teardown(self) -> None:
        """Best-effort final write for the active video; never blocks."""
        self.writer.cancel()
        if self.active_video_id is not None:
            local = self._local(self.active_video_id)
            if local.watched_seconds > 0:
                try:
                    self.transport.send_beacon(self._update_for(local))
                except RuntimeError as e:
                    logger.warning(f"Progress beacon not sent: {e}")
        if self.player is not None:
            self.player.destroy()
            self.player = None
        self.state = PlayerState.UNINITIALIZED

    # ------------------------------------------------------------------
    # Async results
    # ------------------------------------------------------------------

    def apply_loaded_progress(self, video_id: str, record: Dict[str, Any]) -> bool:
        """
        Merge a fetched progress record into local state.

        Results for a video that is no longer active are dropped.
        """
        if video_id != self.active_video_id:
            logger.debug(f"Discarding stale progress for {video_id}")
            return False
        local = self._local(video_id)
        local.watched_seconds = float(record.get("watched_seconds") or 0)
        local.total_seconds = float(record.get("total_seconds") or local.total_seconds)
        local.completed = bool(record.get("completed")) or local.completed
        local.unsaved = False
        return True

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _local(self, video_id: str) -> LocalProgress:
        local = self.progress.get(video_id)
        if local is None:
            local = LocalProgress(video_id=video_id, updated_at=self.clock())
            self.progress[video_id] = local
        return local

    def _observe(self, video_id: str, position: float, duration: float) -> LocalProgress:
        local = self._local(video_id)
        local.watched_seconds = max(0.0, float(position or 0))
        if duration and duration > 0:
            local.total_seconds = float(duration)
        local.completed = (
            local.completed
            or completion_ratio(local.watched_seconds, local.total_seconds) >= COMPLETION_THRESHOLD
        )
        local.updated_at = self.clock()
        local.unsaved = True
        return local

    def _update_for(self, local: LocalProgress) -> ProgressUpdate:
        return ProgressUpdate(
            playlist_id=self.playlist_id,
            video_id=local.video_id,
            current_time=local.watched_seconds,
            duration=local.total_seconds,
            completed=False,
        )

    def _write(self, update: ProgressUpdate) -> Optional[Dict[str, Any]]:
        """Send one update. Returns the saved record, or None on failure."""
        try:
            saved = self.transport.save(update)
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"Failed to save progress for {update.video_id}: {e}")
            return None

        local = self.progress.get(update.video_id)
        if local is not None:
            local.saved_at = self.clock()
            local.unsaved = False
        if update.video_id == self.active_video_id:
            self._last_save_at = self.clock()
        else:
            logger.debug(f"Save acknowledged for inactive video {update.video_id}")
        return saved or {}

    def _set_prompt(self, visible: bool) -> None:
        if visible == self.next_prompt_visible:
            return
        self.next_prompt_visible = visible
        if self.on_next_prompt is not None and self.active_video_id is not None:
            self.on_next_prompt(self.active_video_id, visible)


class HttpProgressTransport:
    """
    httpx transport for ``POST /v1/progress`` with a bearer token.

    ``send_beacon`` posts from a background thread so it survives the caller
    returning (e.g. a window closing); its result is only logged.
    """

    def __init__(self, base_url: str, token: str, client: Optional[httpx.Client] = None, timeout: float = 10.0):
        self.base_url = base_url.rstrip("/")
        self.headers = {"Authorization": f"Bearer {token}"}
        self.client = client or httpx.Client(timeout=timeout)

    def save(self, update: ProgressUpdate) -> Dict[str, Any]:
        r = self.client.post(f"{self.base_url}/v1/progress", json=update.to_payload(), headers=self.headers)
        r.raise_for_status()
        body = r.json()
        if not isinstance(body, dict):
            raise ValueError(f"Unexpected progress response: {type(body).__name__}")
        return body.get("progress") or {}

    def send_beacon(self, update: ProgressUpdate) -> threading.Thread:
        thread = threading.Thread(target=self._post_quietly, args=(update,), name="progress-beacon", daemon=True)
        thread.start()
        return thread

    def _post_quietly(self, update: ProgressUpdate) -> None:
        try:
            self.save(update)
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"Progress beacon failed for {update.video_id}: {e}")
