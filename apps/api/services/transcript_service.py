"""
Transcript Service

Fetches the caption text of a YouTube video without an API key.

There is no official keyless transcript API, so three methods are tried in
order and the first one returning more than 50 characters wins:

  A. caption tracks listed in the watch page's player response
  B. the timedtext track-list endpoint
  C. scraping text runs out of the watch page

Pages and caption documents are parsed with BeautifulSoup; the JSON embedded
in the watch page's scripts is decoded in place.

If every method fails the video is treated as having no captions
(TranscriptUnavailableError, with the usual causes). If every method failed
on the network instead, the failure is transient.
"""

import html
import json
import logging
import re
import warnings
from typing import Any, Callable, Dict, Iterator, List, Optional, Tuple

import requests
from bs4 import BeautifulSoup, XMLParsedAsHTMLWarning

from core.config import settings
from core.exceptions import TranscriptUnavailableError, TransientUpstreamError

logger = logging.getLogger(__name__)

WATCH_URL = "https://www.youtube.com/watch"
TIMEDTEXT_URL = "https://www.youtube.com/api/timedtext"

BROWSER_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36"
)

MIN_TRANSCRIPT_CHARS = 50

VIDEO_ID_RE = re.compile(r"^[a-zA-Z0-9_-]{11}$")

_WHITESPACE_RE = re.compile(r"\s+")
_JSON_START_RE = re.compile(r"[\[{]")
_json_decoder = json.JSONDecoder()


class TranscriptNotFound(Exception):
    """One method found no usable captions."""


def is_valid_video_id(video_id: Optional[str]) -> bool:
    return bool(video_id) and bool(VIDEO_ID_RE.match(video_id))


def _soup(markup: str) -> BeautifulSoup:
    # Caption documents are XML; html.parser reads them fine
    with warnings.catch_warnings():
        warnings.simplefilter("ignore", XMLParsedAsHTMLWarning)
        return BeautifulSoup(markup or "", "html.parser")


def clean_caption_xml(xml: str) -> str:
    """Caption XML to plain text: tags dropped, entities decoded, whitespace collapsed."""
    soup = _soup(xml)
    cues = soup.find_all(["text", "p"])
    text = " ".join(cue.get_text(" ") for cue in cues) if cues else soup.get_text(" ")
    # Caption bodies are often double-escaped (&amp;#39;); the parser undid one level
    text = html.unescape(text)
    return _WHITESPACE_RE.sub(" ", text).strip()


def _script_texts(page: str) -> List[str]:
    return [str(script.string) for script in _soup(page).find_all("script") if script.string]


def _json_after(text: str, marker: str) -> Optional[Any]:
    """Decode the JSON object or array that follows ``marker`` in ``text``."""
    start = text.find(marker)
    if start < 0:
        return None
    match = _JSON_START_RE.search(text, start + len(marker))
    if match is None:
        return None
    try:
        value, _ = _json_decoder.raw_decode(text, match.start())
    except ValueError:
        return None
    return value


def _caption_tracks(page: str) -> List[Dict[str, Any]]:
    for script in _script_texts(page):
        if "captionTracks" not in script:
            continue
        player = _json_after(script, "ytInitialPlayerResponse")
        if not isinstance(player, dict):
            player = {}
        renderer = (player.get("captions") or {}).get("playerCaptionsTracklistRenderer") or {}
        tracks = renderer.get("captionTracks") or _json_after(script, '"captionTracks":')
        if isinstance(tracks, list):
            return tracks
    return []


def _text_runs(node: Any) -> Iterator[str]:
    if isinstance(node, dict):
        for key, value in node.items():
            if key in ("text", "simpleText") and isinstance(value, str):
                yield value
            else:
                yield from _text_runs(value)
    elif isinstance(node, list):
        for item in node:
            yield from _text_runs(item)


def _pick_english(tracks: List[Dict[str, Any]], lang_key: str) -> Optional[Dict[str, Any]]:
    if not tracks:
        return None
    for track in tracks:
        if str(track.get(lang_key) or "").lower() in ("en", "en-us", "en-gb"):
            return track
    for track in tracks:
        if str(track.get(lang_key) or "").lower().startswith("en"):
            return track
    return tracks[0]


class TranscriptFetcher:
    """Keyless transcript retrieval with the A -> B -> C fallback."""

    def __init__(self, session: Optional[requests.Session] = None, timeout: Optional[int] = None):
        self.session = session or requests.Session()
        self.timeout = timeout or settings.EXTERNAL_API_TIMEOUT

    def _fetch_text(self, url: str, params: Optional[Dict[str, Any]] = None, headers: Optional[Dict[str, str]] = None) -> str:
        r = self.session.get(url, params=params, headers=headers, timeout=self.timeout)
        if r.status_code != 200:
            raise TranscriptNotFound(f"{url} returned {r.status_code}")
        return r.text

    def _watch_page(self, video_id: str, browser: bool = False) -> str:
        headers = {"User-Agent": BROWSER_USER_AGENT, "Accept-Language": "en-US,en;q=0.9"} if browser else None
        return self._fetch_text(WATCH_URL, params={"v": video_id}, headers=headers)

    def from_caption_tracks(self, video_id: str) -> str:
        """Method A: captionTracks in the player response -> track XML."""
        page = self._watch_page(video_id)
        track = _pick_english(_caption_tracks(page), "languageCode")
        if not track or not track.get("baseUrl"):
            raise TranscriptNotFound("No caption tracks in player response")

        base_url = track["baseUrl"].replace("\\u0026", "&")
        return clean_caption_xml(self._fetch_text(base_url))

    def from_timedtext_list(self, video_id: str) -> str:
        """Method B: timedtext track list -> track XML."""
        listing = self._fetch_text(TIMEDTEXT_URL, params={"type": "list", "v": video_id})
        tracks = [dict(tag.attrs) for tag in _soup(listing).find_all("track")]
        track = _pick_english(tracks, "lang_code")
        if not track or not track.get("lang_code"):
            raise TranscriptNotFound("No tracks in timedtext list")

        params = {"v": video_id, "lang": track["lang_code"]}
        if track.get("name"):
            params["name"] = track["name"]
        return clean_caption_xml(self._fetch_text(TIMEDTEXT_URL, params=params))

    def from_page_scraping(self, video_id: str) -> str:
        """Method C: text runs embedded in the watch page."""
        page = self._watch_page(video_id, browser=True)
        runs: List[str] = []
        for script in _script_texts(page):
            for marker in ("ytInitialData", "ytInitialPlayerResponse"):
                if marker in script:
                    runs.extend(_text_runs(_json_after(script, marker)))
        if len(runs) <= 10:
            raise TranscriptNotFound("Too little text on watch page")

        pieces = [run for run in runs if len(run.strip()) > 3]
        transcript = _WHITESPACE_RE.sub(" ", " ".join(pieces)).strip()
        if len(transcript) <= 100:
            raise TranscriptNotFound("Scraped text too short")
        return transcript

    def methods(self) -> List[Tuple[str, Callable[[str], str]]]:
        return [
            ("caption_tracks", self.from_caption_tracks),
            ("timedtext_list", self.from_timedtext_list),
            ("page_scraping", self.from_page_scraping),
        ]

    def get_transcript(self, video_id: str) -> str:
        """
        First transcript longer than 50 characters across methods A, B, C.

        Raises:
            TranscriptUnavailableError: no method found captions
            TransientUpstreamError: every method failed on the network
        """
        network_failures = 0
        attempts = self.methods()

        for name, method in attempts:
            try:
                transcript = method(video_id)
            except requests.exceptions.RequestException as e:
                network_failures += 1
                logger.warning(f"Transcript method {name} failed for {video_id}: {e}")
                continue
            except TranscriptNotFound as e:
                logger.info(f"Transcript method {name} found nothing for {video_id}: {e}")
                continue

            if transcript and len(transcript) > MIN_TRANSCRIPT_CHARS:
                logger.info(
                    "Transcript fetched",
                    extra={"extra_fields": {"video_id": video_id, "method": name, "length": len(transcript)}},
                )
                return transcript
            logger.info(f"Transcript method {name} returned too little text for {video_id}")

        if network_failures == len(attempts):
            raise TransientUpstreamError("YouTube", "Unable to reach YouTube to fetch the transcript")
        raise TranscriptUnavailableError()


_fetcher: Optional[TranscriptFetcher] = None


def get_transcript_fetcher() -> TranscriptFetcher:
    global _fetcher
    if _fetcher is None:
        _fetcher = TranscriptFetcher()
    return _fetcher
