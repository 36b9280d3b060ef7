"""
Tests for the YouTube Data API client against a fake requests session.
"""
import pytest
import requests

from core.exceptions import NotFoundError, TransientUpstreamError, UpstreamQuotaError
from services.youtube_client import YouTubeClient

BASE = "https://yt.test/v3"


class FakeResponse:
    def __init__(self, status_code, payload):
        self.status_code = status_code
        self._payload = payload

    def json(self):
        if self._payload is None:
            raise ValueError("no json")
        return self._payload


class FakeSession:
    def __init__(self, routes=None, error=None):
        self.routes = routes or {}
        self.error = error
        self.calls = []

    def get(self, url, params=None, timeout=None):
        resource = url.rsplit("/", 1)[-1]
        self.calls.append((resource, params))
        if self.error is not None:
            raise self.error
        status_code, payload = self.routes[resource]
        return FakeResponse(status_code, payload)


def _client(routes=None, error=None):
    session = FakeSession(routes, error)
    return YouTubeClient(api_key="key", base_url=BASE, timeout=5, session=session, use_cache=False), session


def _api_error(code, reason):
    return {"error": {"code": code, "errors": [{"reason": reason}]}}


PLAYLIST = {
    "items": [{
        "id": "PL1",
        "snippet": {
            "title": "Linear Algebra",
            "description": "Full course",
            "channelId": "UC1",
            "channelTitle": "Math Channel",
            "thumbnails": {
                "default": {"url": "https://img/default.jpg", "width": 120, "height": 90},
                "high": {"url": "https://img/high.jpg", "width": 480, "height": 360},
                "maxres": {"url": "https://img/maxres.jpg"},
            },
        },
        "contentDetails": {"itemCount": 42},
    }]
}


def _item(video_id, title):
    return {
        "snippet": {
            "title": title,
            "description": "",
            "publishedAt": "2025-01-01T00:00:00Z",
            "channelTitle": "Math Channel",
            "thumbnails": {"medium": {"url": f"https://img/{video_id}.jpg"}},
        },
        "contentDetails": {"videoId": video_id},
    }


PLAYLIST_ITEMS = {
    "items": [
        _item("vid1", "Vectors"),
        _item("vid2", "Deleted video"),
        _item("vid3", "Matrices"),
        _item("vid1", "Vectors again"),
    ],
    "nextPageToken": "CDIQAA",
}

VIDEOS = {
    "items": [
        {"id": "vid1", "contentDetails": {"duration": "PT4M13S"}, "statistics": {"viewCount": "1500"}},
        {"id": "vid3", "contentDetails": {"duration": "PT1H2M5S"}, "statistics": {}},
    ]
}


class TestPlaylistMetadata:
    def test_parses_snippet(self):
        client, session = _client({"playlists": (200, PLAYLIST)})
        metadata = client.get_playlist_metadata("PL1")

        assert metadata.title == "Linear Algebra"
        assert metadata.channel_title == "Math Channel"
        assert metadata.item_count == 42
        assert metadata.thumbnail_url == "https://img/high.jpg"
        assert set(metadata.thumbnails) == {"default", "high"}
        assert session.calls[0][1]["key"] == "key"

    def test_unknown_playlist_is_none(self):
        client, _ = _client({"playlists": (200, {"items": []})})
        assert client.get_playlist_metadata("PLnope") is None


class TestPlaylistPage:
    def test_joins_details_and_skips_missing(self):
        client, session = _client({"playlistItems": (200, PLAYLIST_ITEMS), "videos": (200, VIDEOS)})
        page = client.get_playlist_page("PL1")

        assert [v.id for v in page.videos] == ["vid1", "vid3"]
        assert page.next_cursor == "CDIQAA"

        first, second = page.videos
        assert first.duration_seconds == 253
        assert first.duration_label == "4:13"
        assert first.view_count == "1500"
        assert first.thumbnail == "https://img/vid1.jpg"
        assert second.duration_label == "1:02:05"
        assert second.view_count == "0"

        videos_calls = [params for resource, params in session.calls if resource == "videos"]
        assert len(videos_calls) == 1
        assert videos_calls[0]["id"] == "vid1,vid2,vid3"

    def test_cursor_is_forwarded(self):
        client, session = _client({"playlistItems": (200, {"items": []})})
        page = client.get_playlist_page("PL1", "CDIQAA")

        assert page.videos == []
        assert page.next_cursor is None
        assert session.calls[0][1]["pageToken"] == "CDIQAA"
        assert session.calls[0][1]["maxResults"] == 50

    def test_missing_playlist(self):
        client, _ = _client({"playlistItems": (404, _api_error(404, "playlistNotFound"))})
        with pytest.raises(NotFoundError):
            client.get_playlist_page("PLnope")


class TestErrors:
    def test_quota(self):
        client, _ = _client({"playlists": (403, _api_error(403, "quotaExceeded"))})
        with pytest.raises(UpstreamQuotaError) as exc_info:
            client.get_playlist_metadata("PL1")
        assert exc_info.value.status_code == 503

    def test_server_error(self):
        client, _ = _client({"playlists": (500, None)})
        with pytest.raises(TransientUpstreamError) as exc_info:
            client.get_playlist_metadata("PL1")
        assert exc_info.value.details == {"status_code": 500, "reasons": []}

    def test_network_error(self):
        client, _ = _client(error=requests.exceptions.Timeout("slow"))
        with pytest.raises(TransientUpstreamError):
            client.get_playlist_metadata("PL1")

    def test_missing_api_key(self):
        client = YouTubeClient(api_key="", base_url=BASE, session=FakeSession(), use_cache=False)
        with pytest.raises(TransientUpstreamError):
            client.get_playlist_metadata("PL1")


class TestComments:
    def test_threads_with_replies(self):
        threads = {
            "items": [{
                "id": "t1",
                "snippet": {"topLevelComment": {"snippet": {
                    "textDisplay": "Great explanation",
                    "authorDisplayName": "Ana",
                    "likeCount": 7,
                    "publishedAt": "2025-01-02T00:00:00Z",
                }}},
                "replies": {"comments": [{"id": "r1", "snippet": {"textDisplay": "Agreed", "authorDisplayName": "Ben"}}]},
            }]
        }
        client, session = _client({"commentThreads": (200, threads)})
        comments = client.get_comments("vid1")

        assert len(comments) == 1
        assert comments[0].text == "Great explanation"
        assert comments[0].like_count == 7
        assert [r.text for r in comments[0].replies] == ["Agreed"]
        assert session.calls[0][1]["order"] == "relevance"

    def test_disabled_comments_are_empty(self):
        client, _ = _client({"commentThreads": (403, _api_error(403, "commentsDisabled"))})
        assert client.get_comments("vid1") == []
