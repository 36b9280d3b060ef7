"""
Integration tests for playlist import, YouTube catalog reads and user profiles.

The YouTube client and transcript fetcher are replaced with fakes through
dependency overrides.
"""
import pytest
from fastapi.testclient import TestClient

from core.exceptions import TranscriptUnavailableError, UpstreamQuotaError
from main import app
from services.transcript_service import get_transcript_fetcher
from services.youtube_client import Comment, PlaylistMetadata, PlaylistPage, VideoDescriptor, get_youtube_client

client = TestClient(app)


def _video(video_id):
    return VideoDescriptor(
        id=video_id,
        title=f"Lesson {video_id}",
        description="",
        thumbnail="",
        duration="PT10M",
        published_at="2025-01-01T00:00:00Z",
        channel_title="Channel",
        view_count="5",
        duration_seconds=600,
    )


class FakeCatalog:
    def __init__(self, metadata_error=None):
        self.metadata_error = metadata_error
        self.pages = {
            None: PlaylistPage([_video("v1"), _video("v2")], next_cursor="p2"),
            "p2": PlaylistPage([_video("v3")], next_cursor=None),
        }

    def get_playlist_metadata(self, playlist_id):
        if self.metadata_error is not None:
            raise self.metadata_error
        if playlist_id != "PLcourse":
            return None
        return PlaylistMetadata(
            id=playlist_id,
            title="Deep Learning",
            description="Course",
            thumbnails={"high": {"url": "https://img/high.jpg"}},
            channel_id="UC1",
            channel_title="Channel",
            item_count=3,
        )

    def get_playlist_page(self, playlist_id, cursor=None):
        return self.pages[cursor]

    def get_comments(self, video_id, max_results=20):
        return [Comment("c1", "Nice", "Ana", "", 3, "2025-01-01", "2025-01-01")]


class FakeFetcher:
    def __init__(self, transcript=None):
        self.transcript = transcript

    def get_transcript(self, video_id):
        if self.transcript is None:
            raise TranscriptUnavailableError()
        return self.transcript


@pytest.fixture
def catalog():
    fake = FakeCatalog()
    app.dependency_overrides[get_youtube_client] = lambda: fake
    yield fake
    app.dependency_overrides.pop(get_youtube_client, None)


@pytest.fixture
def fetcher():
    fake = FakeFetcher("Welcome to lesson one. " * 10)
    app.dependency_overrides[get_transcript_fetcher] = lambda: fake
    yield fake
    app.dependency_overrides.pop(get_transcript_fetcher, None)


class TestPlaylistImport:
    def test_import_and_list(self, headers, catalog):
        response = client.post("/v1/playlists", json={"url": "https://www.youtube.com/playlist?list=PLcourse"}, headers=headers)
        assert response.status_code == 200
        data = response.json()
        assert data["playlist"]["youtube_playlist_id"] == "PLcourse"
        assert data["playlist"]["title"] == "Deep Learning"
        assert data["playlist"]["thumbnail_url"] == "https://img/high.jpg"
        assert [v["id"] for v in data["videos"]] == ["v1", "v2"]
        assert data["videos"][0]["duration_label"] == "10:00"
        assert data["next_cursor"] == "p2"

        listed = client.get("/v1/playlists", headers=headers).json()
        assert [p["youtube_playlist_id"] for p in listed] == ["PLcourse"]

    def test_reimport_does_not_duplicate(self, headers, catalog):
        url = "https://www.youtube.com/watch?v=abc&list=PLcourse"
        first = client.post("/v1/playlists", json={"url": url}, headers=headers).json()
        second = client.post("/v1/playlists", json={"url": url}, headers=headers).json()
        assert first["playlist"]["id"] == second["playlist"]["id"]
        assert len(client.get("/v1/playlists", headers=headers).json()) == 1

    def test_invalid_url(self, headers, catalog):
        response = client.post("/v1/playlists", json={"url": "https://example.com/nothing"}, headers=headers)
        assert response.status_code == 400
        assert response.json()["error"] == "Invalid playlist URL"

    def test_unknown_playlist(self, headers, catalog):
        response = client.post("/v1/playlists", json={"url": "https://www.youtube.com/playlist?list=PLmissing"}, headers=headers)
        assert response.status_code == 404


class TestYouTubeRoutes:
    def test_first_page_has_details(self, catalog):
        response = client.get("/v1/youtube/playlist", params={"id": "PLcourse"})
        assert response.status_code == 200
        data = response.json()
        assert data["playlist_details"]["title"] == "Deep Learning"
        assert data["total_results"] == 2
        assert data["next_page_token"] == "p2"

    def test_next_page(self, catalog):
        data = client.get("/v1/youtube/playlist", params={"id": "PLcourse", "page_token": "p2"}).json()
        assert data["playlist_details"] is None
        assert [v["id"] for v in data["videos"]] == ["v3"]
        assert data["next_page_token"] is None

    def test_missing_id(self, catalog):
        response = client.get("/v1/youtube/playlist")
        assert response.status_code == 400
        assert response.json()["error"] == "Playlist ID is required"

    def test_upstream_quota_is_503(self):
        app.dependency_overrides[get_youtube_client] = lambda: FakeCatalog(metadata_error=UpstreamQuotaError())
        try:
            response = client.get("/v1/youtube/playlist", params={"id": "PLcourse"})
        finally:
            app.dependency_overrides.pop(get_youtube_client, None)
        assert response.status_code == 503

    def test_comments(self, catalog):
        data = client.get("/v1/youtube/comments", params={"video_id": "v1"}).json()
        assert data["comments"][0]["text"] == "Nice"

    def test_transcript(self, headers, fetcher):
        response = client.get("/v1/youtube/transcript", params={"video_id": "dQw4w9WgXcQ"}, headers=headers)
        assert response.status_code == 200
        data = response.json()
        assert data["video_id"] == "dQw4w9WgXcQ"
        assert data["length"] == len(data["transcript"])

    def test_transcript_bad_id(self, headers, fetcher):
        response = client.get("/v1/youtube/transcript", params={"video_id": "nope"}, headers=headers)
        assert response.status_code == 400

    def test_transcript_unavailable_lists_causes(self, headers):
        app.dependency_overrides[get_transcript_fetcher] = lambda: FakeFetcher(None)
        try:
            response = client.get("/v1/youtube/transcript", params={"video_id": "dQw4w9WgXcQ"}, headers=headers)
        finally:
            app.dependency_overrides.pop(get_transcript_fetcher, None)
        assert response.status_code == 404
        assert len(response.json()["details"]) == 4


class TestUsers:
    def test_upsert_and_read(self, headers, user_id):
        response = client.post("/v1/users", json={"email": "ana@example.com", "name": "Ana"}, headers=headers)
        assert response.status_code == 200
        assert response.json()["id"] == user_id

        client.post("/v1/users", json={"avatar_url": "https://img/ana.png"}, headers=headers)
        me = client.get("/v1/users/me", headers=headers).json()
        assert me["email"] == "ana@example.com"
        assert me["avatar_url"] == "https://img/ana.png"

    def test_me_before_upsert(self, headers):
        response = client.get("/v1/users/me", headers=headers)
        assert response.status_code == 401
        assert response.json()["error"] == "User not found"
