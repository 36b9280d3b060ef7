"""
Integration tests for study-notes generation, usage and PDF export.
"""
from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient

from core.exceptions import UpstreamQuotaError
from main import app
from services.study_notes import GeneratedNotes, get_notes_generator

client = TestClient(app)

TRANSCRIPT = "Today we cover the chain rule and how backpropagation applies it layer by layer. " * 4
NOTES = "# Backpropagation\n\n" + "- The chain rule composes local gradients\n" * 5


class FakeGenerator:
    def __init__(self, error=None):
        self.error = error
        self.calls = 0

    def generate(self, transcript):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return GeneratedNotes(notes=NOTES, model="fake")


@pytest.fixture
def generator():
    fake = FakeGenerator()
    app.dependency_overrides[get_notes_generator] = lambda: fake
    yield fake
    app.dependency_overrides.pop(get_notes_generator, None)


def _generate(headers, transcript=TRANSCRIPT):
    return client.post("/v1/notes/generate", json={"video_id": "dQw4w9WgXcQ", "transcript": transcript}, headers=headers)


class TestGenerate:
    def test_three_per_day_then_429(self, headers, generator):
        for expected in (1, 2, 3):
            response = _generate(headers)
            assert response.status_code == 200
            data = response.json()
            assert data["notes"] == NOTES
            assert data["usage_info"]["current_count"] == expected
            assert data["usage_info"]["remaining"] == 3 - expected

        response = _generate(headers)
        assert response.status_code == 429
        body = response.json()
        assert body["error"] == "Daily usage limit exceeded"
        assert body["details"]["current_count"] == 3
        assert body["details"]["max_count"] == 3
        assert "UTC+05:30" in body["details"]["message"]
        assert generator.calls == 3

    def test_short_transcript_rejected_without_using_quota(self, headers, generator):
        response = _generate(headers, transcript="too short")
        assert response.status_code == 400
        assert generator.calls == 0

        usage = client.get("/v1/notes/usage", headers=headers).json()
        assert usage["current_count"] == 0

    def test_failed_generation_is_not_counted(self, headers):
        app.dependency_overrides[get_notes_generator] = lambda: FakeGenerator(error=UpstreamQuotaError())
        try:
            response = _generate(headers)
        finally:
            app.dependency_overrides.pop(get_notes_generator, None)

        assert response.status_code == 503
        usage = client.get("/v1/notes/usage", headers=headers).json()
        assert usage["current_count"] == 0
        assert usage["can_use"] is True


class TestUsage:
    def test_initial_usage(self, headers):
        response = client.get("/v1/notes/usage", headers=headers)
        assert response.status_code == 200
        assert response.json() == {"current_count": 0, "max_count": 3, "remaining": 3, "can_use": True}

    def test_usage_after_generation(self, headers, generator):
        _generate(headers)
        usage = client.get("/v1/notes/usage", headers=headers).json()
        assert usage["current_count"] == 1
        assert usage["remaining"] == 2


class TestPdfExport:
    def test_download(self, headers):
        response = client.post(
            "/v1/notes/pdf",
            json={"notes": NOTES, "video_title": "Backprop Explained", "video_id": "dQw4w9WgXcQ"},
            headers=headers,
        )
        assert response.status_code == 200
        assert response.headers["content-type"] == "application/pdf"
        today = datetime.now(timezone.utc).date().isoformat()
        assert response.headers["content-disposition"] == f'attachment; filename="Backprop_Explained_{today}.pdf"'
        assert response.content.startswith(b"%PDF")

    def test_empty_notes_rejected(self, headers):
        response = client.post("/v1/notes/pdf", json={"notes": ""}, headers=headers)
        assert response.status_code == 400
