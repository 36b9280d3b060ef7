"""
Tests for Gemini study-notes generation with a fake genai client.
"""
from types import SimpleNamespace

import pytest

from core.exceptions import (
    ContentRejectedError,
    TransientUpstreamError,
    UpstreamQuotaError,
    ValidationError,
)
from services.study_notes import (
    STUDY_NOTES_PROMPT,
    StudyNotesGenerator,
    classify_provider_error,
    validate_transcript,
)

TRANSCRIPT = "In this lecture we derive the gradient descent update rule step by step. " * 5

NOTES = "# Gradient Descent\n\n- Update rule: w = w - lr * grad\n- Learning rate controls step size\n" + "- detail\n" * 20


class FakeModels:
    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.calls = []

    def generate_content(self, model, contents, config=None):
        self.calls.append({"model": model, "contents": contents, "config": config})
        if self.error is not None:
            raise self.error
        return self.response


def _client(response=None, error=None):
    return SimpleNamespace(models=FakeModels(response, error))


def _response(text=NOTES, finish_reason="STOP", block_reason=None):
    return SimpleNamespace(
        text=text,
        candidates=[SimpleNamespace(finish_reason=finish_reason)],
        prompt_feedback=SimpleNamespace(block_reason=block_reason),
        usage_metadata=SimpleNamespace(prompt_token_count=120, candidates_token_count=80),
    )


class ProviderError(Exception):
    def __init__(self, message, code=None):
        super().__init__(message)
        self.code = code


class TestValidateTranscript:
    @pytest.mark.parametrize("transcript", [None, "", "   "])
    def test_missing(self, transcript):
        with pytest.raises(ValidationError):
            validate_transcript(transcript)

    def test_too_short(self):
        with pytest.raises(ValidationError) as exc_info:
            validate_transcript("too short")
        assert "too short" in exc_info.value.detail

    def test_too_long(self):
        with pytest.raises(ValidationError):
            validate_transcript("x" * 50001)

    def test_accepts_normal_transcript(self):
        assert validate_transcript(TRANSCRIPT) == TRANSCRIPT


class TestGenerate:
    def test_returns_notes_and_usage(self):
        client = _client(_response())
        result = StudyNotesGenerator(client=client, model="gemini-test").generate(TRANSCRIPT)

        assert result.notes == NOTES.strip()
        assert result.model == "gemini-test"
        assert result.input_tokens == 120
        assert result.output_tokens == 80

        call = client.models.calls[0]
        assert call["model"] == "gemini-test"
        assert call["contents"] == STUDY_NOTES_PROMPT + TRANSCRIPT
        assert call["config"].temperature == 0.3

    def test_short_output_is_a_failure(self):
        client = _client(_response(text="Too brief."))
        with pytest.raises(TransientUpstreamError):
            StudyNotesGenerator(client=client).generate(TRANSCRIPT)

    def test_safety_block_in_prompt_feedback(self):
        client = _client(_response(text="", block_reason="SAFETY"))
        with pytest.raises(ContentRejectedError):
            StudyNotesGenerator(client=client).generate(TRANSCRIPT)

    def test_safety_finish_reason(self):
        client = _client(_response(finish_reason="FinishReason.SAFETY"))
        with pytest.raises(ContentRejectedError):
            StudyNotesGenerator(client=client).generate(TRANSCRIPT)

    def test_quota_error(self):
        client = _client(error=ProviderError("429 RESOURCE_EXHAUSTED", code=429))
        with pytest.raises(UpstreamQuotaError) as exc_info:
            StudyNotesGenerator(client=client).generate(TRANSCRIPT)
        assert exc_info.value.status_code == 503

    def test_unconfigured_client(self, monkeypatch):
        from core.config import settings
        monkeypatch.setattr(settings, "GOOGLE_AI_API_KEY", None)
        with pytest.raises(TransientUpstreamError):
            StudyNotesGenerator().generate(TRANSCRIPT)


class TestClassifyProviderError:
    @pytest.mark.parametrize("error,expected", [
        (ProviderError("anything", code=429), UpstreamQuotaError),
        (ProviderError("Quota exceeded for project"), UpstreamQuotaError),
        (ProviderError("Response blocked due to SAFETY"), ContentRejectedError),
        (ProviderError("503 UNAVAILABLE", code=503), TransientUpstreamError),
        (ConnectionError("reset by peer"), TransientUpstreamError),
    ])
    def test_mapping(self, error, expected):
        assert isinstance(classify_provider_error(error), expected)
