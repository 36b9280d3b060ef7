"""
Study Notes Generation (Gemini)

Turns a video transcript into Markdown study notes with Gemini via the
google-genai SDK.

Provider failures are mapped to the API's error types:
- quota / resource exhaustion -> UpstreamQuotaError (503)
- safety blocking -> ContentRejectedError (400)
- anything else -> TransientUpstreamError (500)
"""

import logging
from dataclasses import dataclass
from typing import Any, Optional

from google import genai
from google.genai import types as genai_types

from core.config import settings
from core.exceptions import (
    ContentRejectedError,
    TransientUpstreamError,
    UpstreamQuotaError,
    ValidationError,
)

logger = logging.getLogger(__name__)

STUDY_NOTES_PROMPT = (
    "You are a detailed note-taking assistant. Please create comprehensive study notes "
    "from the following transcript. Focus on the main points, use bullet points, and "
    "organize the information clearly. The notes should be formatted in Markdown.\n\n"
    "Transcript:"
)

MIN_NOTES_CHARS = 100

_QUOTA_MARKERS = ("quota", "resource_exhausted", "resource exhausted", "rate limit")
_SAFETY_MARKERS = ("safety", "blocked")


@dataclass
class GeneratedNotes:
    notes: str
    model: str
    input_tokens: int = 0
    output_tokens: int = 0


def validate_transcript(transcript: Optional[str]) -> str:
    """Reject transcripts that are missing, too short to summarize, or too long."""
    if not transcript or not transcript.strip():
        raise ValidationError("Transcript is required", field="transcript")
    if len(transcript) < settings.TRANSCRIPT_MIN_CHARS:
        raise ValidationError("Transcript is too short to generate meaningful notes", field="transcript")
    if len(transcript) > settings.TRANSCRIPT_MAX_CHARS:
        raise ValidationError("Transcript is too long. Please use a shorter video.", field="transcript")
    return transcript


def classify_provider_error(error: Exception) -> Exception:
    """Map a google-genai failure onto the API error it should surface as."""
    message = str(error).lower()
    code = getattr(error, "code", None)
    if code == 429 or any(marker in message for marker in _QUOTA_MARKERS):
        return UpstreamQuotaError()
    if any(marker in message for marker in _SAFETY_MARKERS):
        return ContentRejectedError()
    return TransientUpstreamError("Gemini", str(error) or "Failed to generate study notes")


def _blocked_for_safety(response: Any) -> bool:
    feedback = getattr(response, "prompt_feedback", None)
    if feedback is not None and getattr(feedback, "block_reason", None):
        return True
    for candidate in getattr(response, "candidates", None) or []:
        reason = getattr(candidate, "finish_reason", None)
        if reason is not None and "SAFETY" in str(reason).upper():
            return True
    return False


class StudyNotesGenerator:
    """
    Gemini-backed notes generator.

    ``client`` is a ``genai.Client`` (or anything exposing
    ``models.generate_content``); built from GOOGLE_AI_API_KEY when omitted.
    """

    def __init__(self, client: Any = None, model: Optional[str] = None):
        self.model = model or settings.GEMINI_MODEL
        if client is None and settings.GOOGLE_AI_API_KEY:
            client = genai.Client(api_key=settings.GOOGLE_AI_API_KEY)
            logger.info(f"Gemini client initialized for study notes ({self.model})")
        self.client = client

    def generate(self, transcript: str) -> GeneratedNotes:
        if self.client is None:
            raise TransientUpstreamError("Gemini", "Google AI API key is not configured")

        prompt = STUDY_NOTES_PROMPT + transcript
        config = genai_types.GenerateContentConfig(temperature=0.3)

        try:
            response = self.client.models.generate_content(
                model=self.model,
                contents=prompt,
                config=config,
            )
        except Exception as e:
            logger.error(f"Gemini notes generation failed: {e}")
            raise classify_provider_error(e) from e

        if _blocked_for_safety(response):
            raise ContentRejectedError()

        notes = (getattr(response, "text", None) or "").strip()
        if len(notes) < MIN_NOTES_CHARS:
            raise TransientUpstreamError("Gemini", "Failed to generate meaningful study notes")

        usage = getattr(response, "usage_metadata", None)
        result = GeneratedNotes(
            notes=notes,
            model=self.model,
            input_tokens=int(getattr(usage, "prompt_token_count", 0) or 0),
            output_tokens=int(getattr(usage, "candidates_token_count", 0) or 0),
        )
        logger.info(
            "Generated study notes",
            extra={"extra_fields": {
                "model": result.model,
                "transcript_chars": len(transcript),
                "notes_chars": len(notes),
                "input_tokens": result.input_tokens,
                "output_tokens": result.output_tokens,
            }},
        )
        return result


_generator: Optional[StudyNotesGenerator] = None


def get_notes_generator() -> StudyNotesGenerator:
    global _generator
    if _generator is None:
        _generator = StudyNotesGenerator()
    return _generator
