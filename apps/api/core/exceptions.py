"""
Custom exception classes and error handling.

Every failure surfaced by the API is one of these types and renders as the
same envelope: ``{"error": <message>, "details": <optional payload>}``.
"""
from fastapi import HTTPException, status
from typing import Any, Optional, Dict, List


class APIException(HTTPException):
    """Base API exception with consistent structure."""

    def __init__(
        self,
        status_code: int,
        detail: str,
        error_code: Optional[str] = None,
        details: Any = None,
        headers: Optional[Dict[str, Any]] = None
    ):
        super().__init__(status_code=status_code, detail=detail, headers=headers)
        self.error_code = error_code
        self.details = details

    def to_envelope(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"error": self.detail}
        if self.details is not None:
            body["details"] = self.details
        return body


class AuthorizationError(APIException):
    """Missing or invalid identity."""

    def __init__(self, detail: str = "Unauthorized"):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=detail,
            error_code="UNAUTHORIZED",
            headers={"WWW-Authenticate": "Bearer"}
        )


class ValidationError(APIException):
    """Missing or malformed input, rejected before any side effect."""

    def __init__(self, detail: str, field: Optional[str] = None, details: Any = None):
        error_code = f"VALIDATION_ERROR_{field.upper()}" if field else "VALIDATION_ERROR"
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=detail,
            error_code=error_code,
            details=details,
        )


class NotFoundError(APIException):
    """Resource not found (locally or upstream)."""

    def __init__(self, resource: str, identifier: str):
        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"{resource} not found: {identifier}",
            error_code="NOT_FOUND"
        )


class QuotaExceededError(APIException):
    """Per-user daily usage cap reached."""

    def __init__(self, detail: str, details: Any = None):
        super().__init__(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail=detail,
            error_code="USAGE_LIMIT_EXCEEDED",
            details=details,
        )


class UpstreamQuotaError(APIException):
    """An upstream provider (Gemini, YouTube) refused for quota reasons."""

    def __init__(self, detail: str = "AI service quota exceeded. Please try again later."):
        super().__init__(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=detail,
            error_code="UPSTREAM_QUOTA_EXCEEDED"
        )


class ContentRejectedError(APIException):
    """Generation blocked by the provider's safety filtering."""

    def __init__(self, detail: str = "Content flagged by safety filters. Please try with different content."):
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=detail,
            error_code="CONTENT_REJECTED"
        )


TRANSCRIPT_UNAVAILABLE_CAUSES: List[str] = [
    "The video does not have captions/subtitles",
    "Captions are disabled by the video owner",
    "The video is private or restricted",
    "The video is too new and captions haven't been generated yet",
]


class TranscriptUnavailableError(APIException):
    """Upstream has no captions for the video."""

    def __init__(self, detail: str = "No transcript available for this video. This could be because:"):
        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=detail,
            error_code="TRANSCRIPT_UNAVAILABLE",
            details=list(TRANSCRIPT_UNAVAILABLE_CAUSES),
        )


class TransientUpstreamError(APIException):
    """Network failure or 5xx from a collaborator."""

    def __init__(self, service: str, detail: Optional[str] = None):
        super().__init__(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=detail or f"{service} is temporarily unavailable",
            error_code="UPSTREAM_UNAVAILABLE"
        )
