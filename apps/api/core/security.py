"""
Bearer token validation.

Identity is asserted by the sign-in bridge, which issues an HS256 JWT whose
``sub`` claim is the identity-provider subject. The API only needs to check
the signature, expiry and (when JWT_ISSUER is configured) the issuer;
``create_access_token`` exists for the bridge's shared code path and tests.

SECRET_KEY is the shared signing key. It is required, must be at least 32
characters, and is validated at import so a misconfigured process never
starts serving.
"""
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from jose import ExpiredSignatureError, JWTError, jwt

from core.config import settings

logger = logging.getLogger(__name__)

MIN_SECRET_KEY_LENGTH = 32
ALGORITHM = "HS256"

SECRET_KEY = settings.SECRET_KEY
if len(SECRET_KEY) < MIN_SECRET_KEY_LENGTH:
    raise ValueError(
        f"SECRET_KEY must be at least {MIN_SECRET_KEY_LENGTH} characters. "
        "Generate with: python -c \"import secrets; print(secrets.token_urlsafe(32))\""
    )


def create_access_token(claims: Dict[str, Any], expires_delta: Optional[timedelta] = None) -> str:
    """Sign ``claims`` with an ``iat``/``exp`` pair (and ``iss`` when configured)."""
    issued_at = datetime.now(timezone.utc)
    payload = dict(claims)
    payload["iat"] = issued_at
    payload["exp"] = issued_at + (expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES))
    if settings.JWT_ISSUER:
        payload.setdefault("iss", settings.JWT_ISSUER)
    return jwt.encode(payload, SECRET_KEY, algorithm=ALGORITHM)


def decode_access_token(token: str) -> Optional[Dict[str, Any]]:
    """Verified claims, or None for a malformed, tampered, expired or foreign token."""
    try:
        return jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM], issuer=settings.JWT_ISSUER)
    except ExpiredSignatureError:
        logger.debug("Rejected expired token")
        return None
    except JWTError as e:
        logger.debug(f"Rejected token: {e}")
        return None


def get_user_id_from_token(token: str) -> Optional[str]:
    """The ``sub`` claim of a valid token."""
    payload = decode_access_token(token)
    if not payload:
        return None
    subject = payload.get("sub")
    return subject if isinstance(subject, str) and subject else None
