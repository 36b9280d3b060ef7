"""
Authentication dependencies.

Every user-scoped route depends on ``get_current_user_id``; the returned
subject is the only user id the route may act on, so a caller can never read
or write another user's rows.
"""
from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session
from typing import Optional

from core.database import get_db
from core.exceptions import AuthorizationError
from core.security import decode_access_token
from models import User

# Use auto_error=False to handle missing credentials manually and return 401 (not 403)
security = HTTPBearer(auto_error=False)


def get_current_user_id(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> str:
    """
    Resolve the authenticated subject from the bearer token.

    Raises AuthorizationError if the token is missing, invalid or has no subject.
    """
    if not credentials:
        raise AuthorizationError("Not authenticated")

    payload = decode_access_token(credentials.credentials)
    if not payload:
        raise AuthorizationError("Invalid authentication credentials")

    user_id = payload.get("sub")
    if not user_id or not isinstance(user_id, str):
        raise AuthorizationError("Invalid token payload")

    return user_id


def get_current_user(
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db)
) -> User:
    """Get the stored profile of the authenticated user."""
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise AuthorizationError("User not found")
    return user


def get_current_user_id_optional(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> Optional[str]:
    """
    Get the authenticated subject if a valid token is provided, else None.

    Useful for public endpoints that log who is calling.
    """
    if not credentials:
        return None
    payload = decode_access_token(credentials.credentials)
    if not payload:
        return None
    return payload.get("sub")
