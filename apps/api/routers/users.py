"""
Users API Router

Profile upsert on sign-in and profile read for the signed-in user.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from core.auth import get_current_user, get_current_user_id
from core.database import get_db
from models import User
from schemas import UserResponse, UserUpsert

import logging

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/users", tags=["Users"])


@router.post("", response_model=UserResponse)
def upsert_user(
    request: UserUpsert,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """Create or refresh the caller's profile. Omitted fields keep their stored value."""
    user = db.query(User).filter(User.id == user_id).first()
    if user is None:
        user = User(id=user_id)
        db.add(user)
        logger.info(f"Created user {user_id}")

    for field, value in request.model_dump(exclude_unset=True).items():
        setattr(user, field, value)

    db.flush()
    db.refresh(user)
    return user


@router.get("/me", response_model=UserResponse)
def get_me(user: User = Depends(get_current_user)):
    """The caller's stored profile."""
    return user
