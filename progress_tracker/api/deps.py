"""FastAPI dependencies shared across routes."""

import uuid

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session

from progress_tracker.core.security import decode_access_token
from progress_tracker.db.models import RoleEnum, User
from progress_tracker.db.session import get_db
from progress_tracker.services.metric_cache import MetricCache
from progress_tracker.services.store import ProgressStore

# Tokens are issued by the account service; only the bearer header is read here
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/token")


def get_store(db: Session = Depends(get_db)) -> ProgressStore:
    return ProgressStore(db)


def get_metric_cache(request: Request) -> MetricCache:
    """The app-owned cache instance built in ``main.create_app``."""
    return request.app.state.metric_cache


def get_current_user(
    token: str = Depends(oauth2_scheme),
    store: ProgressStore = Depends(get_store),
) -> User:
    """Decode JWT and return the authenticated user, or 401."""
    payload = decode_access_token(token)
    if payload is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )
    user_id = payload.get("sub")
    if not isinstance(user_id, str):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token payload"
        )
    try:
        user_uuid = uuid.UUID(user_id)
    except ValueError:
        user_uuid = None
    user = store.get_user(user_uuid) if user_uuid is not None else None
    if user is None or not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found or inactive",
        )
    return user


def require_teacher(current_user: User = Depends(get_current_user)) -> User:
    """Raise 403 unless the caller is a teacher."""
    if current_user.role != RoleEnum.TEACHER:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN, detail="Teacher access required"
        )
    return current_user


def require_student(current_user: User = Depends(get_current_user)) -> User:
    """Raise 403 unless the caller is a student."""
    if current_user.role != RoleEnum.STUDENT:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN, detail="Student access required"
        )
    return current_user
