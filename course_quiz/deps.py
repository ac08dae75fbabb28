"""Shared FastAPI dependencies for database access and authentication."""

import logging
from typing import Optional

import jwt
from fastapi import Depends
from fastapi.security import OAuth2PasswordBearer
from sqlmodel import Session

from course_quiz.auth_utils import decode_access_token
from course_quiz.database import get_session
from course_quiz.errors import Forbidden, Unauthorized
from course_quiz.models import User

logger = logging.getLogger(__name__)

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login", auto_error=False)


def get_current_user(
    token: Optional[str] = Depends(oauth2_scheme),
    session: Session = Depends(get_session),
) -> User:
    """Resolve the bearer token to the calling user."""
    if not token:
        raise Unauthorized("Unauthorized")
    try:
        payload = decode_access_token(token)
    except jwt.PyJWTError:
        raise Unauthorized("Unauthorized")

    try:
        user_id = int(payload.get("uid"))
    except (TypeError, ValueError):
        raise Unauthorized("Unauthorized")

    user = session.get(User, user_id)
    if user is None:
        raise Unauthorized("User not found")
    return user


def require_role(required_roles: list[str]):
    """Dependency factory that enforces one of the given roles."""

    def wrapper(current_user: User = Depends(get_current_user)) -> User:
        if current_user.role not in required_roles:
            logger.info("Role check failed: user %s has role %s", current_user.id, current_user.role)
            raise Forbidden("Forbidden")
        return current_user

    return wrapper
