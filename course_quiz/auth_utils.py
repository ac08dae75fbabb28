"""Authentication utilities: password hashing and bearer token handling."""

from datetime import datetime, timedelta, timezone
from typing import Any, Optional

import jwt
from passlib.context import CryptContext

from course_quiz.config import settings

# Configure bcrypt to avoid compatibility issues with bcrypt 4.0+
PWD_CONTEXT = CryptContext(
    schemes=["bcrypt"],
    deprecated="auto",
    bcrypt__ident="2b",
    bcrypt__rounds=settings.bcrypt_rounds,
)


def hash_password(plain_password: str) -> str:
    """Hash a plaintext password for storage."""
    return PWD_CONTEXT.hash(plain_password)


def verify_password(plain_password: str, password_hash: str) -> bool:
    """Verify a plaintext password against its hash."""
    return PWD_CONTEXT.verify(plain_password, password_hash)


def create_access_token(user_id: int, role: str, expires_minutes: Optional[int] = None) -> str:
    """Create a signed JWT carrying the principal (``uid`` and ``role``)."""
    minutes = expires_minutes if expires_minutes is not None else settings.access_token_expire_minutes
    payload = {
        "uid": str(user_id),
        "role": role,
        "exp": datetime.now(timezone.utc) + timedelta(minutes=minutes),
    }
    return jwt.encode(payload, settings.secret_key, algorithm=settings.algorithm)


def decode_access_token(token: str) -> dict[str, Any]:
    """Decode and verify a token; raises ``jwt.PyJWTError`` when invalid or expired."""
    return jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm])
