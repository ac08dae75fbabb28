"""Registration, login and principal lookup (bearer JWT)."""

import logging
from typing import Annotated, Literal

from fastapi import APIRouter, Body, Depends, status
from pydantic import AfterValidator, BaseModel, Field
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from course_quiz.auth_utils import create_access_token, hash_password, verify_password
from course_quiz.clock import SystemClock, get_clock
from course_quiz.database import get_session
from course_quiz.deps import get_current_user
from course_quiz.errors import Unauthorized, ValidationError
from course_quiz.models import User
from course_quiz.utils import sanitize_text
from course_quiz.validators import normalize_email

router = APIRouter()
logger = logging.getLogger(__name__)

Email = Annotated[str, AfterValidator(normalize_email)]


class RegisterIn(BaseModel):
    email: Email
    password: str = Field(min_length=6)
    name: str = Field(min_length=2)
    role: Literal["student", "teacher"]


class LoginIn(BaseModel):
    email: Email
    password: str = Field(min_length=6)


def user_dict(user: User) -> dict:
    return {"id": user.id, "email": user.email, "name": user.name, "role": user.role}


def _token_response(user: User) -> dict:
    return {"token": create_access_token(user.id, user.role), "user": user_dict(user)}


@router.post("/register", status_code=status.HTTP_201_CREATED)
def register(
    payload: RegisterIn = Body(...),
    session: Session = Depends(get_session),
    clock: SystemClock = Depends(get_clock),
):
    email = payload.email
    if session.exec(select(User).where(User.email == email)).first():
        raise ValidationError("Email already registered")

    user = User(
        email=email,
        name=sanitize_text(payload.name),
        password_hash=hash_password(payload.password),
        role=payload.role,
        created_at=clock.now(),
    )
    try:
        session.add(user)
        session.commit()
    except IntegrityError:
        session.rollback()
        raise ValidationError("Email already registered")
    session.refresh(user)
    logger.info("Registered %s user %s", user.role, user.id)
    return _token_response(user)


@router.post("/login")
def login(payload: LoginIn = Body(...), session: Session = Depends(get_session)):
    user = session.exec(select(User).where(User.email == payload.email)).first()
    if not user or not verify_password(payload.password, user.password_hash):
        raise Unauthorized("Invalid credentials")
    return _token_response(user)


@router.get("/me")
def me(current_user: User = Depends(get_current_user)):
    return {"user": user_dict(current_user)}
