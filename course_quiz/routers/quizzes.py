"""Quiz authoring, discovery, attempt start and teacher grade views."""

from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Body, Depends, Response, status
from pydantic import BaseModel, ConfigDict, Field
from sqlmodel import Session

from course_quiz.clock import SystemClock, get_clock
from course_quiz.database import get_session
from course_quiz.deps import get_current_user, require_role
from course_quiz.models import STUDENT, TEACHER, User
from course_quiz.services import attempt_service, quiz_service
from course_quiz.services.policy import get_ordered_questions
from course_quiz.services.quiz_service import quiz_dict

router = APIRouter()


class CreateQuizIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    title: str = Field(min_length=2)
    description: Optional[str] = None
    open_at: datetime = Field(alias="openAt")
    close_at: datetime = Field(alias="closeAt")
    duration_minutes: int = Field(alias="durationMinutes", ge=1)
    attempts_allowed: int = Field(default=1, alias="attemptsAllowed", ge=1)


class UpdateQuizIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    title: Optional[str] = Field(default=None, min_length=2)
    description: Optional[str] = None
    open_at: Optional[datetime] = Field(default=None, alias="openAt")
    close_at: Optional[datetime] = Field(default=None, alias="closeAt")
    duration_minutes: Optional[int] = Field(default=None, alias="durationMinutes", ge=1)
    attempts_allowed: Optional[int] = Field(default=None, alias="attemptsAllowed", ge=1)


class ChoiceIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    text: str = Field(min_length=1)
    is_correct: bool = Field(default=False, alias="isCorrect")


class CreateQuestionIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    prompt: str = Field(min_length=2)
    points: int = Field(default=1, ge=0)
    order_index: int = Field(default=0, alias="orderIndex", ge=0)
    choices: List[ChoiceIn] = Field(min_length=2)


def _attempt_payload(started: attempt_service.StartedAttempt) -> dict:
    return {
        "attemptId": started.attempt.id,
        "endAt": started.attempt.end_at,
        "questions": [q.public() for q in started.questions],
    }


@router.get("/available")
def list_available_quizzes(
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
    clock: SystemClock = Depends(get_clock),
):
    return {"quizzes": quiz_service.list_available_quizzes(session, current_user.id, clock.now())}


@router.post("/{course_id}/quizzes", status_code=status.HTTP_201_CREATED)
def create_quiz(
    course_id: int,
    payload: CreateQuizIn = Body(...),
    session: Session = Depends(get_session),
    current_user: User = Depends(require_role([TEACHER])),
    clock: SystemClock = Depends(get_clock),
):
    quiz = quiz_service.create_quiz(
        session,
        course_id,
        current_user.id,
        clock.now(),
        title=payload.title,
        description=payload.description,
        open_at=payload.open_at,
        close_at=payload.close_at,
        duration_minutes=payload.duration_minutes,
        attempts_allowed=payload.attempts_allowed,
    )
    return {"quiz": quiz_dict(quiz)}


@router.get("/{course_id}/quizzes")
def list_course_quizzes(
    course_id: int,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    return quiz_service.list_course_quizzes(session, course_id, current_user)


@router.get("/{quiz_id}")
def get_quiz_details(
    quiz_id: int,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
    clock: SystemClock = Depends(get_clock),
):
    return quiz_service.get_quiz_details(session, quiz_id, current_user, clock.now())


@router.put("/{quiz_id}")
def update_quiz(
    quiz_id: int,
    payload: UpdateQuizIn = Body(...),
    session: Session = Depends(get_session),
    current_user: User = Depends(require_role([TEACHER])),
    clock: SystemClock = Depends(get_clock),
):
    quiz = quiz_service.update_quiz(
        session, quiz_id, current_user.id, clock.now(), **payload.model_dump(exclude_unset=True)
    )
    return {"quiz": quiz_dict(quiz)}


@router.delete("/{quiz_id}")
def delete_quiz(
    quiz_id: int,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_role([TEACHER])),
):
    quiz_service.delete_quiz(session, quiz_id, current_user.id)
    return {"message": "Quiz deleted successfully"}


@router.post("/{quiz_id}/questions", status_code=status.HTTP_201_CREATED)
def add_question(
    quiz_id: int,
    payload: CreateQuestionIn = Body(...),
    session: Session = Depends(get_session),
    current_user: User = Depends(require_role([TEACHER])),
    clock: SystemClock = Depends(get_clock),
):
    question = quiz_service.add_question(
        session,
        quiz_id,
        current_user.id,
        clock.now(),
        prompt=payload.prompt,
        points=payload.points,
        order_index=payload.order_index,
        choices=[c.model_dump() for c in payload.choices],
    )
    views = {q.id: q for q in get_ordered_questions(session, quiz_id)}
    return {"question": views[question.id].full()}


@router.post("/{quiz_id}/publish")
def publish_quiz(
    quiz_id: int,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_role([TEACHER])),
    clock: SystemClock = Depends(get_clock),
):
    quiz = quiz_service.publish_quiz(session, quiz_id, current_user.id, clock.now())
    return {"quiz": quiz_dict(quiz)}


@router.post("/{quiz_id}/attempts/start")
def start_attempt(
    quiz_id: int,
    response: Response,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_role([STUDENT])),
    clock: SystemClock = Depends(get_clock),
):
    """Start a timed attempt, or resume the caller's running one (200 instead of 201)."""
    started = attempt_service.start_attempt(session, current_user.id, quiz_id, clock.now())
    response.status_code = status.HTTP_201_CREATED if started.created else status.HTTP_200_OK
    return _attempt_payload(started)


@router.post("/{quiz_id}/attempts/sweep")
def sweep_attempts(
    quiz_id: int,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_role([TEACHER])),
    clock: SystemClock = Depends(get_clock),
):
    expired = attempt_service.sweep_quiz(session, quiz_id, current_user.id, clock.now())
    return {"expired": expired}


@router.get("/{quiz_id}/grades")
def list_quiz_grades(
    quiz_id: int,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_role([TEACHER])),
):
    return attempt_service.list_quiz_grades(session, quiz_id, current_user.id)
