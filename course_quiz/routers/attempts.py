"""Student attempt routes: autosave, submit, result and own grade history."""

from typing import List

from fastapi import APIRouter, Body, Depends
from pydantic import BaseModel, ConfigDict, Field
from sqlmodel import Session

from course_quiz.clock import SystemClock, get_clock
from course_quiz.database import get_session
from course_quiz.deps import get_current_user, require_role
from course_quiz.models import STUDENT, User
from course_quiz.services import attempt_service

router = APIRouter()


class AutosaveIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    question_id: int = Field(alias="questionId")
    selected_choice_ids: List[int] = Field(alias="selectedChoiceIds")


@router.get("/my")
def list_my_grades(
    session: Session = Depends(get_session),
    current_user: User = Depends(require_role([STUDENT])),
):
    return attempt_service.list_my_grades(session, current_user.id)


@router.patch("/{attempt_id}/answers")
@router.put("/{attempt_id}/answers")
def autosave_answer(
    attempt_id: int,
    payload: AutosaveIn = Body(...),
    session: Session = Depends(get_session),
    current_user: User = Depends(require_role([STUDENT])),
    clock: SystemClock = Depends(get_clock),
):
    attempt_service.autosave_answer(
        session,
        attempt_id,
        current_user.id,
        payload.question_id,
        payload.selected_choice_ids,
        clock.now(),
    )
    return {"ok": True}


@router.post("/{attempt_id}/submit")
@router.put("/{attempt_id}/submit")
def submit_attempt(
    attempt_id: int,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_role([STUDENT])),
    clock: SystemClock = Depends(get_clock),
):
    attempt = attempt_service.submit_attempt(session, attempt_id, current_user.id, clock.now())
    return {"score": attempt.score}


@router.get("/{attempt_id}/result")
def get_result(
    attempt_id: int,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
    clock: SystemClock = Depends(get_clock),
):
    return attempt_service.get_result(session, attempt_id, current_user.id, clock.now())
