"""Course management, join codes and rosters."""

from typing import Optional

from fastapi import APIRouter, Body, Depends, status
from pydantic import BaseModel, ConfigDict, Field
from sqlmodel import Session

from course_quiz.clock import SystemClock, get_clock
from course_quiz.database import get_session
from course_quiz.deps import get_current_user, require_role
from course_quiz.models import STUDENT, TEACHER, User
from course_quiz.services import course_service
from course_quiz.services.course_service import course_dict

router = APIRouter()


class CreateCourseIn(BaseModel):
    title: str = Field(min_length=2)
    description: Optional[str] = None


class UpdateCourseIn(BaseModel):
    title: Optional[str] = Field(default=None, min_length=2)
    description: Optional[str] = None


class JoinIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    join_code: str = Field(alias="joinCode", min_length=1)


@router.post("", status_code=status.HTTP_201_CREATED)
def create_course(
    payload: CreateCourseIn = Body(...),
    session: Session = Depends(get_session),
    current_user: User = Depends(require_role([TEACHER])),
    clock: SystemClock = Depends(get_clock),
):
    course = course_service.create_course(
        session, current_user.id, payload.title, clock.now(), description=payload.description
    )
    return {"course": course_dict(course)}


@router.get("")
@router.get("/my-courses")
def list_my_courses(
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    return {"courses": course_service.list_my_courses(session, current_user)}


@router.post("/join")
def join_by_code(
    payload: JoinIn = Body(...),
    session: Session = Depends(get_session),
    current_user: User = Depends(require_role([STUDENT])),
    clock: SystemClock = Depends(get_clock),
):
    course = course_service.join_course_by_code(session, current_user.id, payload.join_code, clock.now())
    return {"ok": True, "course": course_dict(course, include_join_code=False)}


@router.get("/{course_id}")
def get_course(
    course_id: int,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    course = course_service.get_visible_course(session, course_id, current_user)
    return {"course": course_dict(course, include_join_code=False)}


@router.put("/{course_id}")
def update_course(
    course_id: int,
    payload: UpdateCourseIn = Body(...),
    session: Session = Depends(get_session),
    current_user: User = Depends(require_role([TEACHER])),
):
    course = course_service.update_course(
        session, course_id, current_user.id, title=payload.title, description=payload.description
    )
    return {"course": course_dict(course)}


@router.delete("/{course_id}")
def delete_course(
    course_id: int,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_role([TEACHER])),
):
    course_service.delete_course(session, course_id, current_user.id)
    return {"message": "Course deleted successfully"}


@router.post("/{course_id}/join")
@router.post("/{course_id}/enroll")
def join_course(
    course_id: int,
    payload: JoinIn = Body(...),
    session: Session = Depends(get_session),
    current_user: User = Depends(require_role([STUDENT])),
    clock: SystemClock = Depends(get_clock),
):
    course_service.join_course(session, course_id, current_user.id, payload.join_code, clock.now())
    return {"ok": True}


@router.get("/{course_id}/roster")
def get_roster(
    course_id: int,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_role([TEACHER])),
):
    return {"roster": course_service.get_roster(session, course_id, current_user.id)}


@router.delete("/{course_id}/roster/{user_id}")
def remove_student(
    course_id: int,
    user_id: int,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_role([TEACHER])),
):
    enrollment = course_service.remove_student(session, course_id, current_user.id, user_id)
    return {"ok": True, "status": enrollment.status}
