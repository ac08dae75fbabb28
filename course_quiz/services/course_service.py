"""Courses, join codes and enrollments."""

import logging
from datetime import datetime
from typing import List, Optional

from sqlmodel import Session, select

from course_quiz.errors import Forbidden, InvalidState, NotFound, ValidationError
from course_quiz.models import (
    ENROLLMENT_ACTIVE,
    ENROLLMENT_REMOVED,
    TEACHER,
    Attempt,
    Course,
    Enrollment,
    Quiz,
    User,
)
from course_quiz.services.policy import find_enrollment, get_course
from course_quiz.utils import generate_join_code, sanitize_optional, sanitize_text

logger = logging.getLogger(__name__)

JOIN_CODE_RETRIES = 10


def course_dict(course: Course, include_join_code: bool = True) -> dict:
    data = {
        "id": course.id,
        "title": course.title,
        "description": course.description,
        "teacherId": course.teacher_id,
        "createdAt": course.created_at,
    }
    if include_join_code:
        data["joinCode"] = course.join_code
    return data


def _unique_join_code(session: Session) -> str:
    for _ in range(JOIN_CODE_RETRIES):
        code = generate_join_code()
        taken = session.exec(select(Course.id).where(Course.join_code == code)).first()
        if taken is None:
            return code
    raise RuntimeError("Could not allocate a unique join code")


def _validate_title(title: str) -> str:
    clean = sanitize_text(title or "")
    if len(clean) < 2:
        raise ValidationError("Title must be at least 2 characters")
    return clean


def get_owned_course(session: Session, course_id: int, teacher_id: int) -> Course:
    course = get_course(session, course_id)
    if course.teacher_id != teacher_id:
        raise Forbidden("Forbidden")
    return course


def create_course(
    session: Session, teacher_id: int, title: str, now: datetime, description: Optional[str] = None
) -> Course:
    course = Course(
        title=_validate_title(title),
        description=sanitize_optional(description),
        join_code=_unique_join_code(session),
        teacher_id=teacher_id,
        created_at=now,
    )
    session.add(course)
    session.commit()
    session.refresh(course)
    logger.info("Teacher %s created course %s", teacher_id, course.id)
    return course


def list_my_courses(session: Session, user: User) -> List[dict]:
    """Teachers get the courses they own; students get their active enrollments."""
    if user.role == TEACHER:
        courses = session.exec(
            select(Course).where(Course.teacher_id == user.id).order_by(Course.created_at.desc())
        ).all()
        return [course_dict(c) for c in courses]

    rows = session.exec(
        select(Enrollment, Course)
        .join(Course, Course.id == Enrollment.course_id)
        .where(
            (Enrollment.user_id == user.id) & (Enrollment.status == ENROLLMENT_ACTIVE)
        )
        .order_by(Enrollment.created_at.desc())
    ).all()
    return [
        {**course_dict(course, include_join_code=False), "enrolledAt": enrollment.created_at}
        for enrollment, course in rows
    ]


def get_visible_course(session: Session, course_id: int, user: User) -> Course:
    """Course lookup for its owner or an actively enrolled student."""
    course = get_course(session, course_id)
    if user.role == TEACHER:
        if course.teacher_id != user.id:
            raise Forbidden("Forbidden")
        return course

    enrollment = find_enrollment(session, user.id, course.id)
    if enrollment is None or enrollment.status != ENROLLMENT_ACTIVE:
        raise Forbidden("Forbidden")
    return course


def update_course(
    session: Session,
    course_id: int,
    teacher_id: int,
    title: Optional[str] = None,
    description: Optional[str] = None,
) -> Course:
    if title is None and description is None:
        raise ValidationError("Provide a title or a description")
    course = get_owned_course(session, course_id, teacher_id)
    if title is not None:
        course.title = _validate_title(title)
    if description is not None:
        course.description = sanitize_text(description)
    session.add(course)
    session.commit()
    session.refresh(course)
    return course


def delete_course(session: Session, course_id: int, teacher_id: int) -> None:
    """Delete a course and its enrollments; courses whose quizzes hold attempts are kept."""
    course = get_owned_course(session, course_id, teacher_id)
    quiz_ids = session.exec(select(Quiz.id).where(Quiz.course_id == course.id)).all()
    if quiz_ids:
        has_attempts = session.exec(
            select(Attempt.id).where(Attempt.quiz_id.in_(quiz_ids))
        ).first()
        if has_attempts is not None:
            raise InvalidState("Course has quiz attempts and cannot be deleted")
        # local import: quiz_service imports this module
        from course_quiz.services.quiz_service import delete_quiz_rows

        for quiz_id in quiz_ids:
            delete_quiz_rows(session, quiz_id)

    for enrollment in session.exec(select(Enrollment).where(Enrollment.course_id == course.id)).all():
        session.delete(enrollment)
    session.delete(course)
    session.commit()
    logger.info("Teacher %s deleted course %s", teacher_id, course_id)


def _enroll(session: Session, course: Course, user_id: int, now: datetime) -> Enrollment:
    enrollment = find_enrollment(session, user_id, course.id)
    if enrollment is None:
        enrollment = Enrollment(
            course_id=course.id, user_id=user_id, role_in_course="student", created_at=now
        )
        session.add(enrollment)
        session.commit()
        session.refresh(enrollment)
        logger.info("User %s joined course %s", user_id, course.id)
    # An existing (even removed) enrollment is left untouched.
    return enrollment


def join_course(session: Session, course_id: int, user_id: int, join_code: str, now: datetime) -> Enrollment:
    course = get_course(session, course_id)
    if course.join_code != (join_code or "").strip().upper():
        raise ValidationError("Invalid join code")
    return _enroll(session, course, user_id, now)


def join_course_by_code(session: Session, user_id: int, join_code: str, now: datetime) -> Course:
    code = (join_code or "").strip().upper()
    course = session.exec(select(Course).where(Course.join_code == code)).first()
    if not course:
        raise NotFound("Invalid join code")
    _enroll(session, course, user_id, now)
    return course


def get_roster(session: Session, course_id: int, teacher_id: int) -> List[dict]:
    course = get_owned_course(session, course_id, teacher_id)
    rows = session.exec(
        select(Enrollment, User)
        .join(User, User.id == Enrollment.user_id)
        .where(
            (Enrollment.course_id == course.id) & (Enrollment.status == ENROLLMENT_ACTIVE)
        )
        .order_by(User.name)
    ).all()
    return [
        {
            "enrollmentId": enrollment.id,
            "user": {"id": user.id, "name": user.name, "email": user.email},
            "roleInCourse": enrollment.role_in_course,
            "enrolledAt": enrollment.created_at,
        }
        for enrollment, user in rows
    ]


def remove_student(session: Session, course_id: int, teacher_id: int, user_id: int) -> Enrollment:
    """Mark a student's enrollment as removed so they can no longer start quizzes."""
    course = get_owned_course(session, course_id, teacher_id)
    enrollment = find_enrollment(session, user_id, course.id)
    if enrollment is None:
        raise NotFound("Enrollment not found")
    enrollment.status = ENROLLMENT_REMOVED
    session.add(enrollment)
    session.commit()
    session.refresh(enrollment)
    logger.info("Teacher %s removed user %s from course %s", teacher_id, user_id, course.id)
    return enrollment
