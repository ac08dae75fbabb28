"""Quiz authoring and discovery: create/edit/publish/delete quizzes and add questions."""

import logging
from datetime import datetime
from typing import List, Optional

from sqlmodel import Session, select

from course_quiz.clock import to_utc
from course_quiz.errors import Forbidden, InvalidState, ValidationError
from course_quiz.models import (
    ENROLLMENT_ACTIVE,
    MCQ_SINGLE,
    TEACHER,
    Choice,
    Course,
    Enrollment,
    Question,
    Quiz,
    User,
)
from course_quiz.services.attempt_service import quiz_has_attempts
from course_quiz.services.course_service import get_owned_course
from course_quiz.services.policy import (
    get_course,
    get_ordered_questions,
    get_quiz,
    is_actively_enrolled,
)
from course_quiz.utils import sanitize_optional, sanitize_text

logger = logging.getLogger(__name__)

MIN_CHOICES = 2


def quiz_dict(quiz: Quiz, for_teacher: bool = True) -> dict:
    data = {
        "id": quiz.id,
        "courseId": quiz.course_id,
        "title": quiz.title,
        "description": quiz.description,
        "openAt": quiz.open_at,
        "closeAt": quiz.close_at,
        "durationMinutes": quiz.duration_minutes,
        "attemptsAllowed": quiz.attempts_allowed,
    }
    if for_teacher:
        data["published"] = quiz.published
        data["createdAt"] = quiz.created_at
    return data


def _validate_quiz_fields(
    title: str, open_at: datetime, close_at: datetime, duration_minutes: int, attempts_allowed: int
) -> None:
    if len(title) < 2:
        raise ValidationError("Title must be at least 2 characters")
    if open_at >= close_at:
        raise ValidationError("openAt must be before closeAt")
    if duration_minutes < 1:
        raise ValidationError("durationMinutes must be at least 1")
    if attempts_allowed < 1:
        raise ValidationError("attemptsAllowed must be at least 1")


def get_owned_quiz(session: Session, quiz_id: int, teacher_id: int) -> Quiz:
    quiz = get_quiz(session, quiz_id)
    course = get_course(session, quiz.course_id)
    if course.teacher_id != teacher_id:
        raise Forbidden("Forbidden")
    return quiz


def create_quiz(
    session: Session,
    course_id: int,
    teacher_id: int,
    now: datetime,
    title: str,
    open_at: datetime,
    close_at: datetime,
    duration_minutes: int,
    attempts_allowed: int = 1,
    description: Optional[str] = None,
) -> Quiz:
    course = get_owned_course(session, course_id, teacher_id)

    title_clean = sanitize_text(title or "")
    open_at = to_utc(open_at)
    close_at = to_utc(close_at)
    _validate_quiz_fields(title_clean, open_at, close_at, duration_minutes, attempts_allowed)

    quiz = Quiz(
        course_id=course.id,
        title=title_clean,
        description=sanitize_optional(description),
        open_at=open_at,
        close_at=close_at,
        duration_minutes=duration_minutes,
        attempts_allowed=attempts_allowed,
        published=False,
        created_at=now,
        updated_at=now,
    )
    session.add(quiz)
    session.commit()
    session.refresh(quiz)
    logger.info("Teacher %s created quiz %s in course %s", teacher_id, quiz.id, course.id)
    return quiz


def update_quiz(session: Session, quiz_id: int, teacher_id: int, now: datetime, **changes) -> Quiz:
    """Partially edit a quiz; unknown or ``None`` fields are ignored."""
    quiz = get_owned_quiz(session, quiz_id, teacher_id)

    title = sanitize_text(changes["title"]) if changes.get("title") is not None else quiz.title
    open_at = to_utc(changes["open_at"]) if changes.get("open_at") is not None else quiz.open_at
    close_at = to_utc(changes["close_at"]) if changes.get("close_at") is not None else quiz.close_at
    duration = (
        changes["duration_minutes"] if changes.get("duration_minutes") is not None else quiz.duration_minutes
    )
    allowed = (
        changes["attempts_allowed"] if changes.get("attempts_allowed") is not None else quiz.attempts_allowed
    )
    _validate_quiz_fields(title, open_at, close_at, duration, allowed)

    quiz.title = title
    quiz.open_at = open_at
    quiz.close_at = close_at
    quiz.duration_minutes = duration
    quiz.attempts_allowed = allowed
    if changes.get("description") is not None:
        quiz.description = sanitize_text(changes["description"])
    quiz.updated_at = now

    session.add(quiz)
    session.commit()
    session.refresh(quiz)
    return quiz


def publish_quiz(session: Session, quiz_id: int, teacher_id: int, now: datetime) -> Quiz:
    quiz = get_owned_quiz(session, quiz_id, teacher_id)
    quiz.published = True
    quiz.updated_at = now
    session.add(quiz)
    session.commit()
    session.refresh(quiz)
    logger.info("Quiz %s published", quiz.id)
    return quiz


def add_question(
    session: Session,
    quiz_id: int,
    teacher_id: int,
    now: datetime,
    prompt: str,
    choices: List[dict],
    points: int = 1,
    order_index: int = 0,
) -> Question:
    """Add a single-answer MCQ question.

    ``choices`` is a list of ``{"text": str, "is_correct": bool}``. The
    number of correct choices is not checked: a question with none simply
    never awards points.
    """
    quiz = get_owned_quiz(session, quiz_id, teacher_id)

    prompt_clean = sanitize_text(prompt or "")
    if len(prompt_clean) < 2:
        raise ValidationError("Prompt must be at least 2 characters")
    if points < 0:
        raise ValidationError("points must be at least 0")
    if order_index < 0:
        raise ValidationError("orderIndex must be at least 0")
    if len(choices) < MIN_CHOICES:
        raise ValidationError(f"A question needs at least {MIN_CHOICES} choices")

    cleaned = []
    for c in choices:
        text = sanitize_text(c.get("text") or "")
        if not text:
            raise ValidationError("Choice text is required")
        cleaned.append((text, bool(c.get("is_correct", False))))

    question = Question(
        quiz_id=quiz.id,
        kind=MCQ_SINGLE,
        prompt=prompt_clean,
        points=points,
        order_index=order_index,
        created_at=now,
    )
    session.add(question)
    session.flush()
    for position, (text, is_correct) in enumerate(cleaned):
        session.add(Choice(question_id=question.id, text=text, is_correct=is_correct, position=position))
    session.commit()
    session.refresh(question)
    return question


def delete_quiz_rows(session: Session, quiz_id: int) -> None:
    """Delete a quiz with its questions and choices (no commit)."""
    question_ids = session.exec(select(Question.id).where(Question.quiz_id == quiz_id)).all()
    if question_ids:
        for choice in session.exec(select(Choice).where(Choice.question_id.in_(question_ids))).all():
            session.delete(choice)
        for question in session.exec(select(Question).where(Question.quiz_id == quiz_id)).all():
            session.delete(question)
    quiz = session.get(Quiz, quiz_id)
    if quiz:
        session.delete(quiz)


def delete_quiz(session: Session, quiz_id: int, teacher_id: int) -> None:
    """Delete a quiz and its questions; refused once attempts (grade records) exist."""
    quiz = get_owned_quiz(session, quiz_id, teacher_id)
    if quiz_has_attempts(session, quiz.id):
        raise InvalidState("Quiz has attempts and cannot be deleted")
    delete_quiz_rows(session, quiz.id)
    session.commit()
    logger.info("Teacher %s deleted quiz %s", teacher_id, quiz_id)


def list_course_quizzes(session: Session, course_id: int, user: User) -> dict:
    """Course owner sees every quiz; enrolled students see published ones only."""
    course = get_course(session, course_id)
    is_teacher = course.teacher_id == user.id
    if not is_teacher and not is_actively_enrolled(session, user.id, course.id):
        raise Forbidden("Forbidden")

    stmt = select(Quiz).where(Quiz.course_id == course.id)
    if not is_teacher:
        stmt = stmt.where(Quiz.published == True)  # noqa: E712
    quizzes = session.exec(stmt.order_by(Quiz.created_at.desc(), Quiz.id.desc())).all()

    course_data = {
        "id": course.id,
        "title": course.title,
        "description": course.description,
        "teacherId": course.teacher_id,
        "createdAt": course.created_at,
    }
    if is_teacher:
        course_data["joinCode"] = course.join_code
    return {"course": course_data, "quizzes": [quiz_dict(q, for_teacher=is_teacher) for q in quizzes]}


def list_available_quizzes(session: Session, user_id: int, now: datetime) -> List[dict]:
    """Published quizzes open at ``now`` in courses the user is actively enrolled in."""
    rows = session.exec(
        select(Quiz, Course)
        .join(Course, Course.id == Quiz.course_id)
        .join(Enrollment, Enrollment.course_id == Course.id)
        .where(
            (Enrollment.user_id == user_id)
            & (Enrollment.status == ENROLLMENT_ACTIVE)
            & (Quiz.published == True)  # noqa: E712
            & (Quiz.open_at <= now)
            & (Quiz.close_at >= now)
        )
        .order_by(Quiz.open_at, Quiz.id)
    ).all()
    return [
        {**quiz_dict(quiz, for_teacher=False), "course": {"id": course.id, "title": course.title}}
        for quiz, course in rows
    ]


def get_quiz_details(session: Session, quiz_id: int, user: User, now: datetime) -> dict:
    """Quiz with questions; students only see published, open quizzes and no answer key."""
    quiz = get_quiz(session, quiz_id)
    course = get_course(session, quiz.course_id)
    is_teacher = user.role == TEACHER and course.teacher_id == user.id

    if not is_teacher:
        if not is_actively_enrolled(session, user.id, course.id):
            raise Forbidden("Forbidden")
        if not quiz.published or now < quiz.open_at or now > quiz.close_at:
            raise Forbidden("Quiz not available")

    questions = get_ordered_questions(session, quiz.id)
    return {
        "quiz": {**quiz_dict(quiz, for_teacher=is_teacher), "course": {"id": course.id, "title": course.title}},
        "questions": [q.full() if is_teacher else q.public() for q in questions],
    }
