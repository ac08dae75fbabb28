"""Attempt lifecycle: start/resume, autosave, submit with auto-grading, expiry and grade listings.

Expiry is evaluated lazily against ``end_at``; nothing runs in the
background. Every function takes the ``now`` captured by its caller so
that all comparisons inside one operation agree.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import List, Optional

from sqlalchemy import func, update
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from course_quiz.errors import AttemptsExhausted, Forbidden, InvalidState, NotFound
from course_quiz.models import (
    EXPIRED,
    GRADED,
    IN_PROGRESS,
    USED_STATUSES,
    Attempt,
    AttemptResponse,
    Course,
    Quiz,
    User,
)
from course_quiz.services.grading import grade
from course_quiz.services.policy import (
    QuestionView,
    get_ordered_questions,
    get_questions_by_id,
    get_quiz,
    is_actively_enrolled,
    is_course_owner,
)

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class StartedAttempt:
    """Outcome of ``start_attempt``; ``created`` is False when an attempt was resumed."""

    attempt: Attempt
    questions: list[QuestionView]
    created: bool


def _find_active_attempt(session: Session, quiz_id: int, user_id: int, now: datetime) -> Optional[Attempt]:
    stmt = select(Attempt).where(
        (Attempt.quiz_id == quiz_id)
        & (Attempt.user_id == user_id)
        & (Attempt.status == IN_PROGRESS)
        & (Attempt.end_at > now)
    )
    return session.exec(stmt).first()


def count_used_attempts(session: Session, quiz_id: int, user_id: int) -> int:
    """Attempts counted against ``attempts_allowed`` (expired ones are not)."""
    stmt = select(func.count()).select_from(Attempt).where(
        (Attempt.quiz_id == quiz_id)
        & (Attempt.user_id == user_id)
        & (Attempt.status.in_(USED_STATUSES))
    )
    return session.exec(stmt).one()


def sweep_expired_attempts(
    session: Session,
    now: datetime,
    quiz_id: Optional[int] = None,
    user_id: Optional[int] = None,
) -> int:
    """Mark ``in_progress`` attempts whose ``end_at`` has passed as expired.

    Does not commit; returns the number of attempts transitioned.
    """
    stmt = update(Attempt).where(
        (Attempt.status == IN_PROGRESS) & (Attempt.end_at <= now)
    )
    if quiz_id is not None:
        stmt = stmt.where(Attempt.quiz_id == quiz_id)
    if user_id is not None:
        stmt = stmt.where(Attempt.user_id == user_id)
    result = session.exec(stmt.values(status=EXPIRED))
    if result.rowcount:
        logger.info(
            "Expired %d overdue attempt(s) (quiz=%s user=%s)", result.rowcount, quiz_id, user_id
        )
    return result.rowcount


def compute_end_at(quiz: Quiz, now: datetime) -> datetime:
    """Deadline for an attempt started at ``now``: never later than the quiz close time."""
    return min(now + timedelta(minutes=quiz.duration_minutes), quiz.close_at)


def _check_quiz_open(quiz: Quiz, now: datetime) -> None:
    if not quiz.published:
        raise InvalidState("Quiz not published")
    if now < quiz.open_at:
        raise InvalidState("Quiz not yet open")
    if now > quiz.close_at:
        raise InvalidState("Quiz has closed")


def start_attempt(session: Session, user_id: int, quiz_id: int, now: datetime) -> StartedAttempt:
    """Start a new attempt or resume the caller's running one."""
    quiz = get_quiz(session, quiz_id)
    _check_quiz_open(quiz, now)

    if not is_actively_enrolled(session, user_id, quiz.course_id):
        logger.warning(
            "Enrollment check failed: user %s, course %s, quiz %s", user_id, quiz.course_id, quiz_id
        )
        raise Forbidden("Not enrolled in course")

    # Overdue attempts must not block a new one nor count as used.
    sweep_expired_attempts(session, now, quiz_id=quiz.id, user_id=user_id)
    session.commit()

    active = _find_active_attempt(session, quiz.id, user_id, now)
    if active:
        logger.info("Resuming attempt %s for user %s on quiz %s", active.id, user_id, quiz.id)
        return StartedAttempt(active, attempt_questions(session, active.id), created=False)

    taken = count_used_attempts(session, quiz.id, user_id)
    allowed = quiz.attempts_allowed or 1
    if taken >= allowed:
        raise AttemptsExhausted(taken, allowed)

    questions = get_ordered_questions(session, quiz.id)
    attempt = Attempt(
        quiz_id=quiz.id,
        user_id=user_id,
        started_at=now,
        end_at=compute_end_at(quiz, now),
        status=IN_PROGRESS,
        score=0,
        created_at=now,
    )
    try:
        session.add(attempt)
        session.flush()
        for position, question in enumerate(questions):
            session.add(
                AttemptResponse(
                    attempt_id=attempt.id,
                    question_id=question.id,
                    position=position,
                    selected_choice_ids=[],
                    points_awarded=0,
                )
            )
        session.commit()
    except IntegrityError:
        # A concurrent start won the unique in_progress slot; resume that one.
        session.rollback()
        active = _find_active_attempt(session, quiz.id, user_id, now)
        if active is None:
            raise
        logger.warning("Concurrent start for user %s on quiz %s resolved by resume", user_id, quiz.id)
        return StartedAttempt(active, attempt_questions(session, active.id), created=False)

    session.refresh(attempt)
    logger.info(
        "Created attempt %s for user %s on quiz %s (ends %s)", attempt.id, user_id, quiz.id, attempt.end_at
    )
    return StartedAttempt(attempt, questions, created=True)


def get_owned_attempt(session: Session, attempt_id: int, caller_id: int) -> Attempt:
    """Fetch an attempt, distinguishing a missing attempt from someone else's."""
    attempt = session.get(Attempt, attempt_id)
    if not attempt:
        raise NotFound("Attempt not found")
    if attempt.user_id != caller_id:
        raise Forbidden("Forbidden")
    return attempt


def _check_not_final(attempt: Attempt) -> None:
    if attempt.status == EXPIRED:
        raise InvalidState("Attempt expired")
    if attempt.status != IN_PROGRESS:
        raise InvalidState("Attempt already submitted")


def list_responses(session: Session, attempt_id: int) -> List[AttemptResponse]:
    return session.exec(
        select(AttemptResponse)
        .where(AttemptResponse.attempt_id == attempt_id)
        .order_by(AttemptResponse.position)
    ).all()


def attempt_questions(session: Session, attempt_id: int) -> list[QuestionView]:
    """The questions snapshotted into an attempt at start, in their original order.

    Questions added to the quiz afterwards are not part of the attempt.
    """
    responses = list_responses(session, attempt_id)
    views = get_questions_by_id(session, [r.question_id for r in responses])
    return [views[r.question_id] for r in responses if r.question_id in views]


def autosave_answer(
    session: Session,
    attempt_id: int,
    caller_id: int,
    question_id: int,
    selected_choice_ids: List[int],
    now: datetime,
) -> AttemptResponse:
    """Overwrite the selection for one question (last write wins)."""
    attempt = get_owned_attempt(session, attempt_id, caller_id)
    _check_not_final(attempt)
    if now > attempt.end_at:
        raise InvalidState("Attempt expired")

    response = session.exec(
        select(AttemptResponse).where(
            (AttemptResponse.attempt_id == attempt.id)
            & (AttemptResponse.question_id == question_id)
        )
    ).first()
    if not response:
        raise NotFound("Response not found")

    response.selected_choice_ids = list(selected_choice_ids)
    session.add(response)
    session.commit()
    session.refresh(response)
    return response


def submit_attempt(session: Session, attempt_id: int, caller_id: int, now: datetime) -> Attempt:
    """Grade every response and mark the attempt graded in one transaction."""
    attempt = get_owned_attempt(session, attempt_id, caller_id)
    _check_not_final(attempt)

    if now > attempt.end_at:
        attempt.status = EXPIRED
        session.add(attempt)
        session.commit()
        logger.warning("Late submit on attempt %s; marked expired", attempt.id)
        raise InvalidState("Attempt expired")

    responses = list_responses(session, attempt.id)
    questions = get_questions_by_id(session, [r.question_id for r in responses])

    total = 0
    for response in responses:
        question = questions.get(response.question_id)
        points = grade(question, response.selected_choice_ids) if question else 0
        response.points_awarded = points
        session.add(response)
        total += points

    # Conditional flip: only one submit can move the attempt out of in_progress.
    result = session.exec(
        update(Attempt)
        .where((Attempt.id == attempt.id) & (Attempt.status == IN_PROGRESS))
        .values(status=GRADED, score=total, submitted_at=now)
    )
    if result.rowcount != 1:
        session.rollback()
        raise InvalidState("Attempt already submitted")
    session.commit()
    session.refresh(attempt)

    logger.info("Graded attempt %s: score %s", attempt.id, attempt.score)
    return attempt


def effective_status(attempt: Attempt, now: datetime) -> str:
    """Status as seen at ``now``: an overdue in_progress attempt reads as expired."""
    if attempt.status == IN_PROGRESS and now > attempt.end_at:
        return EXPIRED
    return attempt.status


def get_result(session: Session, attempt_id: int, caller_id: int, now: datetime) -> dict:
    attempt = get_owned_attempt(session, attempt_id, caller_id)
    return {
        "status": effective_status(attempt, now),
        "score": attempt.score,
        "submittedAt": attempt.submitted_at,
    }


def list_quiz_grades(session: Session, quiz_id: int, teacher_id: int) -> dict:
    """Graded attempts of a quiz for its course owner, newest submission first."""
    quiz = get_quiz(session, quiz_id)
    if not is_course_owner(session, teacher_id, quiz.course_id):
        raise Forbidden("Forbidden")

    rows = session.exec(
        select(Attempt, User)
        .join(User, User.id == Attempt.user_id)
        .where((Attempt.quiz_id == quiz.id) & (Attempt.status == GRADED))
        .order_by(Attempt.submitted_at.desc(), Attempt.id.desc())
    ).all()

    results = [
        {
            "attemptId": attempt.id,
            "student": {"id": user.id, "name": user.name, "email": user.email},
            "score": attempt.score,
            "submittedAt": attempt.submitted_at,
            "status": attempt.status,
        }
        for attempt, user in rows
    ]
    return {"quiz": {"id": quiz.id, "title": quiz.title}, "results": results}


def list_my_grades(session: Session, user_id: int) -> dict:
    """The caller's graded attempts across all quizzes, newest first."""
    rows = session.exec(
        select(Attempt, Quiz, Course)
        .join(Quiz, Quiz.id == Attempt.quiz_id)
        .join(Course, Course.id == Quiz.course_id)
        .where((Attempt.user_id == user_id) & (Attempt.status == GRADED))
        .order_by(Attempt.submitted_at.desc(), Attempt.id.desc())
    ).all()

    results = [
        {
            "attemptId": attempt.id,
            "quiz": {"id": quiz.id, "title": quiz.title},
            "course": {"id": course.id, "title": course.title},
            "score": attempt.score,
            "submittedAt": attempt.submitted_at,
            "status": attempt.status,
        }
        for attempt, quiz, course in rows
    ]
    return {"results": results}


def quiz_has_attempts(session: Session, quiz_id: int) -> bool:
    return session.exec(select(Attempt.id).where(Attempt.quiz_id == quiz_id)).first() is not None


def sweep_quiz(session: Session, quiz_id: int, teacher_id: int, now: datetime) -> int:
    """Explicit expiry sweep for a quiz, restricted to its course owner."""
    quiz = get_quiz(session, quiz_id)
    if not is_course_owner(session, teacher_id, quiz.course_id):
        raise Forbidden("Forbidden")
    expired = sweep_expired_attempts(session, now, quiz_id=quiz.id)
    session.commit()
    return expired

