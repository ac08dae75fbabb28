"""Read-only lookups the attempt engine consumes: quiz policy, enrollment, question bank."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from sqlmodel import Session, select

from course_quiz.errors import NotFound
from course_quiz.models import ENROLLMENT_ACTIVE, Choice, Course, Enrollment, Question, Quiz


@dataclass(slots=True)
class QuestionView:
    """A question together with its ordered choices."""

    id: int
    prompt: str
    points: int
    order_index: int
    choices: list[Choice] = field(default_factory=list)

    def public(self) -> dict:
        """Student-facing projection: choice text only, never the correct flag."""
        return {
            "id": self.id,
            "prompt": self.prompt,
            "choices": [{"id": c.id, "text": c.text} for c in self.choices],
        }

    def full(self) -> dict:
        return {
            "id": self.id,
            "prompt": self.prompt,
            "points": self.points,
            "orderIndex": self.order_index,
            "choices": [
                {"id": c.id, "text": c.text, "isCorrect": c.is_correct} for c in self.choices
            ],
        }


def get_quiz(session: Session, quiz_id: int) -> Quiz:
    """Get quiz by ID or raise NotFound."""
    quiz = session.get(Quiz, quiz_id)
    if not quiz:
        raise NotFound("Quiz not found")
    return quiz


def get_course(session: Session, course_id: int) -> Course:
    course = session.get(Course, course_id)
    if not course:
        raise NotFound("Course not found")
    return course


def find_enrollment(session: Session, user_id: int, course_id: int) -> Optional[Enrollment]:
    return session.exec(
        select(Enrollment).where(
            Enrollment.user_id == user_id,
            Enrollment.course_id == course_id,
        )
    ).first()


def is_actively_enrolled(session: Session, user_id: int, course_id: int) -> bool:
    enrollment = find_enrollment(session, user_id, course_id)
    return enrollment is not None and enrollment.status == ENROLLMENT_ACTIVE


def is_course_owner(session: Session, user_id: int, course_id: int) -> bool:
    course = session.get(Course, course_id)
    return course is not None and course.teacher_id == user_id


def get_questions_by_id(session: Session, question_ids: list[int]) -> dict[int, QuestionView]:
    """Load questions (with choices) keyed by id."""
    if not question_ids:
        return {}
    questions = session.exec(select(Question).where(Question.id.in_(question_ids))).all()
    return _with_choices(session, questions)


def get_ordered_questions(session: Session, quiz_id: int) -> list[QuestionView]:
    """Questions of a quiz in presentation order (``order_index``, then id)."""
    questions = session.exec(
        select(Question)
        .where(Question.quiz_id == quiz_id)
        .order_by(Question.order_index, Question.id)
    ).all()
    views = _with_choices(session, questions)
    return [views[q.id] for q in questions]


def _with_choices(session: Session, questions) -> dict[int, QuestionView]:
    ids = [q.id for q in questions]
    choices_by_question: dict[int, list[Choice]] = {qid: [] for qid in ids}
    if ids:
        choices = session.exec(
            select(Choice)
            .where(Choice.question_id.in_(ids))
            .order_by(Choice.question_id, Choice.position, Choice.id)
        ).all()
        for choice in choices:
            choices_by_question[choice.question_id].append(choice)

    return {
        q.id: QuestionView(
            id=q.id,
            prompt=q.prompt,
            points=q.points,
            order_index=q.order_index,
            choices=choices_by_question[q.id],
        )
        for q in questions
    }
