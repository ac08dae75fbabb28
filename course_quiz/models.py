"""SQLModel tables for courses, quizzes, questions and attempts."""

from datetime import datetime
from typing import Optional

from sqlalchemy import JSON, Column, Index, UniqueConstraint, text
from sqlmodel import Field, SQLModel

from course_quiz.clock import system_clock

# Attempt.status values
IN_PROGRESS = "in_progress"
SUBMITTED = "submitted"
GRADED = "graded"
EXPIRED = "expired"

# Statuses counted against Quiz.attempts_allowed
USED_STATUSES = (IN_PROGRESS, SUBMITTED, GRADED)

STUDENT = "student"
TEACHER = "teacher"

ENROLLMENT_ACTIVE = "active"
ENROLLMENT_REMOVED = "removed"

MCQ_SINGLE = "mcq_single"


class User(SQLModel, table=True):
    """Account that authenticates with a bearer token (student or teacher)."""

    __table_args__ = (UniqueConstraint("email", name="uq_user_email"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str
    email: str
    password_hash: str
    role: str = Field(default=STUDENT)  # "student" | "teacher"
    created_at: datetime = Field(default_factory=system_clock.now)


class Course(SQLModel, table=True):
    __table_args__ = (UniqueConstraint("join_code", name="uq_course_join_code"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    title: str
    description: Optional[str] = None
    join_code: str
    teacher_id: int = Field(foreign_key="user.id")
    created_at: datetime = Field(default_factory=system_clock.now)


class Enrollment(SQLModel, table=True):
    __table_args__ = (
        UniqueConstraint("course_id", "user_id", name="uq_course_user"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    course_id: int = Field(foreign_key="course.id")
    user_id: int = Field(foreign_key="user.id")
    role_in_course: str = Field(default="student")  # student | TA
    status: str = Field(default=ENROLLMENT_ACTIVE)  # active | removed
    created_at: datetime = Field(default_factory=system_clock.now)


class Quiz(SQLModel, table=True):
    """Timed quiz owned by a course; invisible to students until published."""

    id: Optional[int] = Field(default=None, primary_key=True)
    course_id: int = Field(foreign_key="course.id")
    title: str
    description: Optional[str] = None
    open_at: datetime
    close_at: datetime
    duration_minutes: int
    attempts_allowed: int = Field(default=1)
    published: bool = Field(default=False)
    created_at: datetime = Field(default_factory=system_clock.now)
    updated_at: datetime = Field(default_factory=system_clock.now)


class Question(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    quiz_id: int = Field(foreign_key="quiz.id")
    kind: str = Field(default=MCQ_SINGLE)
    prompt: str
    points: int = Field(default=1)
    order_index: int = Field(default=0)
    created_at: datetime = Field(default_factory=system_clock.now)


class Choice(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    question_id: int = Field(foreign_key="question.id")
    text: str
    is_correct: bool = Field(default=False)
    position: int = Field(default=0)


class Attempt(SQLModel, table=True):
    """One student's timed run at a quiz; kept forever as the grade record."""

    # At most one in_progress attempt per (quiz, user).
    __table_args__ = (
        Index("ix_attempt_quiz_user", "quiz_id", "user_id"),
        Index(
            "uq_attempt_in_progress",
            "quiz_id",
            "user_id",
            unique=True,
            sqlite_where=text("status = 'in_progress'"),
            postgresql_where=text("status = 'in_progress'"),
        ),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    quiz_id: int = Field(foreign_key="quiz.id")
    user_id: int = Field(foreign_key="user.id")
    started_at: datetime
    end_at: datetime
    submitted_at: Optional[datetime] = None
    status: str = Field(default=IN_PROGRESS)  # in_progress | submitted | graded | expired
    score: int = Field(default=0)
    created_at: datetime = Field(default_factory=system_clock.now)


class AttemptResponse(SQLModel, table=True):
    """Per-question record of an attempt, created for every question at start."""

    __table_args__ = (
        UniqueConstraint("attempt_id", "question_id", name="uq_response_attempt_question"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    attempt_id: int = Field(foreign_key="attempt.id")
    question_id: int = Field(foreign_key="question.id")
    position: int = Field(default=0)
    selected_choice_ids: list[int] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    points_awarded: int = Field(default=0)
