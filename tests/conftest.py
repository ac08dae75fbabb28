import os
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone

import pytest

# Cheap hashing for tests; must be set before course_quiz reads its settings.
os.environ.setdefault("COURSE_QUIZ_BCRYPT_ROUNDS", "4")

from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402
from sqlmodel import Session, SQLModel, create_engine  # noqa: E402

from course_quiz.auth_utils import create_access_token  # noqa: E402
from course_quiz.clock import get_clock  # noqa: E402
from course_quiz.database import get_session  # noqa: E402
from course_quiz.main import app  # noqa: E402
from course_quiz.models import (  # noqa: E402
    STUDENT,
    TEACHER,
    Choice,
    Course,
    Enrollment,
    Question,
    Quiz,
    User,
)

# ============================================================================
# IN-MEMORY DATABASE FOR TESTING
# ============================================================================

test_engine = create_engine(
    "sqlite:///:memory:",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,  # all connections share the same in-memory database
)

# Quiz window used by the fixtures: 09:00-10:00 UTC, 10-minute attempts.
QUIZ_OPEN = datetime(2026, 1, 5, 9, 0, 0, tzinfo=timezone.utc)
QUIZ_CLOSE = QUIZ_OPEN + timedelta(hours=1)


@dataclass
class FrozenClock:
    current: datetime = field(default_factory=lambda: QUIZ_OPEN + timedelta(minutes=5))

    def now(self) -> datetime:
        return self.current

    def set(self, value: datetime) -> None:
        self.current = value

    def advance(self, **kwargs) -> None:
        self.current = self.current + timedelta(**kwargs)


@pytest.fixture(scope="session", autouse=True)
def setup_test_db():
    """Create all tables in the test database once per session."""
    SQLModel.metadata.create_all(test_engine)
    yield
    SQLModel.metadata.drop_all(test_engine)


@pytest.fixture(autouse=True)
def cleanup_db_between_tests():
    """Clean up test data after each test."""
    yield
    with Session(test_engine) as session:
        for table in reversed(SQLModel.metadata.sorted_tables):
            session.exec(table.delete())
        session.commit()


@pytest.fixture
def session():
    """Provide a database session for tests."""
    with Session(test_engine) as session:
        yield session


@pytest.fixture
def clock():
    return FrozenClock()


# ============================================================================
# FASTAPI APP & TEST CLIENT
# ============================================================================


@pytest.fixture
def client(clock):
    def override_get_session():
        with Session(test_engine) as session:
            yield session

    app.dependency_overrides[get_session] = override_get_session
    app.dependency_overrides[get_clock] = lambda: clock
    yield TestClient(app)
    app.dependency_overrides.clear()


def auth_headers(user: User) -> dict:
    return {"Authorization": f"Bearer {create_access_token(user.id, user.role)}"}


# ============================================================================
# ENTITY FIXTURES
# ============================================================================


def make_user(name: str, email: str, role: str) -> User:
    with Session(test_engine) as session:
        user = User(name=name, email=email, password_hash="x", role=role)
        session.add(user)
        session.commit()
        session.refresh(user)
        return user


@pytest.fixture
def teacher():
    return make_user("Dr. Ada Teacher", "teacher@example.com", TEACHER)


@pytest.fixture
def other_teacher():
    return make_user("Dr. Bob Other", "bob.teacher@example.com", TEACHER)


@pytest.fixture
def student():
    return make_user("Alice Student", "alice@example.com", STUDENT)


@pytest.fixture
def other_student():
    return make_user("Carol Student", "carol@example.com", STUDENT)


@pytest.fixture
def course(teacher):
    with Session(test_engine) as session:
        course = Course(
            title="Introduction to Programming",
            description="Learn the basics",
            join_code="JOIN42",
            teacher_id=teacher.id,
        )
        session.add(course)
        session.commit()
        session.refresh(course)
        return course


def enroll(user: User, course: Course, status: str = "active") -> None:
    with Session(test_engine) as session:
        session.add(Enrollment(course_id=course.id, user_id=user.id, status=status))
        session.commit()


@pytest.fixture
def enrolled_student(student, course):
    enroll(student, course)
    return student


def make_quiz(course: Course, **overrides) -> Quiz:
    values = dict(
        course_id=course.id,
        title="Week 1 Check",
        open_at=QUIZ_OPEN,
        close_at=QUIZ_CLOSE,
        duration_minutes=10,
        attempts_allowed=1,
        published=True,
    )
    values.update(overrides)
    with Session(test_engine) as session:
        quiz = Quiz(**values)
        session.add(quiz)
        session.commit()
        session.refresh(quiz)
        return quiz


def add_question(quiz: Quiz, prompt: str, choices: list, points: int = 1, order_index: int = 0) -> dict:
    """Add a question; ``choices`` is a list of (text, is_correct). Returns ids by text."""
    with Session(test_engine) as session:
        question = Question(quiz_id=quiz.id, prompt=prompt, points=points, order_index=order_index)
        session.add(question)
        session.commit()
        session.refresh(question)
        ids = {"question": question.id}
        for position, (text, is_correct) in enumerate(choices):
            choice = Choice(question_id=question.id, text=text, is_correct=is_correct, position=position)
            session.add(choice)
            session.commit()
            session.refresh(choice)
            ids[text] = choice.id
        return ids


@pytest.fixture
def quiz(course):
    """Published quiz, open 09:00-10:00, 10 minutes, one attempt allowed."""
    return make_quiz(course)


@pytest.fixture
def questions(quiz):
    """Two questions; the second is presented first (lower order_index)."""
    q2 = add_question(quiz, "Which keyword defines a function?", [("def", True), ("func", False)], points=1, order_index=1)
    q1 = add_question(quiz, "What does len([1, 2, 3]) return?", [("2", False), ("3", True), ("4", False)], points=2, order_index=0)
    return [q1, q2]
