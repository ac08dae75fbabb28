#!/usr/bin/env python3
"""Create tables and seed a demo teacher, student, course and published quiz."""

from datetime import timedelta

from sqlmodel import Session, select

from course_quiz.auth_utils import hash_password
from course_quiz.clock import system_clock
from course_quiz.database import create_db_and_tables, engine
from course_quiz.models import STUDENT, TEACHER, User
from course_quiz.services import course_service, quiz_service


def _get_or_create_user(session: Session, name: str, email: str, password: str, role: str) -> User:
    user = session.exec(select(User).where(User.email == email)).first()
    if user:
        return user
    user = User(name=name, email=email, password_hash=hash_password(password), role=role)
    session.add(user)
    session.commit()
    session.refresh(user)
    print(f"Created {role}: {email} / {password}")
    return user


def main() -> None:
    print("Creating database tables...")
    create_db_and_tables()
    now = system_clock.now()

    with Session(engine) as session:
        teacher = _get_or_create_user(session, "Dr. Ada Teacher", "teacher@example.com", "teacher123", TEACHER)
        student = _get_or_create_user(session, "Alice Student", "alice@example.com", "student123", STUDENT)

        if course_service.list_my_courses(session, teacher):
            print("Database already seeded, skipping...")
            return

        course = course_service.create_course(
            session, teacher.id, "Introduction to Programming", now, description="Learn the basics"
        )
        course_service.join_course(session, course.id, student.id, course.join_code, now)
        print(f"Created course {course.title} (join code {course.join_code})")

        quiz = quiz_service.create_quiz(
            session,
            course.id,
            teacher.id,
            now,
            title="Week 1 Check",
            open_at=now - timedelta(hours=1),
            close_at=now + timedelta(days=7),
            duration_minutes=15,
            attempts_allowed=2,
        )
        quiz_service.add_question(
            session,
            quiz.id,
            teacher.id,
            now,
            prompt="Which keyword defines a function in Python?",
            choices=[
                {"text": "def", "is_correct": True},
                {"text": "func", "is_correct": False},
                {"text": "lambda", "is_correct": False},
            ],
        )
        quiz_service.add_question(
            session,
            quiz.id,
            teacher.id,
            now,
            prompt="What does len([1, 2, 3]) return?",
            points=2,
            order_index=1,
            choices=[
                {"text": "2", "is_correct": False},
                {"text": "3", "is_correct": True},
            ],
        )
        quiz_service.publish_quiz(session, quiz.id, teacher.id, now)
        print(f"Created and published quiz {quiz.title}")

    print("\nDatabase seeding completed!")


if __name__ == "__main__":
    main()
