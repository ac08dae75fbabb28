"""Quiz authoring and discovery endpoints."""

from datetime import timedelta

import pytest

from conftest import QUIZ_CLOSE, QUIZ_OPEN, auth_headers, make_quiz
from course_quiz.errors import ValidationError
from course_quiz.services import quiz_service


def quiz_body(**overrides):
    body = {
        "title": "Midterm",
        "openAt": QUIZ_OPEN.isoformat(),
        "closeAt": QUIZ_CLOSE.isoformat(),
        "durationMinutes": 20,
        "attemptsAllowed": 2,
    }
    body.update(overrides)
    return body


def question_body(**overrides):
    body = {
        "prompt": "Pick the prime",
        "points": 3,
        "orderIndex": 0,
        "choices": [
            {"text": "4", "isCorrect": False},
            {"text": "7", "isCorrect": True},
        ],
    }
    body.update(overrides)
    return body


class TestAuthoring:
    def test_create_quiz_unpublished(self, client, teacher, course):
        response = client.post(f"/quizzes/{course.id}/quizzes", json=quiz_body(), headers=auth_headers(teacher))

        assert response.status_code == 201
        quiz = response.json()["quiz"]
        assert quiz["published"] is False
        assert quiz["courseId"] == course.id
        assert quiz["durationMinutes"] == 20
        assert quiz["attemptsAllowed"] == 2
        assert quiz["createdAt"].startswith("2026-01-05T09:05:00")

    def test_create_quiz_validation(self, client, teacher, other_teacher, course):
        headers = auth_headers(teacher)
        inverted = quiz_body(openAt=QUIZ_CLOSE.isoformat(), closeAt=QUIZ_OPEN.isoformat())
        assert client.post(f"/quizzes/{course.id}/quizzes", json=inverted, headers=headers).status_code == 400
        assert client.post(
            f"/quizzes/{course.id}/quizzes", json=quiz_body(durationMinutes=0), headers=headers
        ).status_code == 400
        assert client.post(
            f"/quizzes/{course.id}/quizzes", json=quiz_body(attemptsAllowed=0), headers=headers
        ).status_code == 400
        assert client.post(
            f"/quizzes/{course.id}/quizzes", json=quiz_body(), headers=auth_headers(other_teacher)
        ).status_code == 403

    def test_timezone_aware_window_is_stored_as_utc(self, client, teacher, course):
        body = quiz_body(openAt="2026-01-05T10:00:00+01:00", closeAt="2026-01-05T11:00:00+01:00")
        quiz = client.post(f"/quizzes/{course.id}/quizzes", json=body, headers=auth_headers(teacher)).json()["quiz"]
        assert quiz["openAt"].startswith("2026-01-05T09:00:00")

    def test_add_question_and_publish(self, client, teacher, course):
        headers = auth_headers(teacher)
        quiz_id = client.post(f"/quizzes/{course.id}/quizzes", json=quiz_body(), headers=headers).json()["quiz"]["id"]

        response = client.post(f"/quizzes/{quiz_id}/questions", json=question_body(), headers=headers)
        assert response.status_code == 201
        question = response.json()["question"]
        assert question["points"] == 3
        assert [c["isCorrect"] for c in question["choices"]] == [False, True]

        response = client.post(f"/quizzes/{quiz_id}/publish", headers=headers)
        assert response.status_code == 200
        assert response.json()["quiz"]["published"] is True

    def test_question_needs_two_choices(self, client, teacher, quiz):
        body = question_body(choices=[{"text": "only", "isCorrect": True}])
        response = client.post(f"/quizzes/{quiz.id}/questions", json=body, headers=auth_headers(teacher))
        assert response.status_code == 400

    def test_question_without_correct_choice_is_accepted(self, client, teacher, quiz):
        body = question_body(choices=[{"text": "a"}, {"text": "b"}])
        response = client.post(f"/quizzes/{quiz.id}/questions", json=body, headers=auth_headers(teacher))
        assert response.status_code == 201

    def test_update_quiz(self, client, teacher, quiz):
        headers = auth_headers(teacher)
        response = client.put(f"/quizzes/{quiz.id}", json={"title": "Week 1 Retake", "attemptsAllowed": 3}, headers=headers)
        assert response.status_code == 200
        assert response.json()["quiz"]["title"] == "Week 1 Retake"
        assert response.json()["quiz"]["attemptsAllowed"] == 3

        late_open = (QUIZ_CLOSE + timedelta(hours=1)).isoformat()
        assert client.put(f"/quizzes/{quiz.id}", json={"openAt": late_open}, headers=headers).status_code == 400

    @pytest.mark.parametrize("field", ["duration_minutes", "attempts_allowed"])
    def test_update_service_rejects_zero(self, session, clock, teacher, quiz, field):
        with pytest.raises(ValidationError):
            quiz_service.update_quiz(session, quiz.id, teacher.id, clock.now(), **{field: 0})

    def test_delete_quiz(self, client, teacher, quiz, questions):
        headers = auth_headers(teacher)
        assert client.delete(f"/quizzes/{quiz.id}", headers=headers).status_code == 200
        assert client.get(f"/quizzes/{quiz.id}", headers=headers).status_code == 404

    def test_quiz_with_attempts_cannot_be_deleted(self, client, teacher, enrolled_student, quiz, questions):
        client.post(f"/quizzes/{quiz.id}/attempts/start", headers=auth_headers(enrolled_student))
        response = client.delete(f"/quizzes/{quiz.id}", headers=auth_headers(teacher))
        assert response.status_code == 400
        assert client.get(f"/quizzes/{quiz.id}", headers=auth_headers(teacher)).status_code == 200


class TestDiscovery:
    def test_course_quiz_listing(self, client, teacher, enrolled_student, other_student, course, quiz):
        make_quiz(course, title="Draft quiz", published=False)

        teacher_view = client.get(f"/quizzes/{course.id}/quizzes", headers=auth_headers(teacher)).json()
        assert {q["title"] for q in teacher_view["quizzes"]} == {"Week 1 Check", "Draft quiz"}
        assert teacher_view["course"]["joinCode"] == "JOIN42"

        student_view = client.get(f"/quizzes/{course.id}/quizzes", headers=auth_headers(enrolled_student)).json()
        assert [q["title"] for q in student_view["quizzes"]] == ["Week 1 Check"]
        assert "joinCode" not in student_view["course"]

        response = client.get(f"/quizzes/{course.id}/quizzes", headers=auth_headers(other_student))
        assert response.status_code == 403

    def test_available_quizzes_follow_window(self, client, clock, enrolled_student, course, quiz):
        make_quiz(course, title="Later", open_at=QUIZ_CLOSE, close_at=QUIZ_CLOSE + timedelta(hours=1))
        headers = auth_headers(enrolled_student)

        available = client.get("/quizzes/available", headers=headers).json()["quizzes"]
        assert [q["title"] for q in available] == ["Week 1 Check"]
        assert available[0]["course"]["title"] == course.title

        clock.set(QUIZ_CLOSE + timedelta(minutes=1))
        available = client.get("/quizzes/available", headers=headers).json()["quizzes"]
        assert [q["title"] for q in available] == ["Later"]

    def test_student_details_hide_answer_key(self, client, clock, enrolled_student, quiz, questions):
        body = client.get(f"/quizzes/{quiz.id}", headers=auth_headers(enrolled_student)).json()
        assert len(body["questions"]) == 2
        for question in body["questions"]:
            assert all("isCorrect" not in c for c in question["choices"])

        clock.set(QUIZ_OPEN - timedelta(minutes=1))
        assert client.get(f"/quizzes/{quiz.id}", headers=auth_headers(enrolled_student)).status_code == 403

    def test_teacher_details_include_answer_key(self, client, teacher, quiz, questions):
        body = client.get(f"/quizzes/{quiz.id}", headers=auth_headers(teacher)).json()
        first = body["questions"][0]
        assert first["id"] == questions[0]["question"]
        assert [c["isCorrect"] for c in first["choices"]] == [False, True, False]
