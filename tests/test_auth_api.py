"""Registration, login and bearer-token handling."""

from course_quiz.auth_utils import create_access_token


def register(client, email="dana@example.com", role="student", password="secret1"):
    return client.post(
        "/auth/register",
        json={"email": email, "password": password, "name": "Dana Learner", "role": role},
    )


def test_register_returns_token(client):
    response = register(client, email="Dana@Example.com")

    assert response.status_code == 201
    body = response.json()
    assert body["token"]
    assert body["user"]["email"] == "dana@example.com"
    assert body["user"]["role"] == "student"


def test_register_duplicate_email(client):
    register(client)
    response = register(client)
    assert response.status_code == 400
    assert response.json()["detail"] == "Email already registered"


def test_register_rejects_bad_input(client):
    assert register(client, email="not-an-email").status_code == 400
    assert register(client, email="dana@example.invalidtld").status_code == 400
    assert register(client, role="admin").status_code == 400
    assert register(client, password="123").status_code == 400


def test_login_and_me(client):
    register(client, role="teacher")

    response = client.post("/auth/login", json={"email": "dana@example.com", "password": "secret1"})
    assert response.status_code == 200
    token = response.json()["token"]

    me = client.get("/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert me.status_code == 200
    assert me.json()["user"]["role"] == "teacher"


def test_login_with_wrong_password(client):
    register(client)
    response = client.post("/auth/login", json={"email": "dana@example.com", "password": "wrong-pass"})
    assert response.status_code == 401


def test_missing_or_invalid_token(client, student):
    assert client.get("/auth/me").status_code == 401
    assert client.get("/auth/me", headers={"Authorization": "Bearer garbage"}).status_code == 401

    token = create_access_token(student.id + 1000, "student")
    assert client.get("/auth/me", headers={"Authorization": f"Bearer {token}"}).status_code == 401
