def test_app_importable():
    """Import the FastAPI app module to ensure it can be imported without errors."""
    import importlib

    mod = importlib.import_module("course_quiz.main")
    assert hasattr(mod, "app")


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}
