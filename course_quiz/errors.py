"""Domain errors raised by the services and rendered by ``main``'s handlers."""

from typing import Any


class QuizError(Exception):
    """Base class: carries the HTTP status category and a user-visible message."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def payload(self) -> dict[str, Any]:
        return {"detail": self.message}


class Unauthorized(QuizError):
    status_code = 401


class NotFound(QuizError):
    status_code = 404


class Forbidden(QuizError):
    status_code = 403


class InvalidState(QuizError):
    status_code = 400


class ValidationError(QuizError):
    status_code = 400


class AttemptsExhausted(InvalidState):
    def __init__(self, taken: int, allowed: int):
        super().__init__(f"Attempts exhausted ({taken}/{allowed} used)")
        self.taken = taken
        self.allowed = allowed

    def payload(self) -> dict[str, Any]:
        return {"detail": self.message, "taken": self.taken, "allowed": self.allowed}
