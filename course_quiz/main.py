"""FastAPI entrypoint for the course & quiz service."""

import logging
import time

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from course_quiz.config import settings
from course_quiz.database import create_db_and_tables
from course_quiz.errors import QuizError
from course_quiz.logging_config import configure_logging
from course_quiz.routers import attempts as attempts_router_module
from course_quiz.routers import auth as auth_router_module
from course_quiz.routers import courses as courses_router_module
from course_quiz.routers import quizzes as quizzes_router_module

logger = logging.getLogger("course_quiz.http")

app = FastAPI(title="Course Quiz Service")


@app.exception_handler(QuizError)
async def quiz_error_handler(request: Request, exc: QuizError):
    """Render domain errors with their status category."""
    return JSONResponse(status_code=exc.status_code, content=exc.payload())


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Malformed request bodies are bad requests."""
    errors = [
        {
            "loc": [str(part) for part in error.get("loc", [])],
            "msg": error.get("msg", "Invalid input"),
            "type": error.get("type", ""),
        }
        for error in exc.errors()
    ]
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"detail": errors})


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal server error"},
    )


@app.middleware("http")
async def log_requests(request: Request, call_next):
    started = time.perf_counter()
    response = await call_next(request)
    elapsed_ms = (time.perf_counter() - started) * 1000
    logger.info(
        "%s %s -> %s (%.1f ms)", request.method, request.url.path, response.status_code, elapsed_ms
    )
    return response


app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Routers
app.include_router(auth_router_module.router, prefix="/auth", tags=["auth"])
app.include_router(courses_router_module.router, prefix="/courses", tags=["courses"])
app.include_router(quizzes_router_module.router, prefix="/quizzes", tags=["quizzes"])
app.include_router(attempts_router_module.router, prefix="/attempts", tags=["attempts"])


@app.get("/health")
def health():
    return {"status": "ok"}


@app.on_event("startup")
def on_startup():
    """Configure logging and initialize the database schema."""
    configure_logging()
    create_db_and_tables()
    logger.info("Course quiz service started")
