"""Runtime configuration read from ``COURSE_QUIZ_*`` environment variables."""

import os


def _env(name: str, default: str) -> str:
    return os.getenv(f"COURSE_QUIZ_{name}", default)


class Settings:
    # Database
    database_url: str = _env("DATABASE_URL", "sqlite:///./course_quiz.db")
    sql_echo: bool = _env("SQL_ECHO", "false").lower() == "true"

    # JWT
    secret_key: str = _env("SECRET_KEY", "development-secret-key-change-in-production")
    algorithm: str = _env("JWT_ALGORITHM", "HS256")
    access_token_expire_minutes: int = int(_env("TOKEN_EXPIRE_MINUTES", "60"))

    # Password hashing
    bcrypt_rounds: int = int(_env("BCRYPT_ROUNDS", "12"))

    # App
    cors_origins: list[str] = [
        origin.strip() for origin in _env("CORS_ORIGINS", "*").split(",") if origin.strip()
    ]
    log_level: str = _env("LOG_LEVEL", "INFO").upper()


settings = Settings()
