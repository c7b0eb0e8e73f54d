from __future__ import annotations
import os
from pydantic import BaseModel

class Settings(BaseModel):
    environment: str = os.getenv("ENVIRONMENT", "dev")
    app_name: str = os.getenv("APP_NAME", "cards-api")
    app_display_name: str = os.getenv("APP_DISPLAY_NAME", "Cards")
    app_version: str = os.getenv("APP_VERSION", "0.1.0")
    git_sha: str = os.getenv("GIT_SHA", "dev")
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    cors_origins: list[str] = os.getenv("CORS_ORIGINS", "*").split(",")
    database_url: str = os.getenv("DATABASE_URL", "postgresql+asyncpg://postgres:postgres@db:5432/cards_dev")
    redis_url: str = os.getenv("REDIS_URL", "redis://redis:6379/0")

    # Bearer tokens are minted by the auth service; we only verify them
    jwt_secret: str = os.getenv("JWT_SECRET", "dev-secret-change-me")
    jwt_alg: str = os.getenv("JWT_ALG", "HS256")

    # Notifications
    notifications_mode: str = os.getenv("NOTIFICATIONS_MODE", "inline")  # inline|queue|disabled
    push_gateway_url: str = os.getenv("PUSH_GATEWAY_URL", "")
    push_gateway_timeout_seconds: float = float(os.getenv("PUSH_GATEWAY_TIMEOUT_SECONDS", "5"))

    # Deadline extensions
    min_extension_hours: int = int(os.getenv("MIN_EXTENSION_HOURS", "24"))

settings = Settings()
