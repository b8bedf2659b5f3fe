from functools import lru_cache
import json
import re
from pathlib import Path

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


BACKEND_ENV_FILE = Path(__file__).resolve().parents[2] / ".env"
TIME_POINT = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")


def _split_list(value: str) -> list[str]:
    stripped = value.strip()
    if stripped.startswith("["):
        try:
            parsed = json.loads(stripped)
            if isinstance(parsed, list):
                return [str(item).strip() for item in parsed if str(item).strip()]
        except json.JSONDecodeError:
            pass
    return [item.strip() for item in value.split(",") if item.strip()]


class Settings(BaseSettings):
    # Resolve to backend/.env so `uvicorn --app-dir backend` works from any cwd.
    model_config = SettingsConfigDict(env_file=str(BACKEND_ENV_FILE), env_file_encoding="utf-8")

    project_name: str = "Schoolboard API"
    api_prefix: str = "/api"

    database_url: str = "sqlite+pysqlite:///./schoolboard.db"

    jwt_secret_key: str = "change-me"
    jwt_algorithm: str = "HS256"
    access_token_expire_minutes: int = 60 * 12

    synthetic_email_domain: str = "school.local"
    bootstrap_admin_username: str | None = None
    bootstrap_admin_password: str | None = None

    school_timezone: str = "Asia/Jerusalem"
    bell_schedule: list[str] = [
        "08:00",
        "08:45",
        "09:30",
        "10:15",
        "11:00",
        "11:45",
        "12:30",
        "13:15",
        "14:00",
    ]
    visible_days: list[int] = [0, 1, 2, 3, 4, 5]
    store_batch_limit: int = 10
    spotlight_rotate_seconds: int = 10

    # Simulated clock for demos; day uses Sunday = 0.
    clock_override_day: int | None = None
    clock_override_time: str | None = None

    max_request_size_bytes: int = 2_500_000
    security_enable_hsts: bool = False
    security_hsts_max_age_seconds: int = 31536000

    cors_origins: list[str] = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
        "http://localhost:5173",
        "http://127.0.0.1:5173",
    ]

    @field_validator("cors_origins", "bell_schedule", mode="before")
    @classmethod
    def split_string_lists(cls, value: str | list[str]) -> list[str]:
        if isinstance(value, str):
            return _split_list(value)
        return value

    @field_validator("visible_days", mode="before")
    @classmethod
    def split_visible_days(cls, value: str | list[int]) -> list[int]:
        if isinstance(value, str):
            return [int(item) for item in _split_list(value)]
        return value

    @field_validator("bell_schedule")
    @classmethod
    def validate_bell_schedule(cls, value: list[str]) -> list[str]:
        if len(value) < 2:
            raise ValueError("bell_schedule needs at least two time points")
        if not all(TIME_POINT.match(point) for point in value):
            raise ValueError("bell_schedule time points must be HH:MM")
        if sorted(value) != value or len(set(value)) != len(value):
            raise ValueError("bell_schedule time points must be strictly increasing")
        return value

    @field_validator("clock_override_day")
    @classmethod
    def validate_override_day(cls, value: int | None) -> int | None:
        if value is not None and not 0 <= value <= 6:
            raise ValueError("clock_override_day must be between 0 (Sunday) and 6")
        return value

    @field_validator("clock_override_time")
    @classmethod
    def validate_override_time(cls, value: str | None) -> str | None:
        if value is None or not value.strip():
            return None
        value = value.strip()
        if not TIME_POINT.match(value):
            raise ValueError("clock_override_time must be HH:MM")
        return value


@lru_cache
def get_settings() -> Settings:
    return Settings()
