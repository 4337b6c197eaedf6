import os

from dotenv import load_dotenv


load_dotenv()


def _get_bool(value: str | None, default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _get_list(value: str | None) -> list[str]:
    if not value:
        return []
    return [item.strip() for item in value.split(",") if item.strip()]


APP_ENV = os.getenv("APP_ENV", "development")
APP_VERSION = "1.0.0"

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./beautyshop.db")
DATABASE_ECHO = _get_bool(os.getenv("DATABASE_ECHO"), default=False)

CORS_ALLOWED_ORIGINS = _get_list(os.getenv("CORS_ALLOWED_ORIGINS")) or ["http://localhost:5173"]

JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "change-me")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
JWT_EXPIRES_MINUTES = int(os.getenv("JWT_EXPIRES_MINUTES", str(7 * 24 * 60)))

# Empty means every status keeps its slot occupied.
SLOT_OCCUPYING_STATUSES = [status.upper() for status in _get_list(os.getenv("SLOT_OCCUPYING_STATUSES"))]

STATS_MONTHS = int(os.getenv("STATS_MONTHS", "6"))


def get_occupying_statuses() -> list[str] | None:
    return list(SLOT_OCCUPYING_STATUSES) or None


def validate_runtime_config() -> None:
    if APP_ENV.lower() == "production" and JWT_SECRET_KEY == "change-me":
        raise RuntimeError("JWT_SECRET_KEY must be set in production.")
