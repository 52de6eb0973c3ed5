import os

from dotenv import load_dotenv

load_dotenv()


def _get_bool(value: str | None, default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _get_int(value: str | None, default: int) -> int:
    if value is None or not value.strip():
        return default
    return int(value)


def _get_int_list(value: str | None, default: tuple[int, ...]) -> tuple[int, ...]:
    if value is None or not value.strip():
        return default
    return tuple(int(item) for item in value.split(",") if item.strip())

APP_ENV = os.getenv("APP_ENV", "development")
DEBUG = _get_bool(os.getenv("DEBUG"), default=False)

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./clinic_scheduling.db")

DEFAULT_SLOT_DURATION_MINUTES = _get_int(os.getenv("DEFAULT_SLOT_DURATION_MINUTES"), 30)
AVAILABLE_SLOT_DURATIONS = _get_int_list(
    os.getenv("AVAILABLE_SLOT_DURATIONS"),
    (15, 20, 30, 45, 60, 90, 120),
)

CACHE_TTL_SECONDS = _get_int(os.getenv("CACHE_TTL_SECONDS"), 300)

# "open" keeps booking usable while clinic settings are unavailable.
UNKNOWN_CLINIC_STATE = os.getenv("UNKNOWN_CLINIC_STATE", "open").strip().lower()

CORS_ALLOWED_ORIGINS = [
    origin.strip()
    for origin in os.getenv("CORS_ALLOWED_ORIGINS", "http://localhost:4200").split(",")
    if origin.strip()
]

def validate_runtime_config() -> None:
    if UNKNOWN_CLINIC_STATE not in {"open", "closed"}:
        raise RuntimeError("UNKNOWN_CLINIC_STATE must be 'open' or 'closed'.")
    if DEFAULT_SLOT_DURATION_MINUTES <= 0:
        raise RuntimeError("DEFAULT_SLOT_DURATION_MINUTES must be positive.")
    if DEFAULT_SLOT_DURATION_MINUTES not in AVAILABLE_SLOT_DURATIONS:
        raise RuntimeError("DEFAULT_SLOT_DURATION_MINUTES must be one of AVAILABLE_SLOT_DURATIONS.")
    if CACHE_TTL_SECONDS < 0:
        raise RuntimeError("CACHE_TTL_SECONDS must not be negative.")
    if APP_ENV.lower() == "production" and DATABASE_URL.startswith("sqlite"):
        raise RuntimeError("DATABASE_URL must point to Postgres in production.")
