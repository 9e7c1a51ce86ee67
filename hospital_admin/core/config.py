import os

from dotenv import load_dotenv


load_dotenv()


def _get_bool(value: str | None, default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _get_list(value: str | None, default: list[str]) -> list[str]:
    if value is None:
        return default
    return [item.strip() for item in value.split(",") if item.strip()]

APP_ENV = os.getenv("APP_ENV", "development")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()


HOSPITAL_API_BASE_URL = os.getenv("HOSPITAL_API_BASE_URL", "http://localhost:8080/api")
HOSPITAL_API_TIMEOUT_SECONDS = float(os.getenv("HOSPITAL_API_TIMEOUT_SECONDS", "30"))
HOSPITAL_API_RETRIES = int(os.getenv("HOSPITAL_API_RETRIES", "2"))
HOSPITAL_API_VERIFY_TLS = _get_bool(os.getenv("HOSPITAL_API_VERIFY_TLS"), default=True)

CORS_ALLOWED_ORIGINS = _get_list(os.getenv("CORS_ALLOWED_ORIGINS"), ["http://localhost:8081"])

JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "change-me")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
JWT_EXPIRES_MINUTES = int(os.getenv("JWT_EXPIRES_MINUTES", "60"))

# Role given to sessions whose backend role string is not recognised.
UNKNOWN_ROLE_FALLBACK = os.getenv("UNKNOWN_ROLE_FALLBACK", "HELPDESK").strip().upper()

def validate_runtime_config() -> None:
    if APP_ENV.lower() == "production" and JWT_SECRET_KEY == "change-me":
        raise RuntimeError("JWT_SECRET_KEY must be set in production.")
    if UNKNOWN_ROLE_FALLBACK not in {"ADMIN", "DOCTOR", "HELPDESK", "PATIENT"}:
        raise RuntimeError(f"UNKNOWN_ROLE_FALLBACK has an invalid value: {UNKNOWN_ROLE_FALLBACK}")
