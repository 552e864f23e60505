import os


def _bool_env(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _int_env(name: str, default: int) -> int:
    value = os.environ.get(name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default


_DEFAULT_SECRET_KEY = "dev-secret-request-tracker"


class Config:
    SECRET_KEY = os.environ.get("SECRET_KEY", _DEFAULT_SECRET_KEY)
    LOG_JSON = _bool_env("LOG_JSON", True)
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    RECORD_MODE = os.environ.get("RECORD_MODE", "mock")
    RECORD_BASE_URL = os.environ.get("RECORD_BASE_URL")
    RECORD_TOKEN = os.environ.get("RECORD_TOKEN")
    RECORD_API_KEY = os.environ.get("RECORD_API_KEY")
    RECORD_TIMEOUT_SECONDS = _int_env("RECORD_TIMEOUT_SECONDS", 20)
    RECORD_VERIFY_SSL = _bool_env("RECORD_VERIFY_SSL", True)

    # Development only: lets X-Actor-Id / X-Actor-Role stand in for a session.
    ACTOR_HEADERS_ENABLED = _bool_env("ACTOR_HEADERS_ENABLED", False)

    def __init__(self):
        env = os.environ.get("FLASK_ENV", "development").lower()
        if env == "production" and self.SECRET_KEY == _DEFAULT_SECRET_KEY:
            raise RuntimeError("SECRET_KEY must be set for production.")
        if env == "production" and self.ACTOR_HEADERS_ENABLED:
            raise RuntimeError("ACTOR_HEADERS_ENABLED cannot be used in production.")
