import os


def _flag(name: str, default: str = "false") -> bool:
    return os.environ.get(name, default).strip().lower() in {"1", "true", "yes", "on"}


db_url = os.environ.get("DB_URL", "sqlite://:memory:")
generate_schemas = _flag("GENERATE_SCHEMAS", "true")
users_ms_url = os.environ.get("USERS_MS_URL", "http://localhost:8000")
properties_ms_url = os.environ.get("PROPERTIES_MS_URL", "http://localhost:8001")
http_timeout = float(os.environ.get("HTTP_TIMEOUT", "5.0"))
REDIS_URL = os.environ.get("REDIS_URL", "redis://localhost:6379/0")

DEBUG = _flag("DEBUG")
LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()
