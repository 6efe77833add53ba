import os


def _env_or(key: str, default: str) -> str:
    v = os.getenv(key)
    return v if v is not None else default


def _env_flag(key: str, default: str = "0") -> bool:
    return _env_or(key, default).strip().lower() in ("1", "true", "yes", "on")


ENV = _env_or("ENV", "dev").lower()
DB_URL = _env_or("FESTFLOW_DB_URL", _env_or("DB_URL", "sqlite+pysqlite:////tmp/festflow.db"))
ALLOWED_ORIGINS = os.getenv("ALLOWED_ORIGINS", "")

SESSION_COOKIE_NAME = _env_or("FESTFLOW_COOKIE_NAME", "ff_session")
SESSION_TTL_SECS = int(_env_or("FESTFLOW_SESSION_TTL_SECS", "86400"))
# Browsers drop Secure cookies on plain http, which the LAN setup uses outside prod.
SESSION_COOKIE_SECURE = ENV in ("prod", "production", "staging")

LOGIN_RATE_WINDOW_SECS = int(_env_or("FESTFLOW_LOGIN_WINDOW_SECS", "60"))
LOGIN_MAX_PER_NAME = int(_env_or("FESTFLOW_LOGIN_MAX_PER_NAME", "10"))
LOGIN_MAX_PER_IP = int(_env_or("FESTFLOW_LOGIN_MAX_PER_IP", "30"))
# Upper bound on distinct names/addresses tracked by the failed-login stores.
RATE_STORE_MAX_KEYS = max(0, int(_env_or("FESTFLOW_RATE_STORE_MAX_KEYS", "20000")))

# Demo seeding only ever runs in dev.
SEED_DEMO = _env_flag("FESTFLOW_SEED_DEMO") and ENV == "dev"

ENABLE_DOCS = ENV in ("dev", "test") or _env_flag("ENABLE_API_DOCS_IN_PROD")
