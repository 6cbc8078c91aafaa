import os
from pathlib import Path
from typing import Dict, List, Mapping, Optional
from urllib.parse import quote

from dotenv import load_dotenv
from pydantic import BaseModel, Field

DEFAULT_ORIGINS = [
    "https://app.microfix.dk",
    "http://localhost:5173",
    "http://localhost:4173",
]
DEFAULT_PARENT_DOMAIN = "microfix.dk"
DEFAULT_DATABASE_URL = "sqlite:///./appcollection.db"


class Settings(BaseModel):
    host: str = "127.0.0.1"
    port: int = 3001
    log_level: str = "info"

    # server side
    database_url: str = DEFAULT_DATABASE_URL
    db_ssl: bool = False
    cors_origins: List[str] = Field(default_factory=lambda: list(DEFAULT_ORIGINS))
    cors_parent_domain: Optional[str] = DEFAULT_PARENT_DOMAIN
    static_dir: Path = Path("dist")

    # client side
    backend: str = "local"  # local | remote
    storage_path: Path = Path("local_storage.json")
    api_url: str = "http://127.0.0.1:3001"
    http_timeout: Optional[float] = None
    serialize_mutations: bool = False


def _flag(value: Optional[str]) -> bool:
    return (value or "").strip().lower() in {"1", "true", "yes", "on"}


def resolve_database_url(env: Mapping[str, str]) -> str:
    url = env.get("DATABASE_URL")
    if url:
        # SQLAlchemy 2.x no longer accepts the bare postgres:// scheme
        if url.startswith("postgres://"):
            url = url.replace("postgres://", "postgresql+psycopg2://", 1)
        return url
    if not env.get("DB_HOST") and not env.get("DB_NAME"):
        return DEFAULT_DATABASE_URL

    user = quote(env.get("DB_USER", ""), safe="")
    password = env.get("DB_PASSWORD")
    auth = f"{user}:{quote(password, safe='')}" if password else user
    host = env.get("DB_HOST") or "localhost"
    port = env.get("DB_PORT")
    netloc = f"{host}:{port}" if port else host
    if auth:
        netloc = f"{auth}@{netloc}"
    return f"postgresql+psycopg2://{netloc}/{env.get('DB_NAME', '')}"


def wants_ssl(url: str, db_ssl: bool, db_host: Optional[str] = None) -> bool:
    if db_ssl:
        return True
    if "sslmode=require" in url or "sslmode=verify-full" in url:
        return True
    if db_host is not None:
        # split DB_* settings: anything not on this machine talks SSL
        return db_host not in ("", "localhost", "127.0.0.1")
    return False


def masked_database_url(url: str) -> str:
    """The URL with its password replaced, safe to log."""
    scheme, sep, rest = url.partition("://")
    if not sep or "@" not in rest:
        return url
    creds, _, location = rest.rpartition("@")
    user, has_password, _ = creds.partition(":")
    if has_password:
        creds = f"{user}:****"
    return f"{scheme}://{creds}@{location}"


def load_settings(env: Optional[Mapping[str, str]] = None) -> Settings:
    if env is None:
        load_dotenv(dotenv_path=os.getenv("ENV_FILE", ".env"), override=False)
        env = os.environ

    values: Dict[str, object] = {}
    for field, var in (
        ("host", "HOST"),
        ("port", "PORT"),
        ("log_level", "LOG_LEVEL"),
        ("static_dir", "STATIC_DIR"),
        ("backend", "LINKS_BACKEND"),
        ("storage_path", "LINKS_STORAGE_PATH"),
        ("api_url", "LINKS_API_URL"),
        ("http_timeout", "LINKS_HTTP_TIMEOUT"),
    ):
        if env.get(var):
            values[field] = env[var]

    database_url = resolve_database_url(env)
    values["database_url"] = database_url
    split_host = None if env.get("DATABASE_URL") else env.get("DB_HOST")
    if database_url != DEFAULT_DATABASE_URL:
        values["db_ssl"] = wants_ssl(database_url, _flag(env.get("DB_SSL")), split_host)

    if env.get("CORS_ORIGINS"):
        values["cors_origins"] = [
            o.strip() for o in env["CORS_ORIGINS"].split(",") if o.strip()
        ]
    if "CORS_PARENT_DOMAIN" in env:
        values["cors_parent_domain"] = env["CORS_PARENT_DOMAIN"].strip() or None
    values["serialize_mutations"] = _flag(env.get("LINKS_SERIALIZE_MUTATIONS"))

    settings = Settings.model_validate(values)
    if settings.backend not in ("local", "remote"):
        raise ValueError(f"LINKS_BACKEND must be 'local' or 'remote', not {settings.backend!r}")
    return settings
