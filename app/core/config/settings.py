from __future__ import annotations

import os
from dataclasses import dataclass

from dotenv import load_dotenv

load_dotenv()


def _get_env(name: str, default: str | None = None) -> str | None:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    return value


def _get_env_bool(name: str, default: bool) -> bool:
    raw = _get_env(name, None)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _get_env_float(name: str, default: float) -> float:
    raw = _get_env(name, None)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _get_env_list(name: str, default: list[str]) -> tuple[str, ...]:
    raw = _get_env(name, None)
    if raw is None:
        return tuple(default)
    values = [item.strip() for item in raw.split(",")]
    clean = [item for item in values if item]
    return tuple(clean) if clean else tuple(default)


@dataclass(frozen=True)
class Settings:
    api_key: str | None
    rate_limit: str
    pipeline_rate_limit: str
    rate_limit_enabled: bool
    log_level: str
    sentry_dsn: str | None
    cors_allowed_origins: tuple[str, ...]
    cors_allow_origin_regex: str | None
    cors_allow_credentials: bool
    pipeline_store_backend: str
    pipeline_db_path: str
    pipeline_retry_base_delay_s: float
    pipeline_retry_max_delay_s: float
    rewriter_llm_enabled: bool
    project_lookup_enabled: bool
    github_api_url: str
    github_token: str | None
    github_timeout_s: float


settings = Settings(
    api_key=_get_env("API_KEY"),
    rate_limit=_get_env("RATE_LIMIT", "60/minute") or "60/minute",
    pipeline_rate_limit=_get_env("PIPELINE_RATE_LIMIT", "20/minute") or "20/minute",
    rate_limit_enabled=_get_env_bool("RATE_LIMIT_ENABLED", True),
    log_level=_get_env("LOG_LEVEL", "INFO") or "INFO",
    sentry_dsn=_get_env("SENTRY_DSN"),
    cors_allowed_origins=_get_env_list(
        "CORS_ALLOWED_ORIGINS",
        [
            "http://localhost:5173",
            "http://127.0.0.1:5173",
            "http://[::1]:5173",
            "http://localhost:3000",
        ],
    ),
    cors_allow_origin_regex=_get_env("CORS_ALLOW_ORIGIN_REGEX"),
    cors_allow_credentials=_get_env_bool("CORS_ALLOW_CREDENTIALS", False),
    pipeline_store_backend=(_get_env("PIPELINE_STORE_BACKEND", "sqlite") or "sqlite").strip().lower(),
    pipeline_db_path=_get_env("PIPELINE_DB_PATH", "data/pipeline_state.db") or "data/pipeline_state.db",
    pipeline_retry_base_delay_s=_get_env_float("PIPELINE_RETRY_BASE_DELAY_S", 1.0),
    pipeline_retry_max_delay_s=_get_env_float("PIPELINE_RETRY_MAX_DELAY_S", 10.0),
    rewriter_llm_enabled=_get_env_bool("REWRITER_LLM_ENABLED", False),
    project_lookup_enabled=_get_env_bool("PROJECT_LOOKUP_ENABLED", True),
    github_api_url=_get_env("GITHUB_API_URL", "https://api.github.com") or "https://api.github.com",
    github_token=_get_env("GITHUB_TOKEN"),
    github_timeout_s=_get_env_float("GITHUB_TIMEOUT_S", 8.0),
)

if settings.pipeline_store_backend not in {"sqlite", "memory"}:
    raise RuntimeError("PIPELINE_STORE_BACKEND must be either 'sqlite' or 'memory'.")
