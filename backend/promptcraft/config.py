from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

ROOT_DIR = Path(__file__).resolve().parents[1]
ENV_PATH = ROOT_DIR / ".env"

if ENV_PATH.exists():
    load_dotenv(ENV_PATH)  # Load project .env once at import time.
else:
    load_dotenv()  # Fallback: search upwards from CWD.

PRODUCTION_ENV = "production"
DEFAULT_RATE_LIMIT_WINDOW_MS = 60_000
# Local iteration trips the production ceiling too easily.
DEFAULT_RATE_LIMIT_MAX_PRODUCTION = 20
DEFAULT_RATE_LIMIT_MAX_DEVELOPMENT = 100
DEFAULT_RATE_LIMIT_MAX_KEYS = 10_000


def _env(name: str, default: str | None = None) -> str:
    value = os.getenv(name, default)
    if value is None or value == "":
        raise RuntimeError(f"Missing required environment variable: {name}")
    return value


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw.strip())
    except ValueError as exc:
        raise RuntimeError(f"Environment variable {name} must be an integer, got {raw!r}") from exc


def _env_positive_int(name: str, default: int) -> int:
    value = _env_int(name, default)
    if value <= 0:
        raise RuntimeError(f"Environment variable {name} must be a positive integer, got {value}")
    return value


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    value = raw.strip().lower()
    if value in {"1", "true", "yes", "on"}:
        return True
    if value in {"0", "false", "no", "off"}:
        return False
    raise RuntimeError(f"Environment variable {name} must be a boolean, got {raw!r}")


def _env_optional(name: str) -> Optional[str]:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return None
    return value


@dataclass(frozen=True)
class Settings:
    supabase_url: str
    supabase_anon_key: str
    supabase_service_role_key: str
    prompts_table: str

    app_env: str
    cors_allow_origins: tuple[str, ...]
    log_level: str

    llm_provider: str
    gemini_api_key: Optional[str]
    gemini_model: str
    openai_api_key: Optional[str]
    openai_model: str
    groq_api_key: Optional[str]
    groq_model: str
    anthropic_api_key: Optional[str]
    anthropic_model: str

    rate_limit_window_ms: int
    rate_limit_max: int
    rate_limit_max_keys: int
    rate_limit_fail_open: bool
    export_limit: int

    @property
    def is_production(self) -> bool:
        return self.app_env.lower() == PRODUCTION_ENV


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    cors_raw = os.getenv("CORS_ALLOW_ORIGINS")
    if cors_raw:
        origins = tuple(origin.strip() for origin in cors_raw.split(",") if origin.strip())
    else:
        origins = (
            "http://localhost:3000",
            "http://127.0.0.1:3000",
        )

    app_env = os.getenv("APP_ENV", "local")
    default_max = (
        DEFAULT_RATE_LIMIT_MAX_PRODUCTION
        if app_env.lower() == PRODUCTION_ENV
        else DEFAULT_RATE_LIMIT_MAX_DEVELOPMENT
    )

    return Settings(
        supabase_url=_env("SUPABASE_URL"),
        supabase_anon_key=_env("SUPABASE_ANON_KEY"),
        supabase_service_role_key=_env("SUPABASE_SERVICE_ROLE_KEY"),
        prompts_table=os.getenv("SUPABASE_PROMPTS_TABLE", "prompts"),
        app_env=app_env,
        cors_allow_origins=origins,
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        llm_provider=os.getenv("LLM_PROVIDER", "gemini"),
        gemini_api_key=_env_optional("GEMINI_API_KEY"),
        gemini_model=os.getenv("GEMINI_MODEL", "gemini-1.5-flash"),
        openai_api_key=_env_optional("OPENAI_API_KEY"),
        openai_model=os.getenv("OPENAI_MODEL", "gpt-4o-mini"),
        groq_api_key=_env_optional("GROQ_API_KEY"),
        groq_model=os.getenv("GROQ_MODEL", "llama3-70b-8192"),
        anthropic_api_key=_env_optional("ANTHROPIC_API_KEY"),
        anthropic_model=os.getenv("ANTHROPIC_MODEL", "claude-3-haiku-20240307"),
        rate_limit_window_ms=_env_positive_int("RATE_LIMIT_WINDOW_MS", DEFAULT_RATE_LIMIT_WINDOW_MS),
        rate_limit_max=_env_positive_int("RATE_LIMIT_MAX", default_max),
        rate_limit_max_keys=_env_positive_int("RATE_LIMIT_MAX_KEYS", DEFAULT_RATE_LIMIT_MAX_KEYS),
        rate_limit_fail_open=_env_bool("RATE_LIMIT_FAIL_OPEN", True),
        export_limit=_env_positive_int("EXPORT_LIMIT", 500),
    )
