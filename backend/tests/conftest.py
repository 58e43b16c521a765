from __future__ import annotations

import os

import pytest

# promptcraft.main reads settings at import time.
os.environ.setdefault("SUPABASE_URL", "https://example.supabase.co")
os.environ.setdefault("SUPABASE_ANON_KEY", "anon")
os.environ.setdefault("SUPABASE_SERVICE_ROLE_KEY", "service")

from promptcraft.config import Settings  # noqa: E402


class FakeClock:
    """Millisecond clock the tests advance by hand."""

    def __init__(self, start: float = 1_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, ms: float) -> None:
        self.now += ms


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def settings() -> Settings:
    return Settings(
        supabase_url="https://example.supabase.co",
        supabase_anon_key="anon",
        supabase_service_role_key="service",
        prompts_table="prompts",
        app_env="test",
        cors_allow_origins=("http://localhost:3000",),
        log_level="INFO",
        llm_provider="gemini",
        gemini_api_key="gemini-test",
        gemini_model="gemini-1.5-flash",
        openai_api_key=None,
        openai_model="gpt-4o-mini",
        groq_api_key=None,
        groq_model="llama3-70b-8192",
        anthropic_api_key=None,
        anthropic_model="claude-3-haiku-20240307",
        rate_limit_window_ms=60_000,
        rate_limit_max=20,
        rate_limit_max_keys=10_000,
        rate_limit_fail_open=True,
        export_limit=500,
    )
