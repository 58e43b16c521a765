from __future__ import annotations

from functools import lru_cache

from supabase import Client, create_client

from .config import get_settings


@lru_cache(maxsize=2)
def _client_for(url: str, key: str) -> Client:
    return create_client(url, key)


def get_supabase_client(service_role: bool = False) -> Client:
    """Anon client for verifying user tokens; service-role client for document access."""
    settings = get_settings()
    key = (
        settings.supabase_service_role_key
        if service_role
        else settings.supabase_anon_key
    )
    return _client_for(settings.supabase_url, key)
