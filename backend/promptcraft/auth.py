from __future__ import annotations

import logging
from typing import Optional

from fastapi import Header, HTTPException, status

from .supabase_client import get_supabase_client

logger = logging.getLogger(__name__)

BEARER_PREFIX = "Bearer "


def bearer_token(authorization: Optional[str]) -> Optional[str]:
    if not authorization or not authorization.startswith(BEARER_PREFIX):
        return None
    token = authorization[len(BEARER_PREFIX):].strip()
    return token or None


def get_current_user_id(authorization: Optional[str] = Header(default=None)) -> str:
    """Resolve the Supabase user behind the request's bearer token."""
    token = bearer_token(authorization)
    if token is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing bearer token.",
        )

    client = get_supabase_client()
    try:
        result = client.auth.get_user(token)
    except Exception as exc:
        logger.info("Rejected session token: %s", exc)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired session token.",
        ) from exc

    user = getattr(result, "user", None)
    user_id = getattr(user, "id", None)
    if not user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired session token.",
        )
    return str(user_id)
