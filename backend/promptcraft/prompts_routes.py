from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, List, Optional, Union

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field
from supabase import Client

from .auth import get_current_user_id
from .config import Settings, get_settings
from .supabase_client import get_supabase_client

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/prompts", tags=["prompts"])

PROMPT_COLUMNS = "id,user_id,title,target_model,use_case,refined_prompt,inputs,created_at"
TITLE_MAX_LENGTH = 80
TITLE_PREVIEW_WORDS = 6
LIST_LIMIT = 100


class SavePromptRequest(BaseModel):
    refined_prompt: str = Field(..., min_length=1)
    target_model: str = Field(..., min_length=1, max_length=100)
    use_case: str = Field(..., min_length=1, max_length=100)
    inputs: Any = None
    title: Optional[str] = Field(default=None, max_length=200)


class SavedPrompt(BaseModel):
    id: Union[int, str]
    user_id: str
    title: str
    target_model: str
    use_case: str
    refined_prompt: str
    inputs: Any = None
    created_at: str


class PromptExport(BaseModel):
    items: List[SavedPrompt]


def default_title(use_case: str, refined_prompt: str) -> str:
    preview = " ".join(refined_prompt.split()[:TITLE_PREVIEW_WORDS])
    return f"{use_case}: {preview}"[:TITLE_MAX_LENGTH]


def title_search_pattern(search: str) -> str:
    """Case-insensitive substring pattern with LIKE wildcards in ``search`` escaped."""
    escaped = search.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


def _store_unavailable(action: str, exc: Exception) -> HTTPException:
    logger.exception("Failed to %s", action, exc_info=exc)
    return HTTPException(
        status_code=status.HTTP_502_BAD_GATEWAY,
        detail="Unable to reach the document store.",
    )


def _list_prompts(
    client: Client,
    table: str,
    user_id: str,
    *,
    limit: int,
    search: Optional[str] = None,
    use_case: Optional[str] = None,
    target_model: Optional[str] = None,
) -> List[SavedPrompt]:
    query = client.table(table).select(PROMPT_COLUMNS).eq("user_id", user_id)
    if search and search.strip():
        query = query.ilike("title", title_search_pattern(search.strip()))
    if use_case:
        query = query.eq("use_case", use_case)
    if target_model:
        query = query.eq("target_model", target_model)

    try:
        response = query.order("created_at", desc=True).limit(limit).execute()
    except Exception as exc:
        raise _store_unavailable("list saved prompts", exc) from exc
    return [SavedPrompt(**row) for row in response.data or []]


@router.post("", response_model=SavedPrompt, status_code=status.HTTP_201_CREATED)
def save_prompt(
    payload: SavePromptRequest,
    user_id: str = Depends(get_current_user_id),
    settings: Settings = Depends(get_settings),
) -> SavedPrompt:
    title = (payload.title or "").strip() or default_title(payload.use_case, payload.refined_prompt)
    record = {
        "user_id": user_id,
        "title": title,
        "target_model": payload.target_model,
        "use_case": payload.use_case,
        "refined_prompt": payload.refined_prompt,
        "inputs": payload.inputs,
        "created_at": datetime.now(timezone.utc).isoformat(),
    }

    client = get_supabase_client(service_role=True)
    try:
        insert_response = client.table(settings.prompts_table).insert(record).execute()
    except Exception as exc:
        raise _store_unavailable("save prompt", exc) from exc

    if not insert_response.data:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to store the prompt.",
        )
    return SavedPrompt(**insert_response.data[0])


@router.get("", response_model=List[SavedPrompt])
def list_prompts(
    search: Optional[str] = Query(default=None, max_length=200),
    use_case: Optional[str] = Query(default=None, max_length=100),
    target_model: Optional[str] = Query(default=None, max_length=100),
    user_id: str = Depends(get_current_user_id),
    settings: Settings = Depends(get_settings),
) -> List[SavedPrompt]:
    client = get_supabase_client(service_role=True)
    return _list_prompts(
        client,
        settings.prompts_table,
        user_id,
        limit=LIST_LIMIT,
        search=search,
        use_case=use_case,
        target_model=target_model,
    )


@router.get("/export", response_model=PromptExport)
def export_prompts(
    user_id: str = Depends(get_current_user_id),
    settings: Settings = Depends(get_settings),
) -> PromptExport:
    client = get_supabase_client(service_role=True)
    items = _list_prompts(client, settings.prompts_table, user_id, limit=settings.export_limit)
    logger.info("Exported %d prompts for %s", len(items), user_id)
    return PromptExport(items=items)
