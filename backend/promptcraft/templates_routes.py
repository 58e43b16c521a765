from __future__ import annotations

import json
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, List

from fastapi import APIRouter
from pydantic import BaseModel

TEMPLATES_PATH = Path(__file__).resolve().parents[1] / "data" / "templates.json"

router = APIRouter(prefix="/templates", tags=["templates"])


class PromptTemplate(BaseModel):
    id: str
    title: str
    preset: Dict[str, Any]


@lru_cache(maxsize=1)
def load_templates() -> List[dict]:
    if not TEMPLATES_PATH.exists():
        return []
    with TEMPLATES_PATH.open("r", encoding="utf-8") as fh:
        return json.load(fh)


@router.get("", response_model=List[PromptTemplate])
def featured_templates() -> List[PromptTemplate]:
    return [PromptTemplate(**template) for template in load_templates()]
