from __future__ import annotations

import logging
from typing import Any, Dict

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .config import Settings, get_settings
from .generate_routes import router as generate_router
from .prompts_routes import router as prompts_router
from .templates_routes import router as templates_router

settings = get_settings()
logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

app = FastAPI(title="PromptCraft API")
app.add_middleware(
    CORSMiddleware,
    allow_origins=list(settings.cors_allow_origins),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=[
        "x-ratelimit-limit",
        "x-ratelimit-remaining",
        "x-ratelimit-reset",
        "retry-after",
    ],
)
app.include_router(generate_router)
app.include_router(prompts_router)
app.include_router(templates_router)


@app.get("/health")
def health(settings: Settings = Depends(get_settings)) -> Dict[str, Any]:
    return {
        "status": "ok",
        "environment": settings.app_env,
        "rate_limit": {
            "window_ms": settings.rate_limit_window_ms,
            "max_per_window": settings.rate_limit_max,
        },
    }
