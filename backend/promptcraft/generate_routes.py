from __future__ import annotations

import logging
from threading import Lock

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from pydantic import BaseModel

from .client_identity import client_key_from_request
from .config import Settings, get_settings
from .llm_client import LLMClientError, LLMConfigurationError, generate_refined_prompt
from .prompt_builder import GenerateRequest, build_prompt
from .rate_limiter import AdmissionDecision, AdmissionGate, RateLimitConfig

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/generate", tags=["generate"])

_admission_gate: AdmissionGate | None = None
_admission_gate_lock = Lock()


class GenerateResponse(BaseModel):
    refined_prompt: str
    model: str


def get_admission_gate(settings: Settings = Depends(get_settings)) -> AdmissionGate:
    global _admission_gate
    if _admission_gate is not None:
        return _admission_gate
    with _admission_gate_lock:
        if _admission_gate is None:
            config = RateLimitConfig.from_settings(settings)
            _admission_gate = AdmissionGate(config)
            logger.info(
                "Admission gate ready: %d requests per %d ms",
                config.max_per_window,
                config.window_ms,
            )
        return _admission_gate


def enforce_rate_limit(
    request: Request,
    response: Response,
    gate: AdmissionGate = Depends(get_admission_gate),
) -> AdmissionDecision:
    """Admit the caller before the payload is validated; 429 when saturated."""
    decision = gate.check(client_key_from_request(request))
    if not decision.allowed:
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="Rate limited. Please wait and try again.",
            headers=decision.headers(),
        )
    for name, value in decision.headers().items():
        response.headers[name] = value
    return decision


@router.post("", response_model=GenerateResponse)
def generate_prompt(
    payload: GenerateRequest,
    response: Response,
    decision: AdmissionDecision = Depends(enforce_rate_limit),
    settings: Settings = Depends(get_settings),
) -> GenerateResponse:
    prompt = build_prompt(payload)
    try:
        text, model = generate_refined_prompt(prompt, settings)
    except LLMConfigurationError as exc:
        logger.error("Prompt generation misconfigured: %s", exc)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=str(exc),
            headers=decision.headers(),
        ) from exc
    except LLMClientError as exc:
        logger.warning("Prompt generation failed upstream (status %s): %s", exc.status_code, exc)
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=str(exc),
            headers=decision.headers(),
        ) from exc

    response.headers["cache-control"] = "no-store"
    return GenerateResponse(refined_prompt=text, model=model)
