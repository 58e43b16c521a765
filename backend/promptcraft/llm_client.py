from __future__ import annotations

import json
import logging
from functools import lru_cache
from typing import Any, Callable, Dict, Tuple

import requests
from openai import OpenAI, OpenAIError

from .config import Settings

logger = logging.getLogger(__name__)

TEMPERATURE = 0.7
TOP_P = 0.95
MAX_OUTPUT_TOKENS = 2048
REQUEST_TIMEOUT_SECONDS = 60


class LLMClientError(RuntimeError):
    """Raised when the configured LLM provider cannot refine a prompt."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class LLMConfigurationError(LLMClientError):
    """Raised when the selected provider has no credentials configured."""


@lru_cache(maxsize=1)
def _get_openai_client(api_key: str) -> OpenAI:
    return OpenAI(api_key=api_key)


def _upstream_message(response: requests.Response) -> str:
    try:
        data = response.json()
    except ValueError:
        return response.text or response.reason or "Upstream API error."
    error = data.get("error") if isinstance(data, dict) else None
    if isinstance(error, dict) and error.get("message"):
        return str(error["message"])
    if isinstance(data, dict) and data.get("message"):
        return str(data["message"])
    return json.dumps(data)


def _post_json(provider: str, endpoint: str, payload: dict, **kwargs: Any) -> Dict[str, Any]:
    try:
        response = requests.post(endpoint, json=payload, timeout=REQUEST_TIMEOUT_SECONDS, **kwargs)
    except requests.RequestException as exc:
        raise LLMClientError(f"{provider} request failed: {exc}") from exc

    if not response.ok:
        message = _upstream_message(response)
        logger.warning("%s returned HTTP %s: %s", provider, response.status_code, message)
        raise LLMClientError(f"{provider} returned an error: {message}", status_code=response.status_code)

    data = response.json()
    if "error" in data:
        raise LLMClientError(f"{provider} returned an error: {json.dumps(data['error'])}")
    return data


def _call_gemini(prompt: str, settings: Settings) -> Tuple[str, str]:
    if not settings.gemini_api_key:
        raise LLMConfigurationError("GEMINI_API_KEY is not set on the server.")
    model = settings.gemini_model
    endpoint = f"https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent"
    data = _post_json(
        "Gemini",
        endpoint,
        {
            "contents": [{"role": "user", "parts": [{"text": prompt}]}],
            "generationConfig": {
                "temperature": TEMPERATURE,
                "topP": TOP_P,
                "maxOutputTokens": MAX_OUTPUT_TOKENS,
            },
        },
        params={"key": settings.gemini_api_key},
        headers={"Accept": "application/json"},
    )

    for candidate in data.get("candidates") or []:
        parts = (candidate.get("content") or {}).get("parts") or []
        texts = [part.get("text") for part in parts if part.get("text")]
        if texts:
            return "\n".join(texts).strip(), model
    raise LLMClientError("Gemini response did not contain any text output.")


def _call_openai(prompt: str, settings: Settings) -> Tuple[str, str]:
    if not settings.openai_api_key:
        raise LLMConfigurationError("OPENAI_API_KEY is not set on the server.")
    client = _get_openai_client(settings.openai_api_key)
    try:
        response = client.responses.create(
            model=settings.openai_model,
            input=prompt,
            temperature=TEMPERATURE,
            top_p=TOP_P,
            max_output_tokens=MAX_OUTPUT_TOKENS,
        )
    except OpenAIError as exc:
        raise LLMClientError(f"OpenAI request failed: {exc}") from exc

    text = getattr(response, "output_text", None)
    if not text:
        raise LLMClientError("OpenAI response did not contain any text output.")
    return text.strip(), settings.openai_model


def _call_groq(prompt: str, settings: Settings) -> Tuple[str, str]:
    if not settings.groq_api_key:
        raise LLMConfigurationError("GROQ_API_KEY is not set on the server.")
    model = settings.groq_model
    data = _post_json(
        "Groq",
        "https://api.groq.com/openai/v1/chat/completions",
        {
            "model": model,
            "messages": [{"role": "user", "content": prompt}],
            "temperature": TEMPERATURE,
            "top_p": TOP_P,
            "max_tokens": MAX_OUTPUT_TOKENS,
        },
        headers={"Authorization": f"Bearer {settings.groq_api_key}"},
    )

    choices = data.get("choices") or []
    content = (choices[0].get("message") or {}).get("content") if choices else None
    if not content:
        raise LLMClientError("Groq response did not contain message content.")
    return content.strip(), model


def _call_anthropic(prompt: str, settings: Settings) -> Tuple[str, str]:
    if not settings.anthropic_api_key:
        raise LLMConfigurationError("ANTHROPIC_API_KEY is not set on the server.")
    model = settings.anthropic_model
    data = _post_json(
        "Anthropic",
        "https://api.anthropic.com/v1/messages",
        {
            "model": model,
            "max_tokens": MAX_OUTPUT_TOKENS,
            "temperature": TEMPERATURE,
            "messages": [{"role": "user", "content": [{"type": "text", "text": prompt}]}],
        },
        headers={
            "x-api-key": settings.anthropic_api_key,
            "anthropic-version": "2023-06-01",
        },
    )

    texts = [
        block["text"].strip()
        for block in data.get("content") or []
        if isinstance(block, dict) and block.get("type") == "text" and block.get("text")
    ]
    if not texts:
        raise LLMClientError("Anthropic response did not contain text content.")
    return "\n".join(texts), model


_PROVIDERS: Dict[str, Callable[[str, Settings], Tuple[str, str]]] = {
    "gemini": _call_gemini,
    "google": _call_gemini,
    "openai": _call_openai,
    "groq": _call_groq,
    "anthropic": _call_anthropic,
}


def generate_refined_prompt(prompt: str, settings: Settings) -> Tuple[str, str]:
    """Send the meta-prompt upstream; returns ``(text, model)``."""
    provider = (settings.llm_provider or "gemini").lower()
    call = _PROVIDERS.get(provider)
    if call is None:
        raise LLMConfigurationError(
            f"Unsupported LLM provider '{settings.llm_provider}'. "
            "Supported providers: gemini, openai, groq, anthropic."
        )
    return call(prompt, settings)
