from __future__ import annotations

from typing import Iterable, List, Literal, Optional

from pydantic import BaseModel, Field

TargetModel = Literal["ChatGPT", "Gemini", "Claude", "DALL·E/Midjourney", "Video", "Audio"]
UseCase = Literal[
    "Text",
    "Image",
    "Documentation",
    "Notes",
    "Presentation",
    "Audio Script",
    "Video Script",
]
OutputFormat = Literal["bullets", "outline", "paragraphs", "table", "json"]

ROLE_BY_USE_CASE = {
    "Text": "expert writer and prompt engineer",
    "Image": "expert visual prompt engineer",
    "Documentation": "senior technical writer",
    "Notes": "expert summarizer",
    "Presentation": "presentation architect",
    "Audio Script": "audio scriptwriter",
    "Video Script": "video scriptwriter",
}
DEFAULT_ROLE = "expert prompt engineer"

NON_TEXT_MODELS = {"DALL·E/Midjourney", "Video", "Audio"}

OUTPUT_FORMAT_LABELS = {
    "table": "table (markdown)",
    "json": "JSON schema",
}


class GenerateRequest(BaseModel):
    target_model: TargetModel
    use_case: UseCase
    rough_idea: str = Field(..., min_length=8, max_length=8000)
    context: Optional[str] = Field(default=None, max_length=8000)
    audience: Optional[str] = Field(default=None, max_length=500)
    tone: Optional[List[str]] = None
    output_format: Optional[OutputFormat] = None
    constraints: Optional[List[str]] = None
    language: Optional[str] = Field(default=None, max_length=100)
    negative: Optional[str] = Field(default=None, max_length=2000)


def _labelled(label: str, value: str | Iterable[str] | None) -> Optional[str]:
    if not value:
        return None
    text = value if isinstance(value, str) else ", ".join(value)
    if not text.strip():
        return None
    return f"{label}: {text}"


def build_prompt(payload: GenerateRequest) -> str:
    """Assemble the meta-prompt sent upstream to refine a rough idea."""
    lines: List[str] = [
        f"You are an expert prompt engineer specializing in {payload.use_case}.",
        "Your task is to craft a **single, highly optimized, copy-ready prompt** "
        f"for the model: {payload.target_model}.",
        "The generated prompt must be clear, structured, and designed to maximize "
        "creativity, depth, and usefulness.",
    ]

    if payload.context and payload.context.strip():
        lines += ["", "### CONTEXT", payload.context.strip()]

    lines += [
        "",
        "### ROLE & GOAL",
        f"- Act as: {ROLE_BY_USE_CASE.get(payload.use_case, DEFAULT_ROLE)}",
        "- Goal: Transform the rough idea into a precise, high-signal, multi-layered prompt.",
        "- The prompt should encourage depth, creativity, and nuanced outputs.",
        "- Avoid shallow or generic instructions.",
        "",
        "### INPUT SUMMARY",
        payload.rough_idea.strip(),
        "",
    ]

    output_format = None
    if payload.output_format:
        output_format = OUTPUT_FORMAT_LABELS.get(payload.output_format, payload.output_format)

    details = [
        _labelled("AUDIENCE", payload.audience),
        _labelled("TONE / STYLE", payload.tone),
        _labelled("OUTPUT FORMAT", output_format),
        _labelled("CONSTRAINTS", payload.constraints),
        _labelled("LANGUAGE", payload.language),
        _labelled("AVOID", payload.negative),
    ]
    lines += [detail for detail in details if detail]

    if payload.target_model in NON_TEXT_MODELS:
        lines += [
            "",
            "### SPECIAL INSTRUCTIONS (Non-Text Models)",
            "- Be explicit about scene, subject, style, lighting, mood, and composition.",
            "- Include strong positive descriptions and meaningful negatives (things to avoid).",
            "- Ensure clarity so the model generates consistent results.",
        ]

    lines += [
        "",
        "### FINAL INSTRUCTION",
        "Return only the final **deep, structured prompt** text. "
        "Do not explain, just output the optimized prompt.",
    ]
    return "\n".join(lines)
