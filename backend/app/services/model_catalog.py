"""
Selectable chat models.

Maps the model ids offered to the client onto LiteLLM model names and the
provider-specific options each family needs.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Literal, Optional

from app.core.config import Settings
from app.core.logger import logger

ProviderFamily = Literal["openai", "anthropic", "google"]


@dataclass(frozen=True)
class ModelSpec:
    id: str
    name: str
    provider: ProviderFamily
    litellm_model: str


MODEL_CATALOG: dict[str, ModelSpec] = {
    spec.id: spec
    for spec in (
        ModelSpec("claude-4-sonnet", "Claude Sonnet 4.5", "anthropic", "anthropic/claude-sonnet-4-5"),
        ModelSpec("gpt-5", "GPT-5", "openai", "openai/gpt-5"),
        ModelSpec("gpt-5-mini", "GPT-5 mini", "openai", "openai/gpt-5-mini"),
        ModelSpec("o3", "o3", "openai", "openai/o3-2025-04-16"),
        ModelSpec("gemini-2.5-pro", "Gemini 2.5 Pro", "google", "gemini/gemini-2.5-pro"),
        ModelSpec("gemini-2.5-flash", "Gemini 2.5 Flash", "google", "gemini/gemini-2.5-flash"),
    )
}

FALLBACK_MODEL_ID = "gpt-5"


def resolve_model(model_id: Optional[str], settings: Settings) -> ModelSpec:
    """Look up a model id, falling back to the configured default."""
    if model_id and model_id in MODEL_CATALOG:
        return MODEL_CATALOG[model_id]
    if model_id:
        logger.warning(f"Invalid model selected: {model_id}; using {settings.DEFAULT_CHAT_MODEL}")
    default = MODEL_CATALOG.get(settings.DEFAULT_CHAT_MODEL)
    if default is None:
        logger.warning(
            f"DEFAULT_CHAT_MODEL {settings.DEFAULT_CHAT_MODEL!r} is not a known model; "
            f"using {FALLBACK_MODEL_ID}"
        )
        default = MODEL_CATALOG[FALLBACK_MODEL_ID]
    return default


def build_completion_options(spec: ModelSpec, settings: Settings) -> dict[str, Any]:
    """Provider-specific LiteLLM kwargs (reasoning, web search, endpoint)."""
    options: dict[str, Any] = {}

    if spec.provider == "openai":
        if spec.id == "o3":
            options["reasoning_effort"] = settings.O3_REASONING_EFFORT
        else:
            options["reasoning_effort"] = settings.OPENAI_REASONING_EFFORT
    elif spec.provider == "google":
        if settings.GEMINI_THINKING_BUDGET > 0:
            options["thinking"] = {
                "type": "enabled",
                "budget_tokens": settings.GEMINI_THINKING_BUDGET,
            }
    elif spec.provider == "anthropic":
        if settings.ANTHROPIC_THINKING_BUDGET > 0:
            options["thinking"] = {
                "type": "enabled",
                "budget_tokens": settings.ANTHROPIC_THINKING_BUDGET,
            }

    if settings.CHAT_WEB_SEARCH_ENABLED:
        options["web_search_options"] = {"search_context_size": "high"}

    if settings.LITELLM_API_BASE:
        options["api_base"] = settings.LITELLM_API_BASE
    if settings.LITELLM_API_KEY:
        options["api_key"] = settings.LITELLM_API_KEY
    return options
