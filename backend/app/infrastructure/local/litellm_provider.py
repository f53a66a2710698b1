"""
LiteLLM provider implementation.

Streams chat completions from OpenAI, Anthropic and Gemini models through
LiteLLM. Includes support for custom endpoints (api_base) for proxy servers.
"""

from __future__ import annotations

import json
import os
import re
from typing import Any, AsyncIterator, Optional
from uuid import uuid4

import litellm

from app.core.config import Settings, get_settings
from app.core.exceptions import LLMError
from app.core.logger import logger
from app.interfaces.llm_provider import ILLMProvider
from app.models.step import (
    FileContent,
    FinishDelta,
    ProviderDelta,
    ReasoningDelta,
    SourceContent,
    TextDelta,
    ToolCallContent,
)
from app.services.model_catalog import build_completion_options, resolve_model

_DATA_URL = re.compile(r"^data:(?P<media>[\w.+-]+/[\w.+-]+);base64,(?P<payload>.*)$", re.DOTALL)


def _as_dict(value: Any) -> dict[str, Any]:
    """Stream chunks arrive as pydantic objects; work on plain dicts."""
    if value is None:
        return {}
    if isinstance(value, dict):
        return value
    if hasattr(value, "model_dump"):
        return value.model_dump()
    return dict(value)


def _merge_tool_calls(accumulator: list[dict[str, Any]], deltas: Any) -> None:
    """Fold streamed tool-call fragments into complete calls, keyed by index."""
    for delta in deltas or []:
        delta = _as_dict(delta)
        index = delta.get("index")
        delta_id = delta.get("id")
        if not isinstance(index, int) or index < 0:
            index = None
            if isinstance(delta_id, str):
                for existing_index, existing in enumerate(accumulator):
                    if existing.get("id") == delta_id:
                        index = existing_index
                        break
            if index is None:
                index = len(accumulator)

        while len(accumulator) <= index:
            accumulator.append({"id": None, "name": None, "arguments": ""})

        entry = accumulator[index]
        if delta_id:
            entry["id"] = delta_id
        function_delta = delta.get("function") or {}
        if function_delta.get("name"):
            entry["name"] = function_delta["name"]
        if function_delta.get("arguments"):
            entry["arguments"] += function_delta["arguments"]


def _finalize_tool_calls(accumulator: list[dict[str, Any]]) -> list[ToolCallContent]:
    calls: list[ToolCallContent] = []
    for index, entry in enumerate(accumulator):
        name = (entry.get("name") or "").strip()
        if not name:
            continue
        arguments = entry.get("arguments") or ""
        try:
            parsed = json.loads(arguments) if arguments.strip() else {}
        except json.JSONDecodeError:
            logger.warning(f"Tool call {name} has malformed arguments: {arguments[:200]}")
            parsed = arguments
        calls.append(
            ToolCallContent(
                tool_call_id=entry.get("id") or f"call_{index}",
                tool_name=name,
                input=parsed,
            )
        )
    return calls


def _annotation_to_source(annotation: Any) -> Optional[SourceContent]:
    """URL citations (web search) become sources."""
    data = _as_dict(annotation)
    if data.get("type") != "url_citation":
        return None
    citation = data.get("url_citation") or {}
    url = citation.get("url")
    if not url:
        return None
    return SourceContent(
        id=str(uuid4()),
        url=url,
        title=citation.get("title") or "",
        provider_metadata={
            "start_index": citation.get("start_index"),
            "end_index": citation.get("end_index"),
        },
    )


def _image_to_file(image: Any) -> Optional[FileContent]:
    """Generated images become files; only data URLs carry an inline payload."""
    data = _as_dict(image)
    url = (data.get("image_url") or {}).get("url")
    if not url:
        return None
    match = _DATA_URL.match(url)
    if match:
        return FileContent(media_type=match.group("media"), base64=match.group("payload"))
    return FileContent(media_type="image/*", provider_metadata={"url": url})


class LiteLLMProvider(ILLMProvider):
    """LiteLLM streaming provider with custom endpoint support."""

    def __init__(self, model_id: Optional[str] = None, settings: Optional[Settings] = None):
        """
        Initialize LiteLLM provider.

        Args:
            model_id: Selectable model id (e.g. "gpt-5"); unknown ids fall
                      back to DEFAULT_CHAT_MODEL
            settings: Application settings (defaults to get_settings())
        """
        self._settings = settings or get_settings()
        self._spec = resolve_model(model_id, self._settings)
        self._options = build_completion_options(self._spec, self._settings)

        # Enable debug logging if DEBUG is set
        if self._settings.DEBUG:
            os.environ["LITELLM_LOG"] = "DEBUG"

    def get_model_id(self) -> str:
        """Get the selectable model id."""
        return self._spec.id

    def get_model_name(self) -> str:
        """Get human-readable model name."""
        api_base = self._options.get("api_base")
        if api_base:
            return f"LiteLLM ({self._spec.litellm_model} @ {api_base})"
        return f"LiteLLM ({self._spec.litellm_model})"

    def with_model(self, model_id: str) -> "LiteLLMProvider":
        """Return a provider for another model with the same settings."""
        return LiteLLMProvider(model_id, self._settings)

    async def stream_completion(
        self,
        messages: list[dict[str, Any]],
        tools: Optional[list[dict[str, Any]]] = None,
    ) -> AsyncIterator[ProviderDelta]:
        kwargs: dict[str, Any] = {
            "model": self._spec.litellm_model,
            "messages": messages,
            "stream": True,
            **self._options,
        }
        if tools:
            kwargs["tools"] = tools

        try:
            response = await litellm.acompletion(**kwargs)
        except Exception as e:
            raise LLMError(f"{self.get_model_name()} request failed: {e}") from e

        tool_calls: list[dict[str, Any]] = []
        finish_reason: Optional[str] = None
        usage: Optional[dict[str, Any]] = None
        try:
            async for chunk in response:
                data = _as_dict(chunk)
                if data.get("usage"):
                    usage = _as_dict(data["usage"])
                for choice in data.get("choices") or []:
                    if choice.get("finish_reason"):
                        finish_reason = choice["finish_reason"]
                    delta = choice.get("delta") or {}

                    if delta.get("reasoning_content"):
                        yield ReasoningDelta(delta["reasoning_content"])
                    if delta.get("content"):
                        yield TextDelta(delta["content"])
                    for annotation in delta.get("annotations") or []:
                        source = _annotation_to_source(annotation)
                        if source is not None:
                            yield source
                    for image in delta.get("images") or []:
                        generated = _image_to_file(image)
                        if generated is not None:
                            yield generated
                    _merge_tool_calls(tool_calls, delta.get("tool_calls"))
        except Exception as e:
            raise LLMError(f"{self.get_model_name()} stream failed: {e}") from e

        for call in _finalize_tool_calls(tool_calls):
            yield call
        yield FinishDelta(finish_reason=finish_reason, usage=usage)
