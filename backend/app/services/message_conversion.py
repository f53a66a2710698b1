"""
Conversions between client message parts, stored parts and model messages.

Client parts use camelCase keys and tag tool parts as ``tool-<name>``;
stored parts use the MessagePart models; the model receives
chat-completions style messages.
"""

from __future__ import annotations

import json
from typing import Any, Optional

from app.core.logger import logger
from app.models.chat import UIMessage
from app.models.message_part import (
    FilePart,
    MessagePart,
    ReasoningPart,
    SourceDocumentPart,
    SourceUrlPart,
    TextPart,
    ToolInvocationPart,
)

_TOOL_STATES = ("output-available", "output-error")


# ===========================================
# Stored part -> client part
# ===========================================


def part_to_ui(part: MessagePart) -> dict[str, Any]:
    """Render a stored part in client format."""
    if isinstance(part, (TextPart, ReasoningPart)):
        ui: dict[str, Any] = {"type": part.type, "text": part.text}
        if part.provider_metadata:
            ui["providerMetadata"] = part.provider_metadata
        return ui
    if isinstance(part, SourceUrlPart):
        ui = {"type": "source-url", "sourceId": part.source_id, "url": part.url}
        if part.title is not None:
            ui["title"] = part.title
        if part.provider_metadata:
            ui["providerMetadata"] = part.provider_metadata
        return ui
    if isinstance(part, SourceDocumentPart):
        ui = {
            "type": "source-document",
            "sourceId": part.source_id,
            "mediaType": part.media_type,
            "title": part.title,
        }
        if part.filename is not None:
            ui["filename"] = part.filename
        if part.provider_metadata:
            ui["providerMetadata"] = part.provider_metadata
        return ui
    if isinstance(part, FilePart):
        ui = {"type": "file", "mediaType": part.media_type, "url": part.url}
        if part.filename is not None:
            ui["filename"] = part.filename
        if part.provider_metadata:
            ui["providerMetadata"] = part.provider_metadata
        return ui
    if isinstance(part, ToolInvocationPart):
        ui = {
            "type": f"tool-{part.tool_name}",
            "toolCallId": part.tool_call_id,
            "state": part.state,
            "input": part.input,
        }
        if part.state == "output-available":
            ui["output"] = part.output
        else:
            ui["errorText"] = part.error_text
        if part.provider_executed is not None:
            ui["providerExecuted"] = part.provider_executed
        return ui
    raise TypeError(f"Unsupported part type: {type(part).__name__}")


# ===========================================
# Client part -> stored part
# ===========================================


def _tool_name_of(ui: dict[str, Any]) -> Optional[str]:
    part_type = ui.get("type", "")
    if part_type == "dynamic-tool":
        return ui.get("toolName")
    if part_type.startswith("tool-"):
        return part_type[len("tool-"):]
    return None


def ui_part_to_part(ui: dict[str, Any]) -> Optional[MessagePart]:
    """
    Convert one client part into a stored part.

    Returns None for parts that are not persisted (step markers, tool calls
    still in flight, unknown kinds).
    """
    part_type = ui.get("type")
    metadata = ui.get("providerMetadata")

    if part_type in ("text", "reasoning"):
        model = TextPart if part_type == "text" else ReasoningPart
        return model(text=ui.get("text") or "", provider_metadata=metadata)
    if part_type == "source-url" and ui.get("url"):
        return SourceUrlPart(
            source_id=ui.get("sourceId") or "",
            url=ui["url"],
            title=ui.get("title"),
            provider_metadata=metadata,
        )
    if part_type == "source-document" and ui.get("mediaType"):
        return SourceDocumentPart(
            source_id=ui.get("sourceId") or "",
            media_type=ui["mediaType"],
            title=ui.get("title") or "",
            filename=ui.get("filename"),
            provider_metadata=metadata,
        )
    if part_type == "file" and ui.get("mediaType"):
        return FilePart(
            media_type=ui["mediaType"],
            url=ui.get("url") or None,
            filename=ui.get("filename"),
            provider_metadata=metadata,
        )

    tool_name = _tool_name_of(ui)
    if tool_name and ui.get("state") in _TOOL_STATES:
        return ToolInvocationPart(
            tool_name=tool_name,
            tool_call_id=ui.get("toolCallId") or "",
            state=ui["state"],
            input=ui.get("input"),
            output=ui.get("output"),
            error_text=ui.get("errorText"),
            provider_executed=ui.get("providerExecuted"),
        )
    return None


def ui_parts_to_parts(ui_parts: list[dict[str, Any]]) -> list[MessagePart]:
    """Convert client parts, skipping the ones that are not persisted."""
    parts: list[MessagePart] = []
    for ui in ui_parts:
        try:
            part = ui_part_to_part(ui)
        except Exception as e:
            logger.warning(f"Skipping malformed client part {ui.get('type')!r}: {e}")
            continue
        if part is not None:
            parts.append(part)
    return parts


# ===========================================
# Client messages -> model messages
# ===========================================


def part_text(part: dict[str, Any]) -> str:
    """Text of a client part; anything that is not a string counts as empty."""
    text = part.get("text")
    return text if isinstance(text, str) else ""


def _text_of(parts: list[dict[str, Any]]) -> str:
    return "".join(part_text(p) for p in parts if p.get("type") == "text")


def _user_content(parts: list[dict[str, Any]]) -> Any:
    """Plain string, or a content list when images are attached."""
    content: list[dict[str, Any]] = []
    for part in parts:
        part_type = part.get("type")
        if part_type == "text" and part_text(part):
            content.append({"type": "text", "text": part_text(part)})
        elif part_type == "file" and part.get("url"):
            media_type = part.get("mediaType") or ""
            if media_type.startswith("image/"):
                content.append({"type": "image_url", "image_url": {"url": part["url"]}})
            else:
                name = part.get("filename") or media_type or "file"
                content.append({"type": "text", "text": f"[Attached file: {name}]"})

    if all(item["type"] == "text" for item in content):
        return "\n".join(item["text"] for item in content)
    return content


def dump_tool_payload(value: Any) -> str:
    if isinstance(value, str):
        return value
    return json.dumps(value, ensure_ascii=False, default=str)


def _assistant_messages(parts: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """
    Split an assistant message into model messages.

    Each run of text followed by tool calls becomes one assistant message
    with ``tool_calls``, followed by one ``tool`` message per result.
    """
    messages: list[dict[str, Any]] = []
    text = ""
    tool_calls: list[dict[str, Any]] = []
    tool_results: list[dict[str, Any]] = []

    def flush() -> None:
        nonlocal text, tool_calls, tool_results
        if not text and not tool_calls:
            return
        message: dict[str, Any] = {"role": "assistant", "content": text or None}
        if tool_calls:
            message["tool_calls"] = tool_calls
        messages.append(message)
        messages.extend(tool_results)
        text, tool_calls, tool_results = "", [], []

    for part in parts:
        if part.get("type") == "text":
            if tool_calls:
                flush()
            text += part_text(part)
            continue

        tool_name = _tool_name_of(part)
        state = part.get("state")
        if not tool_name or state not in _TOOL_STATES:
            continue
        call_id = part.get("toolCallId") or f"call_{len(tool_calls)}"
        tool_calls.append(
            {
                "id": call_id,
                "type": "function",
                "function": {
                    "name": tool_name,
                    "arguments": dump_tool_payload(part.get("input") or {}),
                },
            }
        )
        result = part.get("output") if state == "output-available" else part.get("errorText")
        tool_results.append(
            {"role": "tool", "tool_call_id": call_id, "content": dump_tool_payload(result)}
        )

    flush()
    return messages


def to_model_messages(
    messages: list[UIMessage],
    system_prompt: Optional[str] = None,
) -> list[dict[str, Any]]:
    """Convert the client conversation into chat-completions messages."""
    converted: list[dict[str, Any]] = []
    if system_prompt:
        converted.append({"role": "system", "content": system_prompt})

    for message in messages:
        if message.role == "system":
            text = _text_of(message.parts)
            if text:
                converted.append({"role": "system", "content": text})
        elif message.role == "user":
            content = _user_content(message.parts)
            if content:
                converted.append({"role": "user", "content": content})
        else:
            converted.extend(_assistant_messages(message.parts))
    return converted
