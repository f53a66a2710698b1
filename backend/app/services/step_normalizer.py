"""
Step content normalizer.

Maps the content items of one generation step onto storable message parts.
Pure: no I/O besides a warning log, and never raises. Items that cannot be
mapped are skipped.
"""

from __future__ import annotations

from typing import Any, Iterable, Optional

from app.core.logger import logger
from app.models.message_part import (
    FilePart,
    MessagePart,
    ReasoningPart,
    SourceDocumentPart,
    SourceUrlPart,
    TextPart,
    ToolInvocationPart,
)
from app.models.step import (
    FileContent,
    ReasoningContent,
    SourceContent,
    StepContent,
    TextContent,
    ToolCallContent,
    ToolErrorContent,
    ToolResultContent,
)


TOOL_ERROR_FALLBACK = "Tool error occurred"


def describe_tool_error(error: Any) -> str:
    """Best-effort error text; never empty."""
    if error is None:
        return TOOL_ERROR_FALLBACK
    try:
        text = str(error)
    except Exception:
        return TOOL_ERROR_FALLBACK
    return text or TOOL_ERROR_FALLBACK


def _normalize_source(item: SourceContent) -> Optional[MessagePart]:
    # URL shape wins when both shapes are present.
    if item.url is not None and item.title is not None:
        return SourceUrlPart(
            source_id=item.id,
            url=item.url,
            title=item.title,
            provider_metadata=item.provider_metadata,
        )
    if item.media_type is not None and item.filename is not None:
        return SourceDocumentPart(
            source_id=item.id,
            media_type=item.media_type,
            title=item.title or "",
            filename=item.filename,
            provider_metadata=item.provider_metadata,
        )
    logger.warning(f"Dropping source {item.id!r}: neither a URL nor a document source")
    return None


def _normalize_file(item: FileContent) -> MessagePart:
    url = None
    if item.base64:
        url = f"data:{item.media_type};base64,{item.base64}"
    return FilePart(
        media_type=item.media_type,
        url=url,
        filename=None,
        provider_metadata=item.provider_metadata,
    )


def normalize_item(item: StepContent) -> Optional[MessagePart]:
    """Map one step content item to a part, or None when it is not stored."""
    if isinstance(item, TextContent):
        return TextPart(text=item.text, provider_metadata=item.provider_metadata)
    if isinstance(item, ReasoningContent):
        return ReasoningPart(text=item.text, provider_metadata=item.provider_metadata)
    if isinstance(item, SourceContent):
        return _normalize_source(item)
    if isinstance(item, FileContent):
        return _normalize_file(item)
    if isinstance(item, ToolResultContent):
        return ToolInvocationPart(
            tool_name=item.tool_name,
            tool_call_id=item.tool_call_id,
            state="output-available",
            input=item.input,
            output=item.output,
            provider_executed=item.provider_executed,
        )
    if isinstance(item, ToolErrorContent):
        return ToolInvocationPart(
            tool_name=item.tool_name,
            tool_call_id=item.tool_call_id,
            state="output-error",
            input=item.input,
            error_text=describe_tool_error(item.error),
            provider_executed=item.provider_executed,
        )
    if isinstance(item, ToolCallContent):
        # The call is recorded once its result or error arrives.
        return None
    logger.debug(f"Skipping unknown step content item: {type(item).__name__}")
    return None


def normalize_step_content(items: Iterable[StepContent]) -> list[MessagePart]:
    """
    Convert a step's content items into parts, preserving arrival order.

    Returned parts carry no order index; the assembler assigns it.
    """
    parts: list[MessagePart] = []
    for item in items:
        try:
            part = normalize_item(item)
        except Exception as e:
            # e.g. pydantic rejecting a malformed payload
            logger.warning(f"Skipping step content item {type(item).__name__}: {e}")
            continue
        if part is not None:
            parts.append(part)
    return parts
