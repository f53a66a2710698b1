"""
Step content and provider stream models.

A step is one round of model generation (plus tool execution) within a chat
turn. Steps are never persisted; their content items are normalized into
message parts.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional, Union


# ===========================================
# Step content items
# ===========================================


@dataclass(frozen=True)
class TextContent:
    text: str
    provider_metadata: Optional[dict[str, Any]] = None


@dataclass(frozen=True)
class ReasoningContent:
    text: str
    provider_metadata: Optional[dict[str, Any]] = None


@dataclass(frozen=True)
class SourceContent:
    """Citation emitted by the provider.

    Providers do not tag URL and document sources differently; the shape
    (which fields are present) decides the kind.
    """

    id: str
    url: Optional[str] = None
    title: Optional[str] = None
    media_type: Optional[str] = None
    filename: Optional[str] = None
    provider_metadata: Optional[dict[str, Any]] = None


@dataclass(frozen=True)
class FileContent:
    media_type: str
    base64: Optional[str] = None
    provider_metadata: Optional[dict[str, Any]] = None


@dataclass(frozen=True)
class ToolCallContent:
    tool_call_id: str
    tool_name: str
    input: Any = None


@dataclass(frozen=True)
class ToolResultContent:
    tool_call_id: str
    tool_name: str
    input: Any = None
    output: Any = None
    provider_executed: bool = False


@dataclass(frozen=True)
class ToolErrorContent:
    tool_call_id: str
    tool_name: str
    input: Any = None
    error: Any = None
    provider_executed: bool = False


StepContent = Union[
    TextContent,
    ReasoningContent,
    SourceContent,
    FileContent,
    ToolCallContent,
    ToolResultContent,
    ToolErrorContent,
]


@dataclass
class Step:
    """Content produced by one generation round, in arrival order."""

    index: int
    content: list[StepContent] = field(default_factory=list)
    finish_reason: Optional[str] = None
    # Token usage reported by the provider for this model call
    usage: Optional[dict[str, Any]] = None

    @property
    def tool_calls(self) -> list[ToolCallContent]:
        return [item for item in self.content if isinstance(item, ToolCallContent)]


# ===========================================
# Provider stream deltas
# ===========================================


@dataclass(frozen=True)
class TextDelta:
    text: str


@dataclass(frozen=True)
class ReasoningDelta:
    text: str


@dataclass(frozen=True)
class FinishDelta:
    finish_reason: Optional[str] = None
    usage: Optional[dict[str, Any]] = None


# Sources, files and completed tool calls are yielded as their step content item.
ProviderDelta = Union[
    TextDelta,
    ReasoningDelta,
    SourceContent,
    FileContent,
    ToolCallContent,
    FinishDelta,
]
