"""
Chat model definitions.

Request and stream models for the chat endpoint.
"""

from datetime import datetime
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class UITextPart(BaseModel):
    """Text or reasoning part in client format."""

    model_config = ConfigDict(extra="allow")

    type: Literal["text", "reasoning"]
    text: str = ""


class UIMessage(BaseModel):
    """Message as exchanged with the chat client (parts in client format)."""

    id: Optional[str] = Field(None, max_length=100, description="Client-side message ID")
    role: Literal["user", "assistant", "system"] = Field(..., description="Message role")
    parts: list[dict[str, Any]] = Field(default_factory=list, description="Client message parts")

    def validate_parts(self) -> None:
        """
        Check the parts the service reads text from.

        Other part kinds stay opaque and are filtered on conversion.

        Raises:
            pydantic.ValidationError: If a text or reasoning part is malformed
        """
        for part in self.parts:
            if part.get("type") in ("text", "reasoning"):
                UITextPart.model_validate(part)


class ChatRequest(BaseModel):
    """Request model for chat endpoint."""

    model_config = ConfigDict(populate_by_name=True)

    messages: list[UIMessage] = Field(default_factory=list, description="Conversation so far")
    chat_id: Optional[str] = Field(None, alias="chatId", max_length=100, description="Chat session ID")
    option: Optional[str] = Field(None, description="Selected model ID")
    selected_blobs: list[str] = Field(
        default_factory=list,
        alias="selectedBlobs",
        description="Titles of the documents the assistant may search",
    )


class StreamingChatChunk(BaseModel):
    """Streaming chat response chunk."""

    chunk_type: Literal[
        "start",
        "text",
        "reasoning",
        "source",
        "file",
        "tool_start",
        "tool_end",
        "tool_error",
        "step_finish",
        "done",
        "abort",
        "error",
    ] = Field(..., description="Chunk type")
    content: str = Field("", description="Text content")
    message_id: Optional[str] = Field(None, description="Assistant message ID")
    step: Optional[int] = Field(None, description="Step index")
    tool_name: Optional[str] = Field(None, description="Tool name (tool chunks)")
    tool_call_id: Optional[str] = Field(None, description="Tool call ID (tool chunks)")
    tool_input: Any = Field(None, description="Tool input (tool_start)")
    tool_result: Any = Field(None, description="Tool output (tool_end)")
    part: Optional[dict[str, Any]] = Field(None, description="Client-format part (source/file)")
    finish_reason: Optional[str] = Field(None, description="Finish reason (step_finish/done)")


class ModelOption(BaseModel):
    """Selectable chat model."""

    id: str
    name: str
    provider: str


class ChatHistoryMessage(BaseModel):
    """Stored message rendered for the client."""

    id: str
    role: Literal["user", "assistant"]
    parts: list[dict[str, Any]] = Field(default_factory=list)
    created_at: datetime


class AbortResponse(BaseModel):
    """Result of an abort request."""

    aborted: bool
