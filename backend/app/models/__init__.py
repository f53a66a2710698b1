"""Pydantic models (schemas) for the application."""

from app.models.chat import ChatRequest, ModelOption, StreamingChatChunk, UIMessage
from app.models.chat_session import ChatMessage, ChatMessageCreate, ChatSession
from app.models.document import DocumentChunk
from app.models.message_part import (
    FilePart,
    MessagePart,
    ReasoningPart,
    SourceDocumentPart,
    SourceUrlPart,
    TextPart,
    ToolInvocationPart,
)

__all__ = [
    # Chat
    "ChatRequest",
    "ModelOption",
    "StreamingChatChunk",
    "UIMessage",
    # Chat session
    "ChatSession",
    "ChatMessage",
    "ChatMessageCreate",
    # Message parts
    "MessagePart",
    "TextPart",
    "ReasoningPart",
    "SourceUrlPart",
    "SourceDocumentPart",
    "FilePart",
    "ToolInvocationPart",
    # Documents
    "DocumentChunk",
]
