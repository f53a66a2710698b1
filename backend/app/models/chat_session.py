"""
Chat session and message models.

These models persist chat history for session restore.
"""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

from app.models.message_part import MessagePart


class ChatSessionBase(BaseModel):
    """Base chat session fields."""

    session_id: str = Field(..., max_length=100, description="Chat session ID")
    title: str = Field("New Chat", max_length=200, description="Session title")


class ChatSession(ChatSessionBase):
    """Chat session model."""

    user_id: str = Field(..., description="Owner user ID")
    created_at: datetime
    updated_at: datetime


class ChatSessionRename(BaseModel):
    """Schema for renaming a chat session."""

    title: str = Field(..., min_length=1, max_length=200, description="New session title")


class ChatMessageBase(BaseModel):
    """Base chat message fields."""

    id: str = Field(..., max_length=100, description="Stable message ID")
    session_id: str = Field(..., max_length=100, description="Chat session ID")
    role: Literal["user", "assistant"] = Field(..., description="Message role")
    parts: list[MessagePart] = Field(default_factory=list, description="Ordered message parts")


class ChatMessageCreate(ChatMessageBase):
    """Schema for writing a chat message (row plus parts to append)."""

    pass


class ChatMessage(ChatMessageBase):
    """Chat message model."""

    user_id: str = Field(..., description="Owner user ID")
    created_at: datetime
