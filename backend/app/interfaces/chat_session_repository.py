"""
Chat session repository interface.

Defines the contract for chat history persistence.
Writes are idempotent: messages are upserted by (session_id, message_id)
and parts are appended only when (session_id, message_id, order) is absent.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional

from app.models.chat_session import ChatMessage, ChatMessageCreate, ChatSession
from app.models.message_part import MessagePart


class IChatSessionRepository(ABC):
    """Abstract interface for chat session persistence."""

    @abstractmethod
    async def ensure_session(
        self,
        user_id: str,
        session_id: str,
        title: Optional[str] = None,
    ) -> ChatSession:
        """
        Create the session if absent, otherwise touch it.

        An existing title is only replaced while it is still the default.

        Args:
            user_id: Owner user ID
            session_id: Session ID
            title: Optional session title

        Returns:
            ChatSession
        """
        pass

    @abstractmethod
    async def get_session(self, session_id: str) -> Optional[ChatSession]:
        """
        Get a session by ID regardless of owner.

        Args:
            session_id: Session ID

        Returns:
            ChatSession or None
        """
        pass

    @abstractmethod
    async def upsert_message(self, user_id: str, message: ChatMessageCreate) -> bool:
        """
        Insert the message row if absent; an existing row is left untouched.

        Args:
            user_id: Owner user ID
            message: Message to write (parts are ignored here)

        Returns:
            True when a new row was inserted
        """
        pass

    @abstractmethod
    async def append_parts(
        self,
        session_id: str,
        message_id: str,
        parts: list[MessagePart],
    ) -> int:
        """
        Append parts to a message, skipping orders that already exist.

        Args:
            session_id: Session ID
            message_id: Message ID
            parts: Parts with assigned order indices

        Returns:
            Number of parts actually inserted
        """
        pass

    @abstractmethod
    async def list_sessions(
        self,
        user_id: str,
        limit: int = 50,
        offset: int = 0,
    ) -> list[ChatSession]:
        """
        List chat sessions for a user, most recently updated first.

        Args:
            user_id: Owner user ID
            limit: Max sessions
            offset: Pagination offset

        Returns:
            List of chat sessions
        """
        pass

    @abstractmethod
    async def list_messages(
        self,
        user_id: str,
        session_id: str,
        limit: int = 500,
        offset: int = 0,
    ) -> list[ChatMessage]:
        """
        List messages for a session with their parts in order.

        Args:
            user_id: Owner user ID
            session_id: Session ID
            limit: Max messages
            offset: Pagination offset

        Returns:
            List of chat messages
        """
        pass

    @abstractmethod
    async def rename_session(self, user_id: str, session_id: str, title: str) -> ChatSession:
        """
        Rename a session.

        Raises:
            NotFoundError: If the user has no such session
        """
        pass

    @abstractmethod
    async def delete_session(self, user_id: str, session_id: str) -> bool:
        """
        Delete a session with all its messages and parts.

        Returns:
            True if the session existed
        """
        pass
