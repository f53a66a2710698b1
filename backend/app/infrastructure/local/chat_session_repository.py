"""
SQLite implementation of Chat session repository.

Message rows and parts are written with INSERT ... ON CONFLICT DO NOTHING so
that redelivering the same step never duplicates data. The same statements
work on PostgreSQL.
"""

from __future__ import annotations

import json
from collections import defaultdict
from datetime import datetime
from typing import Any, Optional
from uuid import uuid4

from sqlalchemy import and_, delete, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError

from app.core.exceptions import InfrastructureError, NotFoundError, ValidationError
from app.infrastructure.local.database import (
    ChatMessageORM,
    ChatSessionORM,
    MessagePartORM,
    get_session_factory,
)
from app.interfaces.chat_session_repository import IChatSessionRepository
from app.models.chat_session import ChatMessage, ChatMessageCreate, ChatSession
from app.models.message_part import (
    FilePart,
    MessagePart,
    ReasoningPart,
    SourceDocumentPart,
    SourceUrlPart,
    TextPart,
    ToolInvocationPart,
)

DEFAULT_TITLE = "New Chat"


def _jsonable(value: Any) -> Any:
    """Coerce a payload into plain JSON types for JSON columns."""
    if value is None:
        return None
    return json.loads(json.dumps(value, ensure_ascii=False, default=str))


def _insert(session, model):
    """Dialect-specific INSERT supporting on_conflict_do_nothing."""
    if session.get_bind().dialect.name == "postgresql":
        return pg_insert(model)
    return sqlite_insert(model)


def _part_to_row(session_id: str, message_id: str, part: MessagePart) -> dict[str, Any]:
    """Flatten a part into message_parts column values."""
    if part.order is None:
        raise ValidationError(f"Part of message {message_id} has no order index")

    row: dict[str, Any] = {
        "id": str(uuid4()),
        "session_id": session_id,
        "message_id": message_id,
        "order": part.order,
        "type": part.type,
        "created_at": datetime.utcnow(),
    }
    if isinstance(part, (TextPart, ReasoningPart)):
        row["text"] = part.text
        row["provider_metadata"] = _jsonable(part.provider_metadata)
    elif isinstance(part, SourceUrlPart):
        row.update(
            source_id=part.source_id,
            url=part.url,
            title=part.title,
            provider_metadata=_jsonable(part.provider_metadata),
        )
    elif isinstance(part, SourceDocumentPart):
        row.update(
            source_id=part.source_id,
            media_type=part.media_type,
            title=part.title,
            filename=part.filename,
            provider_metadata=_jsonable(part.provider_metadata),
        )
    elif isinstance(part, FilePart):
        row.update(
            url=part.url,
            media_type=part.media_type,
            filename=part.filename,
            provider_metadata=_jsonable(part.provider_metadata),
        )
    elif isinstance(part, ToolInvocationPart):
        row.update(
            tool_name=part.tool_name,
            tool_call_id=part.tool_call_id,
            tool_state=part.state,
            tool_input=_jsonable(part.input),
            tool_output=_jsonable(part.output),
            tool_error_text=part.error_text,
            provider_executed=part.provider_executed,
        )
    else:
        raise ValidationError(f"Unsupported part type: {type(part).__name__}")
    return row


def _row_to_part(orm: MessagePartORM) -> Optional[MessagePart]:
    """Rebuild a part from its stored row. Unknown types yield None."""
    if orm.type == "text":
        return TextPart(order=orm.order, text=orm.text or "", provider_metadata=orm.provider_metadata)
    if orm.type == "reasoning":
        return ReasoningPart(order=orm.order, text=orm.text or "", provider_metadata=orm.provider_metadata)
    if orm.type == "source-url":
        return SourceUrlPart(
            order=orm.order,
            source_id=orm.source_id or "",
            url=orm.url or "",
            title=orm.title,
            provider_metadata=orm.provider_metadata,
        )
    if orm.type == "source-document":
        return SourceDocumentPart(
            order=orm.order,
            source_id=orm.source_id or "",
            media_type=orm.media_type or "",
            title=orm.title or "",
            filename=orm.filename,
            provider_metadata=orm.provider_metadata,
        )
    if orm.type == "file":
        return FilePart(
            order=orm.order,
            url=orm.url,
            media_type=orm.media_type or "application/octet-stream",
            filename=orm.filename,
            provider_metadata=orm.provider_metadata,
        )
    if orm.type == "tool-invocation":
        return ToolInvocationPart(
            order=orm.order,
            tool_name=orm.tool_name or "",
            tool_call_id=orm.tool_call_id or "",
            state=orm.tool_state,
            input=orm.tool_input,
            output=orm.tool_output,
            error_text=orm.tool_error_text,
            provider_executed=orm.provider_executed,
        )
    return None


class SqliteChatSessionRepository(IChatSessionRepository):
    """SQLite implementation of chat session repository."""

    def __init__(self, session_factory=None):
        self._session_factory = session_factory or get_session_factory()

    def _session_orm_to_model(self, orm: ChatSessionORM) -> ChatSession:
        """Convert session ORM object to Pydantic model."""
        return ChatSession(
            session_id=orm.session_id,
            user_id=orm.user_id,
            title=orm.title or DEFAULT_TITLE,
            created_at=orm.created_at,
            updated_at=orm.updated_at,
        )

    def _message_orm_to_model(
        self,
        orm: ChatMessageORM,
        parts: list[MessagePartORM],
    ) -> ChatMessage:
        """Convert message ORM object (and its part rows) to Pydantic model."""
        converted = [_row_to_part(part) for part in parts]
        return ChatMessage(
            id=orm.id,
            session_id=orm.session_id,
            user_id=orm.user_id,
            role=orm.role,
            parts=[part for part in converted if part is not None],
            created_at=orm.created_at,
        )

    async def ensure_session(
        self,
        user_id: str,
        session_id: str,
        title: Optional[str] = None,
    ) -> ChatSession:
        """Create the session if absent, otherwise touch it."""
        now = datetime.utcnow()
        try:
            async with self._session_factory() as session:
                stmt = (
                    _insert(session, ChatSessionORM)
                    .values(
                        session_id=session_id,
                        user_id=user_id,
                        title=title or DEFAULT_TITLE,
                        created_at=now,
                        updated_at=now,
                    )
                    .on_conflict_do_nothing(index_elements=["session_id"])
                )
                await session.execute(stmt)

                result = await session.execute(
                    select(ChatSessionORM).where(ChatSessionORM.session_id == session_id)
                )
                orm = result.scalar_one()
                if orm.user_id != user_id:
                    await session.rollback()
                    raise NotFoundError(f"Chat session {session_id} not found")

                orm.updated_at = now
                if title and (not orm.title or orm.title == DEFAULT_TITLE):
                    orm.title = title

                await session.commit()
                await session.refresh(orm)
                return self._session_orm_to_model(orm)
        except SQLAlchemyError as e:
            raise InfrastructureError(f"Failed to ensure chat session {session_id}: {e}") from e

    async def get_session(self, session_id: str) -> Optional[ChatSession]:
        """Get a session by ID regardless of owner."""
        async with self._session_factory() as session:
            result = await session.execute(
                select(ChatSessionORM).where(ChatSessionORM.session_id == session_id)
            )
            orm = result.scalar_one_or_none()
            return self._session_orm_to_model(orm) if orm else None

    async def upsert_message(self, user_id: str, message: ChatMessageCreate) -> bool:
        """Insert the message row if absent."""
        try:
            async with self._session_factory() as session:
                stmt = (
                    _insert(session, ChatMessageORM)
                    .values(
                        session_id=message.session_id,
                        id=message.id,
                        user_id=user_id,
                        role=message.role,
                        created_at=datetime.utcnow(),
                    )
                    .on_conflict_do_nothing(index_elements=["session_id", "id"])
                )
                result = await session.execute(stmt)
                await session.commit()
                return result.rowcount == 1
        except SQLAlchemyError as e:
            raise InfrastructureError(f"Failed to upsert message {message.id}: {e}") from e

    async def append_parts(
        self,
        session_id: str,
        message_id: str,
        parts: list[MessagePart],
    ) -> int:
        """Append parts, skipping (message, order) keys that already exist."""
        if not parts:
            return 0
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    select(MessagePartORM.order).where(
                        and_(
                            MessagePartORM.session_id == session_id,
                            MessagePartORM.message_id == message_id,
                        )
                    )
                )
                existing = set(result.scalars().all())
                rows = [
                    _part_to_row(session_id, message_id, part)
                    for part in parts
                    if part.order not in existing
                ]
                if not rows:
                    return 0

                # A concurrent writer may have inserted the same order meanwhile.
                stmt = _insert(session, MessagePartORM).on_conflict_do_nothing(
                    index_elements=["session_id", "message_id", "order"]
                )
                await session.execute(stmt, rows)
                await session.commit()
                return len(rows)
        except SQLAlchemyError as e:
            raise InfrastructureError(
                f"Failed to append parts to message {message_id}: {e}"
            ) from e

    async def list_sessions(
        self,
        user_id: str,
        limit: int = 50,
        offset: int = 0,
    ) -> list[ChatSession]:
        """List chat sessions for a user."""
        async with self._session_factory() as session:
            query = (
                select(ChatSessionORM)
                .where(ChatSessionORM.user_id == user_id)
                .order_by(ChatSessionORM.updated_at.desc())
                .limit(limit)
                .offset(offset)
            )
            result = await session.execute(query)
            return [self._session_orm_to_model(orm) for orm in result.scalars().all()]

    async def list_messages(
        self,
        user_id: str,
        session_id: str,
        limit: int = 500,
        offset: int = 0,
    ) -> list[ChatMessage]:
        """List messages for a session."""
        async with self._session_factory() as session:
            query = (
                select(ChatMessageORM)
                .where(
                    and_(
                        ChatMessageORM.session_id == session_id,
                        ChatMessageORM.user_id == user_id,
                    )
                )
                .order_by(ChatMessageORM.created_at.asc())
                .limit(limit)
                .offset(offset)
            )
            result = await session.execute(query)
            messages = result.scalars().all()
            if not messages:
                return []

            part_result = await session.execute(
                select(MessagePartORM)
                .where(
                    and_(
                        MessagePartORM.session_id == session_id,
                        MessagePartORM.message_id.in_([m.id for m in messages]),
                    )
                )
                .order_by(MessagePartORM.message_id, MessagePartORM.order.asc())
            )
            parts_by_message: dict[str, list[MessagePartORM]] = defaultdict(list)
            for part in part_result.scalars().all():
                parts_by_message[part.message_id].append(part)

            return [
                self._message_orm_to_model(orm, parts_by_message.get(orm.id, []))
                for orm in messages
            ]

    async def rename_session(self, user_id: str, session_id: str, title: str) -> ChatSession:
        """Rename a session owned by the user."""
        async with self._session_factory() as session:
            result = await session.execute(
                select(ChatSessionORM).where(
                    and_(
                        ChatSessionORM.session_id == session_id,
                        ChatSessionORM.user_id == user_id,
                    )
                )
            )
            orm = result.scalar_one_or_none()
            if not orm:
                raise NotFoundError(f"Chat session {session_id} not found")

            orm.title = title
            orm.updated_at = datetime.utcnow()
            await session.commit()
            await session.refresh(orm)
            return self._session_orm_to_model(orm)

    async def delete_session(self, user_id: str, session_id: str) -> bool:
        """Delete a session and everything it owns."""
        async with self._session_factory() as session:
            result = await session.execute(
                select(ChatSessionORM).where(
                    and_(
                        ChatSessionORM.session_id == session_id,
                        ChatSessionORM.user_id == user_id,
                    )
                )
            )
            orm = result.scalar_one_or_none()
            if not orm:
                return False

            await session.execute(
                delete(MessagePartORM).where(MessagePartORM.session_id == session_id)
            )
            await session.execute(
                delete(ChatMessageORM).where(ChatMessageORM.session_id == session_id)
            )
            await session.delete(orm)
            await session.commit()
            return True
