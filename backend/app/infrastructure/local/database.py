"""
Database configuration and ORM models.

This module defines the SQLAlchemy ORM models and database initialization.
"""

from datetime import datetime
from functools import lru_cache
from uuid import uuid4

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    ForeignKeyConstraint,
    Integer,
    PrimaryKeyConstraint,
    String,
    Text,
    UniqueConstraint,
    event,
)
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine
from sqlalchemy.orm import DeclarativeBase, sessionmaker

from app.core.config import get_settings


class Base(DeclarativeBase):
    """SQLAlchemy declarative base."""

    pass


# ===========================================
# ORM Models
# ===========================================


class ChatSessionORM(Base):
    """Chat session ORM model."""

    __tablename__ = "chat_sessions"

    session_id = Column(String(100), primary_key=True)
    user_id = Column(String(255), nullable=False, index=True)
    title = Column(String(200), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class ChatMessageORM(Base):
    """Chat message ORM model. One row per logical turn message."""

    __tablename__ = "chat_messages"
    __table_args__ = (PrimaryKeyConstraint("session_id", "id"),)

    session_id = Column(
        String(100),
        ForeignKey("chat_sessions.session_id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    id = Column(String(100), nullable=False)
    user_id = Column(String(255), nullable=False, index=True)
    role = Column(String(20), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, index=True)


class MessagePartORM(Base):
    """Message part ORM model. Append-only, unique per (message, order)."""

    __tablename__ = "message_parts"
    __table_args__ = (
        UniqueConstraint("session_id", "message_id", "order", name="uq_message_parts_order"),
        ForeignKeyConstraint(
            ["session_id", "message_id"],
            ["chat_messages.session_id", "chat_messages.id"],
            ondelete="CASCADE",
        ),
    )

    id = Column(String(36), primary_key=True, default=lambda: str(uuid4()))
    session_id = Column(String(100), nullable=False, index=True)
    message_id = Column(String(100), nullable=False, index=True)
    order = Column(Integer, nullable=False)
    type = Column(String(30), nullable=False)

    # text / reasoning
    text = Column(Text, nullable=True)

    # source-url / source-document / file
    source_id = Column(String(255), nullable=True)
    url = Column(Text, nullable=True)
    title = Column(String(500), nullable=True)
    media_type = Column(String(100), nullable=True)
    filename = Column(String(500), nullable=True)

    # tool-invocation
    tool_name = Column(String(100), nullable=True)
    tool_call_id = Column(String(100), nullable=True)
    tool_state = Column(String(20), nullable=True)
    tool_input = Column(JSON, nullable=True)
    tool_output = Column(JSON, nullable=True)
    tool_error_text = Column(Text, nullable=True)
    provider_executed = Column(Boolean, nullable=True)

    provider_metadata = Column(JSON, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)


class DocumentChunkORM(Base):
    """Searchable chunk of a user document."""

    __tablename__ = "document_chunks"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid4()))
    user_id = Column(String(255), nullable=False, index=True)
    document_id = Column(String(36), nullable=False, index=True)
    title = Column(String(500), nullable=False, index=True)
    page = Column(Integer, nullable=True)
    content = Column(Text, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)


# ===========================================
# Database Session Management
# ===========================================


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def create_engine_for_url(database_url: str, echo: bool = False) -> AsyncEngine:
    """Create an async engine; SQLite connections get foreign keys enabled."""
    engine = create_async_engine(database_url, echo=echo)
    if engine.dialect.name == "sqlite":
        event.listen(engine.sync_engine, "connect", _enable_sqlite_foreign_keys)
    return engine


@lru_cache()
def get_engine() -> AsyncEngine:
    """Get async engine instance."""
    settings = get_settings()
    return create_engine_for_url(settings.DATABASE_URL, echo=settings.DEBUG)


def get_session_factory():
    """Get async session factory."""
    engine = get_engine()
    return sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def init_db():
    """Initialize database tables."""
    engine = get_engine()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
