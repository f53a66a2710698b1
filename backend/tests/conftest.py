"""
Shared fixtures: a file-backed SQLite database per test.
"""

import pytest
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import sessionmaker

from app.infrastructure.local.chat_session_repository import SqliteChatSessionRepository
from app.infrastructure.local.database import Base, create_engine_for_url
from app.infrastructure.local.document_repository import SqliteDocumentRepository


@pytest.fixture
async def session_factory(tmp_path):
    """Create a fresh database with all tables."""
    # A file (not :memory:) so that independent sessions see the same data
    engine = create_engine_for_url(f"sqlite+aiosqlite:///{tmp_path / 'chat.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()


@pytest.fixture
def chat_repo(session_factory):
    return SqliteChatSessionRepository(session_factory)


@pytest.fixture
def document_repo(session_factory):
    return SqliteDocumentRepository(session_factory)
