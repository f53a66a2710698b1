"""
SQLite implementation of Document repository.

Keyword search over stored document chunks, restricted to the documents the
user selected for the conversation.
"""

from __future__ import annotations

import re
from uuid import uuid4

from sqlalchemy import and_, or_, select

from app.infrastructure.local.database import DocumentChunkORM, get_session_factory
from app.interfaces.document_repository import IDocumentRepository
from app.models.document import DocumentChunk

_TERM_PATTERN = re.compile(r"\w+", re.UNICODE)
_MIN_TERM_LENGTH = 2


def _query_terms(query: str) -> list[str]:
    terms = [t.lower() for t in _TERM_PATTERN.findall(query or "")]
    return [t for t in dict.fromkeys(terms) if len(t) >= _MIN_TERM_LENGTH]


class SqliteDocumentRepository(IDocumentRepository):
    """SQLite implementation of document chunk retrieval."""

    def __init__(self, session_factory=None):
        self._session_factory = session_factory or get_session_factory()

    def _orm_to_model(self, orm: DocumentChunkORM) -> DocumentChunk:
        return DocumentChunk(
            document_id=orm.document_id,
            title=orm.title,
            page=orm.page,
            content=orm.content,
        )

    async def search(
        self,
        user_id: str,
        titles: list[str],
        query: str,
        limit: int = 5,
    ) -> list[DocumentChunk]:
        """Rank chunks by how many query terms they contain."""
        terms = _query_terms(query)
        if not titles or not terms:
            return []

        async with self._session_factory() as session:
            result = await session.execute(
                select(DocumentChunkORM).where(
                    and_(
                        DocumentChunkORM.user_id == user_id,
                        DocumentChunkORM.title.in_(titles),
                        or_(*[DocumentChunkORM.content.ilike(f"%{term}%") for term in terms]),
                    )
                )
            )
            candidates = result.scalars().all()

        def score(orm: DocumentChunkORM) -> int:
            text = orm.content.lower()
            return sum(text.count(term) for term in terms)

        ranked = sorted(candidates, key=lambda orm: (-score(orm), orm.title, orm.page or 0))
        return [self._orm_to_model(orm) for orm in ranked[:limit]]

    async def add_chunks(self, user_id: str, chunks: list[DocumentChunk]) -> int:
        """Store document chunks."""
        async with self._session_factory() as session:
            for chunk in chunks:
                session.add(
                    DocumentChunkORM(
                        id=str(uuid4()),
                        user_id=user_id,
                        document_id=chunk.document_id,
                        title=chunk.title,
                        page=chunk.page,
                        content=chunk.content,
                    )
                )
            await session.commit()
        return len(chunks)
