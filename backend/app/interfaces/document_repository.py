"""
Document repository interface.

Defines the contract for searching the user's uploaded documents.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from app.models.document import DocumentChunk


class IDocumentRepository(ABC):
    """Abstract interface for document chunk retrieval."""

    @abstractmethod
    async def search(
        self,
        user_id: str,
        titles: list[str],
        query: str,
        limit: int = 5,
    ) -> list[DocumentChunk]:
        """
        Search chunks of the given documents.

        Args:
            user_id: Owner user ID
            titles: Document titles the search is restricted to
            query: Free-text query
            limit: Max chunks

        Returns:
            Matching chunks, best match first
        """
        pass

    @abstractmethod
    async def add_chunks(self, user_id: str, chunks: list[DocumentChunk]) -> int:
        """
        Store document chunks.

        Returns:
            Number of chunks stored
        """
        pass
