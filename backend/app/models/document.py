"""
Document chunk models used by document-grounded retrieval.
"""

from typing import Optional

from pydantic import BaseModel, Field


class DocumentChunk(BaseModel):
    """One searchable chunk of an uploaded document."""

    document_id: str = Field(..., description="Owning document ID")
    title: str = Field(..., description="Document title")
    page: Optional[int] = Field(None, description="Page number (1-based)")
    content: str = Field(..., description="Chunk text")
