"""
Document search tool.

Lets the model retrieve passages from the documents the user selected for
the conversation.
"""

from __future__ import annotations

from pydantic import BaseModel, Field

from app.interfaces.document_repository import IDocumentRepository
from app.tools.base import ChatTool

SEARCH_USER_DOCUMENT = "searchUserDocument"


# ===========================================
# Tool Input Models
# ===========================================


class SearchUserDocumentInput(BaseModel):
    """Input for searchUserDocument tool."""

    query: str = Field(..., min_length=1, description="Search query in the language of the documents")


# ===========================================
# Tool Functions
# ===========================================


async def search_user_document(
    user_id: str,
    repo: IDocumentRepository,
    selected_blobs: list[str],
    input_data: SearchUserDocumentInput,
    limit: int = 5,
) -> dict:
    """
    Search the user's selected documents.

    Args:
        user_id: User ID
        repo: Document repository
        selected_blobs: Titles of the selectable documents
        input_data: Search parameters
        limit: Maximum number of passages

    Returns:
        Matching passages with title and page for citation
    """
    chunks = await repo.search(user_id, selected_blobs, input_data.query, limit=limit)
    return {
        "results": [
            {
                "title": chunk.title,
                "page": chunk.page,
                "content": chunk.content,
            }
            for chunk in chunks
        ],
        "count": len(chunks),
    }


# ===========================================
# Tool Definitions
# ===========================================


def search_user_document_tool(
    repo: IDocumentRepository,
    user_id: str,
    selected_blobs: list[str],
    limit: int = 5,
) -> ChatTool:
    """Create tool for searching the selected documents."""
    async def _tool(input_data: dict) -> dict:
        return await search_user_document(
            user_id,
            repo,
            selected_blobs,
            SearchUserDocumentInput(**input_data),
            limit=limit,
        )

    return ChatTool(
        name=SEARCH_USER_DOCUMENT,
        description=(
            "Search the documents the user uploaded and selected for this chat. "
            f"Available documents: {', '.join(selected_blobs)}. "
            "Returns passages with their document title and page number."
        ),
        input_model=SearchUserDocumentInput,
        func=_tool,
    )
