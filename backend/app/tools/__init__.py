"""Function tools offered to the chat model."""

from app.tools.base import ChatTool
from app.tools.document_tools import SEARCH_USER_DOCUMENT, search_user_document_tool

__all__ = [
    "ChatTool",
    "SEARCH_USER_DOCUMENT",
    "search_user_document_tool",
]
