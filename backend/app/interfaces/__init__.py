"""Abstract interfaces for infrastructure abstraction."""

from app.interfaces.auth_provider import IAuthProvider
from app.interfaces.chat_session_repository import IChatSessionRepository
from app.interfaces.document_repository import IDocumentRepository
from app.interfaces.llm_provider import ILLMProvider

__all__ = [
    "IAuthProvider",
    "IChatSessionRepository",
    "IDocumentRepository",
    "ILLMProvider",
]
