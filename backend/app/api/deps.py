"""
Dependency injection for API endpoints.

This module provides FastAPI dependencies that inject the correct
infrastructure implementations based on environment configuration.
"""

from functools import lru_cache
from typing import Annotated

from fastapi import Depends, Header, HTTPException, status

from app.core.config import get_settings
from app.interfaces.auth_provider import IAuthProvider, User
from app.interfaces.chat_session_repository import IChatSessionRepository
from app.interfaces.document_repository import IDocumentRepository
from app.interfaces.llm_provider import ILLMProvider
from app.services.chat_stream_service import ChatStreamService


# ===========================================
# Repository Dependencies
# ===========================================


@lru_cache()
def get_chat_session_repository() -> IChatSessionRepository:
    """Get chat session repository instance."""
    from app.infrastructure.local.chat_session_repository import SqliteChatSessionRepository
    return SqliteChatSessionRepository()


@lru_cache()
def get_document_repository() -> IDocumentRepository:
    """Get document repository instance."""
    from app.infrastructure.local.document_repository import SqliteDocumentRepository
    return SqliteDocumentRepository()


# ===========================================
# Provider Dependencies
# ===========================================


@lru_cache()
def get_llm_provider() -> ILLMProvider:
    """
    Get LLM provider instance for the default chat model.

    Requests select other models through ILLMProvider.with_model().
    """
    settings = get_settings()
    from app.infrastructure.local.litellm_provider import LiteLLMProvider
    return LiteLLMProvider(settings.DEFAULT_CHAT_MODEL, settings)


@lru_cache()
def get_auth_provider() -> IAuthProvider:
    """Get auth provider instance."""
    settings = get_settings()
    if settings.AUTH_PROVIDER == "local":
        from app.infrastructure.auth.local_auth import LocalAuthProvider

        return LocalAuthProvider(settings)

    from app.infrastructure.local.mock_auth import MockAuthProvider
    return MockAuthProvider(enabled=True)


# ===========================================
# Service Dependencies
# ===========================================


@lru_cache()
def get_chat_stream_service() -> ChatStreamService:
    """
    Get the chat stream service.

    A single instance tracks running turns so they can be aborted.
    """
    return ChatStreamService(
        llm_provider=get_llm_provider(),
        chat_repo=get_chat_session_repository(),
        document_repo=get_document_repository(),
        settings=get_settings(),
    )


# ===========================================
# Authentication
# ===========================================


async def get_current_user(
    authorization: Annotated[str | None, Header()] = None,
    auth_provider: IAuthProvider = Depends(get_auth_provider),
) -> User:
    """
    Get current authenticated user.

    With auth disabled (mock provider), returns the development user.
    """
    if not auth_provider.is_enabled():
        # Mock user for development
        return User(id="dev_user", email="dev@example.com", display_name="Developer")

    if not authorization:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authorization header required",
        )

    # Extract token from "Bearer <token>"
    try:
        scheme, token = authorization.split()
        if scheme.lower() != "bearer":
            raise ValueError("Invalid scheme")
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authorization header format",
        )

    try:
        return await auth_provider.verify_token(token)
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(e),
        )


# ===========================================
# Type Aliases for Dependency Injection
# ===========================================

ChatRepo = Annotated[IChatSessionRepository, Depends(get_chat_session_repository)]
ChatStream = Annotated[ChatStreamService, Depends(get_chat_stream_service)]
CurrentUser = Annotated[User, Depends(get_current_user)]
