"""
Custom exceptions for the application.
"""

from typing import Any, Optional


class ChatServiceError(Exception):
    """Base exception for the chat service."""

    def __init__(self, message: str, details: Optional[Any] = None):
        self.message = message
        self.details = details
        super().__init__(message)


class NotFoundError(ChatServiceError):
    """Resource not found."""

    pass


class ValidationError(ChatServiceError):
    """Validation error."""

    pass


class LLMError(ChatServiceError):
    """LLM-related error."""

    pass


class ToolExecutionError(ChatServiceError):
    """A tool requested by the model could not be executed."""

    def __init__(self, message: str, tool_name: str):
        super().__init__(message, details={"tool_name": tool_name})
        self.tool_name = tool_name


class InfrastructureError(ChatServiceError):
    """Infrastructure-related error (DB, external services, etc.)."""

    pass
