"""
LLM provider interface.

Defines the contract for LLM (Large Language Model) access.
Implementations: LiteLLM (OpenAI, Anthropic, Gemini, proxies)
"""

from abc import ABC, abstractmethod
from typing import Any, AsyncIterator, Optional

from app.models.step import ProviderDelta


class ILLMProvider(ABC):
    """Abstract interface for LLM providers."""

    @abstractmethod
    def get_model_id(self) -> str:
        """
        Get the selectable model identifier (e.g. "gpt-5").

        Returns:
            Model identifier
        """
        pass

    @abstractmethod
    def get_model_name(self) -> str:
        """
        Get the human-readable model name.

        Returns:
            Model name string for logging/display
        """
        pass

    @abstractmethod
    def stream_completion(
        self,
        messages: list[dict[str, Any]],
        tools: Optional[list[dict[str, Any]]] = None,
    ) -> AsyncIterator[ProviderDelta]:
        """
        Run one model call and stream its output.

        Yields text/reasoning deltas, sources and files as they arrive,
        then every completed tool call, then a single FinishDelta.

        Args:
            messages: Chat-completions style messages
            tools: Function tool schemas offered to the model

        Raises:
            LLMError: If the provider call fails
        """
        pass

    def with_model(self, model_id: str) -> "ILLMProvider":
        """
        Create a new provider instance using a different model.

        Returns a new ILLMProvider configured for the given model_id.
        Default implementation returns self (no override).
        """
        return self
