"""
Function tools offered to the chat model.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Awaitable, Callable

from pydantic import BaseModel


@dataclass(frozen=True)
class ChatTool:
    """A callable tool with a pydantic input model."""

    name: str
    description: str
    input_model: type[BaseModel]
    func: Callable[[dict], Awaitable[dict]]

    def schema(self) -> dict[str, Any]:
        """Chat-completions function tool schema."""
        parameters = self.input_model.model_json_schema()
        parameters.pop("title", None)
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": parameters,
            },
        }

    async def run(self, input_data: Any) -> dict:
        if not isinstance(input_data, dict):
            raise TypeError(f"{self.name} expects an object argument")
        return await self.func(input_data)
