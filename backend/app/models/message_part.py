"""
Message part models.

A chat message is an ordered sequence of typed parts. Parts are appended
with a strictly increasing ``order`` index and never rewritten once stored.
"""

from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, Field


class MessagePartBase(BaseModel):
    """Fields shared by every part kind."""

    order: Optional[int] = Field(None, ge=0, description="Position within the message")


class TextPart(MessagePartBase):
    type: Literal["text"] = "text"
    text: str = ""
    provider_metadata: Optional[dict[str, Any]] = None


class ReasoningPart(MessagePartBase):
    type: Literal["reasoning"] = "reasoning"
    text: str = ""
    provider_metadata: Optional[dict[str, Any]] = None


class SourceUrlPart(MessagePartBase):
    type: Literal["source-url"] = "source-url"
    source_id: str
    url: str
    title: Optional[str] = None
    provider_metadata: Optional[dict[str, Any]] = None


class SourceDocumentPart(MessagePartBase):
    type: Literal["source-document"] = "source-document"
    source_id: str
    media_type: str
    title: str = ""
    filename: Optional[str] = None
    provider_metadata: Optional[dict[str, Any]] = None


class FilePart(MessagePartBase):
    """Generated or attached file.

    ``url`` is a data URI when the payload was available inline; ``None``
    means the part records file metadata only.
    """

    type: Literal["file"] = "file"
    media_type: str
    url: Optional[str] = None
    filename: Optional[str] = None
    provider_metadata: Optional[dict[str, Any]] = None


class ToolInvocationPart(MessagePartBase):
    type: Literal["tool-invocation"] = "tool-invocation"
    tool_name: str
    tool_call_id: str
    state: Literal["output-available", "output-error"]
    input: Any = None
    output: Any = None
    error_text: Optional[str] = None
    provider_executed: Optional[bool] = None


MessagePart = Annotated[
    Union[
        TextPart,
        ReasoningPart,
        SourceUrlPart,
        SourceDocumentPart,
        FilePart,
        ToolInvocationPart,
    ],
    Field(discriminator="type"),
]
