"""
Unit tests for client/stored/model message conversion.
"""

import pytest

from app.models.chat import UIMessage
from app.models.message_part import (
    FilePart,
    SourceUrlPart,
    TextPart,
    ToolInvocationPart,
)
from app.services.message_conversion import (
    part_to_ui,
    to_model_messages,
    ui_part_to_part,
    ui_parts_to_parts,
)


class TestPartToUI:
    def test_tool_part_uses_tool_name_in_type(self):
        part = ToolInvocationPart(
            order=1,
            tool_name="searchUserDocument",
            tool_call_id="c1",
            state="output-error",
            input={"query": "x"},
            error_text="Tool error occurred",
        )

        assert part_to_ui(part) == {
            "type": "tool-searchUserDocument",
            "toolCallId": "c1",
            "state": "output-error",
            "input": {"query": "x"},
            "errorText": "Tool error occurred",
        }

    def test_file_without_payload(self):
        part = FilePart(order=0, media_type="image/*", provider_metadata={"url": "https://x/y.png"})

        assert part_to_ui(part) == {
            "type": "file",
            "mediaType": "image/*",
            "url": None,
            "providerMetadata": {"url": "https://x/y.png"},
        }

    def test_unknown_part_raises(self):
        with pytest.raises(TypeError):
            part_to_ui(object())


class TestUIPartToPart:
    def test_skips_markers_and_pending_tools(self):
        parts = ui_parts_to_parts(
            [
                {"type": "step-start"},
                {"type": "text", "text": "hi"},
                {"type": "tool-searchUserDocument", "toolCallId": "c1", "state": "input-available"},
                {"type": "source-url", "sourceId": "s1", "url": "https://example.com"},
            ]
        )

        assert parts == [
            TextPart(text="hi"),
            SourceUrlPart(source_id="s1", url="https://example.com"),
        ]

    def test_dynamic_tool(self):
        part = ui_part_to_part(
            {
                "type": "dynamic-tool",
                "toolName": "lookup",
                "toolCallId": "c9",
                "state": "output-available",
                "input": {},
                "output": {"ok": True},
            }
        )

        assert part.tool_name == "lookup"
        assert part.output == {"ok": True}


class TestToModelMessages:
    def test_system_prompt_and_user_images(self):
        messages = [
            UIMessage(
                role="user",
                parts=[
                    {"type": "text", "text": "What is this?"},
                    {"type": "file", "mediaType": "image/png", "url": "data:image/png;base64,AAA"},
                ],
            )
        ]

        converted = to_model_messages(messages, system_prompt="Be brief.")

        assert converted[0] == {"role": "system", "content": "Be brief."}
        assert converted[1]["content"] == [
            {"type": "text", "text": "What is this?"},
            {"type": "image_url", "image_url": {"url": "data:image/png;base64,AAA"}},
        ]

    def test_non_image_file_becomes_note(self):
        messages = [
            UIMessage(
                role="user",
                parts=[
                    {"type": "text", "text": "Summarize"},
                    {"type": "file", "mediaType": "application/pdf", "url": "blob:1", "filename": "plan.pdf"},
                ],
            )
        ]

        assert to_model_messages(messages)[0]["content"] == "Summarize\n[Attached file: plan.pdf]"

    def test_assistant_tool_exchange_is_replayed(self):
        messages = [
            UIMessage(role="user", parts=[{"type": "text", "text": "Find it"}]),
            UIMessage(
                role="assistant",
                parts=[
                    {"type": "text", "text": "Searching documents..."},
                    {
                        "type": "tool-searchUserDocument",
                        "toolCallId": "c1",
                        "state": "output-available",
                        "input": {"query": "it"},
                        "output": {"count": 0},
                    },
                    {"type": "text", "text": "Nothing found."},
                ],
            ),
        ]

        converted = to_model_messages(messages)

        assert [m["role"] for m in converted] == ["user", "assistant", "tool", "assistant"]
        assert converted[1]["content"] == "Searching documents..."
        assert converted[1]["tool_calls"][0]["function"] == {
            "name": "searchUserDocument",
            "arguments": '{"query": "it"}',
        }
        assert converted[2] == {"role": "tool", "tool_call_id": "c1", "content": '{"count": 0}'}
        assert converted[3] == {"role": "assistant", "content": "Nothing found."}
