"""
Unit tests for the chat stream service.

A scripted provider replays fixed steps; persistence goes to a real SQLite
database so the stored result of a whole turn can be checked.
"""

import asyncio
import logging
from typing import Any, AsyncIterator, Optional
from unittest.mock import AsyncMock

import pytest

from app.core.config import Settings
from app.core.exceptions import InfrastructureError, LLMError
from app.infrastructure.local.chat_session_repository import SqliteChatSessionRepository
from app.interfaces.llm_provider import ILLMProvider
from app.models.chat import UIMessage
from app.models.document import DocumentChunk
from app.models.step import FinishDelta, ProviderDelta, ReasoningDelta, TextDelta, ToolCallContent
from app.services.chat_stream_service import GENERIC_ERROR_MESSAGE, ChatStreamService, ChatTurn


class ScriptedProvider(ILLMProvider):
    """Replays one scripted list of deltas per model call."""

    def __init__(self, steps: list[list[Any]]):
        self._steps = steps
        self.calls: list[list[dict[str, Any]]] = []
        self.tools_offered: list[Optional[list[dict[str, Any]]]] = []

    def get_model_id(self) -> str:
        return "scripted"

    def get_model_name(self) -> str:
        return "Scripted"

    async def stream_completion(self, messages, tools=None) -> AsyncIterator[ProviderDelta]:
        index = len(self.calls)
        self.calls.append(list(messages))
        self.tools_offered.append(tools)
        for delta in self._steps[index]:
            if isinstance(delta, Exception):
                raise delta
            if isinstance(delta, asyncio.Event):
                await delta.wait()
                continue
            yield delta


def _tool_step(text: str, call_id: str) -> list[Any]:
    return [
        TextDelta(text),
        ToolCallContent(tool_call_id=call_id, tool_name="searchUserDocument", input={"query": "budget"}),
        FinishDelta("tool_calls"),
    ]


def _final_step(text: str) -> list[Any]:
    return [TextDelta(text), FinishDelta("stop")]


def _turn(**overrides) -> ChatTurn:
    values = dict(
        user_id="u1",
        session_id="s1",
        messages=[
            UIMessage(id="user-1", role="user", parts=[{"type": "text", "text": "What is the budget?"}])
        ],
        selected_blobs=["Plan 2026"],
    )
    values.update(overrides)
    return ChatTurn(**values)


@pytest.fixture
def document_repo():
    repo = AsyncMock()
    repo.search.return_value = [
        DocumentChunk(document_id="d1", title="Plan 2026", page=i, content=f"Budget line {i}")
        for i in range(1, 4)
    ]
    return repo


def _service(provider, chat_repo, document_repo, **settings) -> ChatStreamService:
    return ChatStreamService(
        llm_provider=provider,
        chat_repo=chat_repo,
        document_repo=document_repo,
        settings=Settings(**settings),
    )


async def _collect(service: ChatStreamService, turn: ChatTurn) -> list:
    chunks = [chunk async for chunk in service.stream_turn(turn)]
    await service.wait_idle()
    return chunks


@pytest.mark.asyncio
async def test_two_step_turn_is_stored_as_one_message(chat_repo, document_repo):
    provider = ScriptedProvider(
        [_tool_step("Searching documents...", "call-1"), _final_step("Found 3 results.")]
    )
    service = _service(provider, chat_repo, document_repo)

    chunks = await _collect(service, _turn())

    assert [c.chunk_type for c in chunks] == [
        "start",
        "text",
        "tool_start",
        "tool_end",
        "step_finish",
        "text",
        "step_finish",
        "done",
    ]
    assistant_id = chunks[0].message_id
    assert chunks[3].tool_result["count"] == 3

    messages = await chat_repo.list_messages("u1", "s1")
    assert [m.role for m in messages] == ["user", "assistant"]
    assistant = messages[1]
    assert assistant.id == assistant_id
    assert [(p.order, p.type) for p in assistant.parts] == [
        (0, "text"),
        (1, "tool-invocation"),
        (2, "text"),
    ]
    assert assistant.parts[0].text == "Searching documents..."
    assert assistant.parts[1].state == "output-available"
    assert assistant.parts[2].text == "Found 3 results."

    # The second call replays the tool exchange to the model
    replay = provider.calls[1]
    assert replay[-2]["tool_calls"][0]["id"] == "call-1"
    assert replay[-1]["role"] == "tool"
    assert replay[-1]["tool_call_id"] == "call-1"
    assert '"count": 3' in replay[-1]["content"]
    document_repo.search.assert_awaited_with("u1", ["Plan 2026"], "budget", limit=5)


@pytest.mark.asyncio
async def test_text_only_steps_yield_contiguous_orders(chat_repo, document_repo):
    provider = ScriptedProvider(
        [
            [ReasoningDelta("Let me think"), TextDelta("Hel"), TextDelta("lo"), FinishDelta("stop")],
        ]
    )
    service = _service(provider, chat_repo, document_repo)

    chunks = await _collect(service, _turn(selected_blobs=[]))

    assert provider.tools_offered == [None]
    assert chunks[-1].chunk_type == "done"
    assert chunks[-1].finish_reason == "stop"
    assistant = (await chat_repo.list_messages("u1", "s1"))[1]
    assert [(p.order, p.type, p.text) for p in assistant.parts] == [
        (0, "reasoning", "Let me think"),
        (1, "text", "Hello"),
    ]


class _FailOnSecondAssistantWrite(SqliteChatSessionRepository):
    def __init__(self, session_factory):
        super().__init__(session_factory)
        self.assistant_writes = 0

    async def append_parts(self, session_id, message_id, parts):
        if message_id != "user-1":
            self.assistant_writes += 1
            if self.assistant_writes == 2:
                raise InfrastructureError("database is locked")
        return await super().append_parts(session_id, message_id, parts)


@pytest.mark.asyncio
async def test_persistence_failure_does_not_stop_the_turn(session_factory, document_repo):
    repo = _FailOnSecondAssistantWrite(session_factory)
    provider = ScriptedProvider(
        [
            _tool_step("one", "c1"),
            _tool_step("two", "c2"),
            _tool_step("three", "c3"),
            _final_step("four"),
        ]
    )
    service = _service(provider, repo, document_repo)

    chunks = await _collect(service, _turn())

    assert len(provider.calls) == 4
    assert [c.step for c in chunks if c.chunk_type == "step_finish"] == [0, 1, 2, 3]
    assert chunks[-1].chunk_type == "done"
    assert repo.assistant_writes == 4

    messages = await repo.list_messages("u1", "s1")
    assert [m.role for m in messages] == ["user", "assistant"]
    parts = messages[1].parts
    assert [p.order for p in parts] == list(range(7))
    assert [p.text for p in parts if p.type == "text"] == ["one", "two", "three", "four"]


@pytest.mark.asyncio
async def test_provider_error_before_first_step_records_nothing(chat_repo, document_repo):
    provider = ScriptedProvider([[LLMError("upstream 500: secret detail")]])
    service = _service(provider, chat_repo, document_repo)

    chunks = await _collect(service, _turn())

    assert [c.chunk_type for c in chunks] == ["start", "error"]
    assert chunks[-1].content == GENERIC_ERROR_MESSAGE
    assert "secret" not in chunks[-1].content
    assert await chat_repo.get_session("s1") is None


@pytest.mark.asyncio
async def test_provider_error_keeps_completed_steps(chat_repo, document_repo):
    provider = ScriptedProvider(
        [_tool_step("Searching documents...", "c1"), [TextDelta("partial"), RuntimeError("boom")]]
    )
    service = _service(provider, chat_repo, document_repo)

    chunks = await _collect(service, _turn())

    assert chunks[-1].chunk_type == "error"
    assistant = (await chat_repo.list_messages("u1", "s1"))[1]
    assert [p.type for p in assistant.parts] == ["text", "tool-invocation"]


@pytest.mark.asyncio
async def test_step_count_is_bounded(chat_repo, document_repo):
    provider = ScriptedProvider([_tool_step(f"step {i}", f"c{i}") for i in range(5)])
    service = _service(provider, chat_repo, document_repo, CHAT_MAX_STEPS=2)

    chunks = await _collect(service, _turn())

    assert len(provider.calls) == 2
    assert chunks[-1].chunk_type == "done"


@pytest.mark.asyncio
async def test_unknown_tool_is_recorded_as_error(chat_repo, document_repo):
    provider = ScriptedProvider(
        [
            [ToolCallContent(tool_call_id="c1", tool_name="web_fetch", input={}), FinishDelta("tool_calls")],
            _final_step("Sorry."),
        ]
    )
    service = _service(provider, chat_repo, document_repo)

    chunks = await _collect(service, _turn())

    error_chunk = next(c for c in chunks if c.chunk_type == "tool_error")
    assert "web_fetch" in error_chunk.content
    assistant = (await chat_repo.list_messages("u1", "s1"))[1]
    assert assistant.parts[0].state == "output-error"
    assert assistant.parts[0].error_text


@pytest.mark.asyncio
async def test_abort_stops_generation_and_keeps_completed_steps(chat_repo, document_repo):
    never = asyncio.Event()
    provider = ScriptedProvider([_tool_step("first", "c1"), [TextDelta("second"), never]])
    service = _service(provider, chat_repo, document_repo)
    turn = _turn()

    chunks = []
    async for chunk in service.stream_turn(turn):
        chunks.append(chunk)
        if chunk.chunk_type == "text" and chunk.content == "second":
            assert service.abort("someone-else", "s1") is False
            assert service.abort("u1", "s1") is True
    await service.wait_idle()

    assert chunks[-1].chunk_type == "abort"
    assert "done" not in [c.chunk_type for c in chunks]
    assistant = (await chat_repo.list_messages("u1", "s1"))[1]
    assert [p.type for p in assistant.parts] == ["text", "tool-invocation"]
    assert service.abort("u1", "s1") is False


@pytest.mark.asyncio
async def test_client_disconnect_does_not_stop_persistence(chat_repo, document_repo):
    provider = ScriptedProvider(
        [_tool_step("Searching documents...", "c1"), _final_step("Found 3 results.")]
    )
    service = _service(provider, chat_repo, document_repo)

    stream = service.stream_turn(_turn())
    first = await stream.__anext__()
    await stream.aclose()
    await service.wait_idle()

    assert first.chunk_type == "start"
    assistant = (await chat_repo.list_messages("u1", "s1"))[1]
    assert [p.order for p in assistant.parts] == [0, 1, 2]


@pytest.mark.asyncio
async def test_client_disconnect_aborts_when_configured(chat_repo, document_repo):
    never = asyncio.Event()
    provider = ScriptedProvider([[TextDelta("waiting"), never]])
    service = _service(provider, chat_repo, document_repo, CHAT_ABORT_ON_DISCONNECT=True)

    stream = service.stream_turn(_turn())
    await stream.__anext__()
    await stream.aclose()
    await asyncio.wait_for(service.wait_idle(), timeout=5)

    assert await chat_repo.get_session("s1") is None


class _BrokenModelSwitch(ScriptedProvider):
    def with_model(self, model_id):
        raise RuntimeError(f"no such deployment: {model_id}")


@pytest.mark.asyncio
async def test_setup_failure_ends_stream_with_error(chat_repo, document_repo):
    provider = _BrokenModelSwitch([_final_step("never")])
    service = _service(provider, chat_repo, document_repo)

    chunks = await asyncio.wait_for(_collect(service, _turn(model_id="gpt-5")), timeout=5)

    assert [c.chunk_type for c in chunks] == ["start", "error"]
    assert chunks[-1].content == GENERIC_ERROR_MESSAGE
    assert provider.calls == []
    assert service.abort("u1", "s1") is False
    assert await chat_repo.get_session("s1") is None


@pytest.mark.asyncio
async def test_non_string_text_part_does_not_break_turn(chat_repo, document_repo):
    provider = ScriptedProvider([_final_step("Hello.")])
    service = _service(provider, chat_repo, document_repo)
    turn = _turn(
        messages=[
            UIMessage(
                id="user-1",
                role="user",
                parts=[{"type": "text", "text": 5}, {"type": "text", "text": "Hi"}],
            )
        ],
    )

    chunks = await asyncio.wait_for(_collect(service, turn), timeout=5)

    assert chunks[-1].chunk_type == "done"
    assert provider.calls[0][-1] == {"role": "user", "content": "Hi"}
    assert (await chat_repo.get_session("s1")).title == "Hi"


@pytest.mark.asyncio
async def test_step_usage_is_logged(chat_repo, document_repo, caplog):
    provider = ScriptedProvider(
        [[TextDelta("Hi"), FinishDelta("stop", usage={"prompt_tokens": 12, "completion_tokens": 3})]]
    )
    service = _service(provider, chat_repo, document_repo)

    with caplog.at_level(logging.INFO, logger="chat"):
        await _collect(service, _turn(selected_blobs=[]))

    assert "step 0 finished: reason=stop prompt_tokens=12 completion_tokens=3" in caplog.text
