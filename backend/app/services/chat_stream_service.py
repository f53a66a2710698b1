"""
Chat stream service.

Runs one chat turn as a background task: streams model output to the
client through a queue, executes requested tools, and persists the
assistant message after every step. Persistence is awaited between steps
but never holds up chunks that were already queued for the client.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Optional

from app.agents.prompts.chat_prompt import get_system_prompt
from app.core.config import Settings, get_settings
from app.core.exceptions import LLMError, ToolExecutionError
from app.core.logger import logger
from app.interfaces.chat_session_repository import IChatSessionRepository
from app.interfaces.document_repository import IDocumentRepository
from app.interfaces.llm_provider import ILLMProvider
from app.models.chat import StreamingChatChunk, UIMessage
from app.models.step import (
    FileContent,
    FinishDelta,
    ReasoningContent,
    ReasoningDelta,
    SourceContent,
    Step,
    StepContent,
    TextContent,
    TextDelta,
    ToolCallContent,
    ToolErrorContent,
    ToolResultContent,
)
from app.services.message_assembler import MessageAssembler, TurnState
from app.services.message_conversion import dump_tool_payload, part_to_ui, to_model_messages
from app.services.persistence_writer import IncrementalPersistenceWriter
from app.services.step_normalizer import describe_tool_error, normalize_item
from app.tools.base import ChatTool
from app.tools.document_tools import search_user_document_tool

GENERIC_ERROR_MESSAGE = "An error occurred while generating the response. Please try again."


@dataclass
class ChatTurn:
    """One inbound chat request, validated by the router."""

    user_id: str
    session_id: str
    messages: list[UIMessage]
    model_id: Optional[str] = None
    selected_blobs: list[str] = field(default_factory=list)
    abort_event: asyncio.Event = field(default_factory=asyncio.Event)

    @property
    def user_message(self) -> Optional[UIMessage]:
        """The user message that triggered this turn."""
        for message in reversed(self.messages):
            if message.role == "user":
                return message
        return None


class _StepBuilder:
    """Accumulates streamed deltas into ordered step content."""

    def __init__(self, index: int):
        self.step = Step(index=index)
        self._kind: Optional[type] = None
        self._buffer: list[str] = []

    def _flush(self) -> None:
        if self._kind is not None and self._buffer:
            self.step.content.append(self._kind("".join(self._buffer)))
        self._kind = None
        self._buffer = []

    def add_text(self, kind: type, text: str) -> None:
        if self._kind is not kind:
            self._flush()
            self._kind = kind
        self._buffer.append(text)

    def add(self, item: StepContent) -> None:
        self._flush()
        self.step.content.append(item)

    def finish(self, finish_reason: Optional[str], usage: Optional[dict[str, Any]] = None) -> Step:
        self._flush()
        self.step.finish_reason = finish_reason
        self.step.usage = usage
        return self.step


def _describe_usage(usage: Optional[dict[str, Any]]) -> str:
    if not usage:
        return "usage=n/a"
    return (
        f"prompt_tokens={usage.get('prompt_tokens', 0)} "
        f"completion_tokens={usage.get('completion_tokens', 0)}"
    )


class ChatStreamService:
    """Streams chat turns and persists them step by step."""

    def __init__(
        self,
        llm_provider: ILLMProvider,
        chat_repo: IChatSessionRepository,
        document_repo: IDocumentRepository,
        settings: Optional[Settings] = None,
        writer: Optional[IncrementalPersistenceWriter] = None,
    ):
        self._llm_provider = llm_provider
        self._chat_repo = chat_repo
        self._document_repo = document_repo
        self._settings = settings or get_settings()
        self._assembler = MessageAssembler()
        self._writer = writer or IncrementalPersistenceWriter(chat_repo)
        # Turns that outlive their HTTP response, and in-flight writes
        self._background: set[asyncio.Task] = set()
        self._active_turns: dict[str, ChatTurn] = {}

    # ===========================================
    # Public API
    # ===========================================

    async def stream_turn(self, turn: ChatTurn) -> AsyncIterator[StreamingChatChunk]:
        """
        Start a turn and yield its chunks until it finishes.

        If the consumer goes away early the turn keeps running (and keeps
        persisting) unless CHAT_ABORT_ON_DISCONNECT is set.
        """
        queue: asyncio.Queue[Optional[StreamingChatChunk]] = asyncio.Queue()
        task = asyncio.create_task(self._run_turn(turn, queue))
        watcher = asyncio.create_task(self._watch_abort(turn, task))
        task.add_done_callback(lambda _: watcher.cancel())
        self._track(task)
        self._active_turns[turn.session_id] = turn

        try:
            while True:
                chunk = await queue.get()
                if chunk is None:
                    break
                yield chunk
        finally:
            if not task.done():
                if self._settings.CHAT_ABORT_ON_DISCONNECT:
                    logger.info(f"Client disconnected; aborting turn for session {turn.session_id}")
                    turn.abort_event.set()
                else:
                    logger.info(
                        f"Client disconnected; turn for session {turn.session_id} continues in background"
                    )

    def abort(self, user_id: str, session_id: str) -> bool:
        """Signal the running turn of a session to stop. Returns False if none runs."""
        turn = self._active_turns.get(session_id)
        if turn is None or turn.user_id != user_id:
            return False
        turn.abort_event.set()
        return True

    async def wait_idle(self) -> None:
        """Wait for background turns and writes (used on shutdown and in tests)."""
        while self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)

    # ===========================================
    # Turn execution
    # ===========================================

    def _track(self, task: asyncio.Task) -> None:
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def _watch_abort(self, turn: ChatTurn, task: asyncio.Task) -> None:
        await turn.abort_event.wait()
        if not task.done():
            task.cancel()

    def _build_tools(self, turn: ChatTurn) -> dict[str, ChatTool]:
        tools: dict[str, ChatTool] = {}
        if turn.selected_blobs:
            tool = search_user_document_tool(
                self._document_repo,
                turn.user_id,
                turn.selected_blobs,
                limit=self._settings.DOCUMENT_SEARCH_LIMIT,
            )
            tools[tool.name] = tool
        return tools

    async def _run_turn(
        self,
        turn: ChatTurn,
        queue: asyncio.Queue[Optional[StreamingChatChunk]],
    ) -> None:
        state = TurnState(
            session_id=turn.session_id,
            user_id=turn.user_id,
            user_message=turn.user_message,
        )
        emit = queue.put_nowait
        emit(StreamingChatChunk(chunk_type="start", message_id=state.assistant_message_id))
        finish_reason: Optional[str] = None
        try:
            provider = self._llm_provider.with_model(turn.model_id) if turn.model_id else self._llm_provider
            tools = self._build_tools(turn)
            messages = to_model_messages(
                turn.messages,
                system_prompt=get_system_prompt(turn.selected_blobs),
            )
            logger.info(
                f"Turn {state.turn_id} started: session={turn.session_id} "
                f"model={provider.get_model_name()} tools={list(tools)}"
            )

            for _ in range(self._settings.CHAT_MAX_STEPS):
                step = await self._stream_step(provider, messages, tools, state, emit)
                finish_reason = step.finish_reason
                logger.info(
                    f"Turn {state.turn_id} step {step.index} finished: "
                    f"reason={step.finish_reason} {_describe_usage(step.usage)}"
                )

                batch = self._assembler.on_step_finished(state, step)
                write = asyncio.ensure_future(self._writer.write_step(state, batch))
                self._track(write)
                await asyncio.shield(write)

                emit(
                    StreamingChatChunk(
                        chunk_type="step_finish",
                        message_id=state.assistant_message_id,
                        step=step.index,
                        finish_reason=step.finish_reason,
                    )
                )
                if not step.tool_calls:
                    break
                messages.extend(self._step_messages(step))
            else:
                logger.info(f"Turn {state.turn_id} stopped after {self._settings.CHAT_MAX_STEPS} steps")

            emit(
                StreamingChatChunk(
                    chunk_type="done",
                    message_id=state.assistant_message_id,
                    finish_reason=finish_reason,
                )
            )
        except asyncio.CancelledError:
            logger.info(f"Turn {state.turn_id} aborted after {state.step_count} step(s)")
            emit(StreamingChatChunk(chunk_type="abort", message_id=state.assistant_message_id))
            raise
        except LLMError as e:
            logger.error(f"Turn {state.turn_id} failed: {e}")
            emit(StreamingChatChunk(chunk_type="error", content=GENERIC_ERROR_MESSAGE))
        except Exception:
            logger.exception(f"Turn {state.turn_id} failed unexpectedly")
            emit(StreamingChatChunk(chunk_type="error", content=GENERIC_ERROR_MESSAGE))
        finally:
            if self._active_turns.get(turn.session_id) is turn:
                del self._active_turns[turn.session_id]
            emit(None)

    async def _stream_step(
        self,
        provider: ILLMProvider,
        messages: list[dict[str, Any]],
        tools: dict[str, ChatTool],
        state: TurnState,
        emit,
    ) -> Step:
        """Run one model call plus the tools it requested."""
        builder = _StepBuilder(state.step_count)
        message_id = state.assistant_message_id
        finish_reason: Optional[str] = None
        usage: Optional[dict[str, Any]] = None
        schemas = [tool.schema() for tool in tools.values()] or None

        def chunk(chunk_type: str, **fields: Any) -> StreamingChatChunk:
            return StreamingChatChunk(
                chunk_type=chunk_type,
                message_id=message_id,
                step=builder.step.index,
                **fields,
            )

        stream = provider.stream_completion(messages, tools=schemas)
        try:
            async for delta in stream:
                if isinstance(delta, TextDelta):
                    builder.add_text(TextContent, delta.text)
                    emit(chunk("text", content=delta.text))
                elif isinstance(delta, ReasoningDelta):
                    builder.add_text(ReasoningContent, delta.text)
                    emit(chunk("reasoning", content=delta.text))
                elif isinstance(delta, (SourceContent, FileContent)):
                    builder.add(delta)
                    part = normalize_item(delta)
                    if part is not None:
                        kind = "source" if isinstance(delta, SourceContent) else "file"
                        emit(chunk(kind, part=part_to_ui(part)))
                elif isinstance(delta, ToolCallContent):
                    builder.add(delta)
                elif isinstance(delta, FinishDelta):
                    finish_reason = delta.finish_reason
                    usage = delta.usage
                else:
                    logger.debug(f"Ignoring provider delta {type(delta).__name__}")
        finally:
            aclose = getattr(stream, "aclose", None)
            if aclose is not None:
                await aclose()

        for call in builder.step.tool_calls:
            emit(
                chunk(
                    "tool_start",
                    tool_name=call.tool_name,
                    tool_call_id=call.tool_call_id,
                    tool_input=call.input,
                )
            )
            outcome = await self._execute_tool(tools, call)
            if isinstance(outcome, ToolResultContent):
                emit(
                    chunk(
                        "tool_end",
                        tool_name=call.tool_name,
                        tool_call_id=call.tool_call_id,
                        tool_result=outcome.output,
                    )
                )
            else:
                emit(
                    chunk(
                        "tool_error",
                        content=describe_tool_error(outcome.error),
                        tool_name=call.tool_name,
                        tool_call_id=call.tool_call_id,
                    )
                )
            builder.add(outcome)

        return builder.finish(finish_reason, usage)

    async def _execute_tool(
        self,
        tools: dict[str, ChatTool],
        call: ToolCallContent,
    ) -> ToolResultContent | ToolErrorContent:
        tool = tools.get(call.tool_name)
        try:
            if tool is None:
                raise ToolExecutionError(f"Unknown tool: {call.tool_name}", call.tool_name)
            output = await tool.run(call.input)
        except Exception as e:
            logger.warning(f"Tool {call.tool_name} ({call.tool_call_id}) failed: {e}")
            return ToolErrorContent(
                tool_call_id=call.tool_call_id,
                tool_name=call.tool_name,
                input=call.input,
                error=e,
            )
        return ToolResultContent(
            tool_call_id=call.tool_call_id,
            tool_name=call.tool_name,
            input=call.input,
            output=output,
        )

    def _step_messages(self, step: Step) -> list[dict[str, Any]]:
        """Model messages replaying a step that requested tools."""
        text = "".join(item.text for item in step.content if isinstance(item, TextContent))
        assistant: dict[str, Any] = {
            "role": "assistant",
            "content": text or None,
            "tool_calls": [
                {
                    "id": call.tool_call_id,
                    "type": "function",
                    "function": {
                        "name": call.tool_name,
                        "arguments": dump_tool_payload(call.input if call.input is not None else {}),
                    },
                }
                for call in step.tool_calls
            ],
        }
        results: list[dict[str, Any]] = []
        for item in step.content:
            if isinstance(item, ToolResultContent):
                results.append(
                    {
                        "role": "tool",
                        "tool_call_id": item.tool_call_id,
                        "content": dump_tool_payload(item.output),
                    }
                )
            elif isinstance(item, ToolErrorContent):
                results.append(
                    {
                        "role": "tool",
                        "tool_call_id": item.tool_call_id,
                        "content": describe_tool_error(item.error),
                    }
                )
        return [assistant, *results]
