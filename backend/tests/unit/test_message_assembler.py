"""
Unit tests for the message assembler.
"""

from app.models.chat import UIMessage
from app.models.step import Step, TextContent, ToolCallContent, ToolResultContent
from app.services.message_assembler import MessageAssembler, TurnState


def _state(user_text: str = "Find the budget") -> TurnState:
    return TurnState(
        session_id="session-1",
        user_id="user-1",
        user_message=UIMessage(
            id="user-msg-1",
            role="user",
            parts=[{"type": "step-start"}, {"type": "text", "text": user_text}],
        ),
    )


def _text_step(index: int, *texts: str) -> Step:
    return Step(index=index, content=[TextContent(t) for t in texts])


class TestUserMessage:
    def test_user_message_attached_to_first_step_only(self):
        assembler = MessageAssembler()
        state = _state()

        first = assembler.on_step_finished(state, _text_step(0, "a"))
        second = assembler.on_step_finished(state, _text_step(1, "b"))

        assert [m.role for m in first.messages] == ["user", "assistant"]
        assert [m.role for m in second.messages] == ["assistant"]
        assert state.user_message_saved is True

        user = first.messages[0]
        assert user.id == "user-msg-1"
        assert user.session_id == "session-1"
        # step markers are not persisted
        assert [(p.type, p.order) for p in user.parts] == [("text", 0)]

    def test_user_message_saved_even_when_first_step_is_empty(self):
        assembler = MessageAssembler()
        state = _state()

        batch = assembler.on_step_finished(state, Step(index=0, content=[]))

        assert [m.role for m in batch.messages] == ["user"]
        assert state.user_message_saved is True
        assert state.step_count == 1

    def test_no_user_message_when_flag_already_set(self):
        assembler = MessageAssembler()
        state = _state()
        state.user_message_saved = True

        batch = assembler.on_step_finished(state, _text_step(0, "a"))

        assert [m.role for m in batch.messages] == ["assistant"]


class TestAssistantMessage:
    def test_same_id_and_contiguous_orders_across_steps(self):
        assembler = MessageAssembler()
        state = _state()

        batches = [
            assembler.on_step_finished(state, _text_step(0, "a", "b")),
            assembler.on_step_finished(state, _text_step(1, "c")),
            assembler.on_step_finished(state, _text_step(2, "d", "e", "f")),
        ]

        ids = {m.id for b in batches for m in b.messages if m.role == "assistant"}
        assert ids == {state.assistant_message_id}

        final = batches[-1].messages[-1]
        assert [p.order for p in final.parts] == list(range(6))
        assert [p.text for p in final.parts] == ["a", "b", "c", "d", "e", "f"]

    def test_each_batch_carries_message_so_far(self):
        assembler = MessageAssembler()
        state = _state()

        assembler.on_step_finished(state, _text_step(0, "a"))
        batch = assembler.on_step_finished(state, _text_step(1, "b"))

        assistant = batch.messages[0]
        assert [p.order for p in assistant.parts] == [0, 1]

    def test_tool_call_only_step_adds_no_parts(self):
        assembler = MessageAssembler()
        state = _state()
        state.user_message_saved = True

        batch = assembler.on_step_finished(
            state,
            Step(index=0, content=[ToolCallContent(tool_call_id="c1", tool_name="t", input={})]),
        )

        assert batch.is_empty()
        assert state.step_count == 1
        assert state.next_order == 0

    def test_tool_step_then_text_step(self):
        assembler = MessageAssembler()
        state = _state()

        assembler.on_step_finished(
            state,
            Step(
                index=0,
                content=[
                    TextContent("Searching documents..."),
                    ToolCallContent(tool_call_id="c1", tool_name="searchUserDocument", input={"query": "x"}),
                    ToolResultContent(
                        tool_call_id="c1",
                        tool_name="searchUserDocument",
                        input={"query": "x"},
                        output={"count": 3},
                    ),
                ],
            ),
        )
        batch = assembler.on_step_finished(state, _text_step(1, "Found 3 results."))

        parts = batch.messages[0].parts
        assert [(p.order, p.type) for p in parts] == [
            (0, "text"),
            (1, "tool-invocation"),
            (2, "text"),
        ]

    def test_step_counter_increments_every_step(self):
        assembler = MessageAssembler()
        state = _state()

        for i in range(4):
            batch = assembler.on_step_finished(state, Step(index=i))
            assert batch.step_index == i

        assert state.step_count == 4
