"""
Message assembler.

Tracks one chat turn across its generation steps and decides, after each
step, which messages and parts must be persisted. The user message is
attached to the first completed step; every step extends the same assistant
message, identified by an id generated once per turn.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional
from uuid import uuid4

from app.core.logger import logger
from app.models.chat import UIMessage
from app.models.chat_session import ChatMessageCreate
from app.models.message_part import MessagePart
from app.models.step import Step
from app.services.message_conversion import ui_parts_to_parts
from app.services.step_normalizer import normalize_step_content


@dataclass
class TurnState:
    """
    Mutable state of a single turn.

    Owned by the task running the turn; never shared between turns.
    """

    session_id: str
    user_id: str
    user_message: Optional[UIMessage] = None
    turn_id: str = field(default_factory=lambda: str(uuid4()))
    assistant_message_id: str = field(default_factory=lambda: str(uuid4()))
    step_count: int = 0
    user_message_saved: bool = False
    assistant_parts: list[MessagePart] = field(default_factory=list)

    @property
    def next_order(self) -> int:
        return len(self.assistant_parts)


@dataclass
class PersistBatch:
    """Messages to write after one step (0-2 entries)."""

    step_index: int
    messages: list[ChatMessageCreate] = field(default_factory=list)

    def is_empty(self) -> bool:
        return not self.messages


def _with_orders(parts: list[MessagePart], start: int) -> list[MessagePart]:
    return [part.model_copy(update={"order": start + i}) for i, part in enumerate(parts)]


class MessageAssembler:
    """Builds per-step persistence batches for a turn."""

    def _user_message(self, state: TurnState) -> Optional[ChatMessageCreate]:
        message = state.user_message
        if message is None:
            return None
        return ChatMessageCreate(
            id=message.id or str(uuid4()),
            session_id=state.session_id,
            role="user",
            parts=_with_orders(ui_parts_to_parts(message.parts), 0),
        )

    def on_step_finished(self, state: TurnState, step: Step) -> PersistBatch:
        """
        Fold a completed step into the turn and return what to persist.

        The assistant entry always carries every part accumulated so far;
        parts already stored are skipped by the repository, so a write that
        failed on an earlier step is healed by the next one.
        """
        batch = PersistBatch(step_index=state.step_count)
        try:
            if state.step_count == 0 and not state.user_message_saved:
                user_message = self._user_message(state)
                if user_message is not None:
                    batch.messages.append(user_message)
                    state.user_message_saved = True

            new_parts = normalize_step_content(step.content)
            if new_parts:
                state.assistant_parts.extend(_with_orders(new_parts, state.next_order))

            if state.assistant_parts:
                batch.messages.append(
                    ChatMessageCreate(
                        id=state.assistant_message_id,
                        session_id=state.session_id,
                        role="assistant",
                        parts=list(state.assistant_parts),
                    )
                )
            logger.debug(
                f"Turn {state.turn_id} step {batch.step_index}: "
                f"{len(new_parts)} new part(s), {len(batch.messages)} message(s) to persist"
            )
        finally:
            state.step_count += 1
        return batch
