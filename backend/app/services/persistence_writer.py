"""
Incremental persistence writer.

Writes the batch produced after each step. Failures are logged and
swallowed so that storage problems never interrupt a streaming response.
"""

from __future__ import annotations

from typing import Optional

from app.core.logger import logger
from app.interfaces.chat_session_repository import IChatSessionRepository
from app.models.chat import UIMessage
from app.services.message_assembler import PersistBatch, TurnState
from app.services.message_conversion import part_text

TITLE_MAX_LENGTH = 50


def derive_session_title(message: Optional[UIMessage]) -> Optional[str]:
    """Session title from the first line of the user's text."""
    if message is None:
        return None
    text = "".join(
        part_text(part) for part in message.parts if part.get("type") == "text"
    ).strip()
    if not text:
        return None
    first_line = text.splitlines()[0].strip()
    if len(first_line) > TITLE_MAX_LENGTH:
        return first_line[:TITLE_MAX_LENGTH] + "..."
    return first_line


class IncrementalPersistenceWriter:
    """Idempotent, error-contained writer for per-step batches."""

    def __init__(self, chat_repo: IChatSessionRepository):
        self._chat_repo = chat_repo

    async def write_step(self, state: TurnState, batch: PersistBatch) -> bool:
        """
        Persist one step's batch.

        Returns:
            True when every message and part was written (or already present),
            False when the write failed. Never raises.
        """
        if batch.is_empty():
            return True

        message_id = None
        try:
            await self._chat_repo.ensure_session(
                state.user_id,
                state.session_id,
                title=derive_session_title(state.user_message),
            )
            for message in batch.messages:
                message_id = message.id
                await self._chat_repo.upsert_message(state.user_id, message)
                added = await self._chat_repo.append_parts(
                    state.session_id, message.id, message.parts
                )
                logger.debug(
                    f"Turn {state.turn_id} step {batch.step_index}: "
                    f"stored {added} new part(s) for {message.role} message {message.id}"
                )
            return True
        except Exception:
            logger.exception(
                f"Failed to persist step {batch.step_index} of turn {state.turn_id} "
                f"(session={state.session_id}, message={message_id})"
            )
            return False
