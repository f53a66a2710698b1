"""
Chat API endpoint.

Streams assistant responses as Server-Sent Events and serves the stored
chat history.
"""

import json
from typing import AsyncGenerator

from fastapi import APIRouter, HTTPException, Query, Response, status
from fastapi.responses import StreamingResponse
from pydantic import ValidationError as PydanticValidationError

from app.api.deps import ChatRepo, ChatStream, CurrentUser
from app.core.exceptions import NotFoundError
from app.core.logger import logger
from app.models.chat import AbortResponse, ChatHistoryMessage, ChatRequest
from app.models.chat_session import ChatSession, ChatSessionRename
from app.services.chat_stream_service import GENERIC_ERROR_MESSAGE, ChatTurn
from app.services.message_conversion import part_to_ui

router = APIRouter()


async def _require_own_session(chat_repo, user_id: str, session_id: str) -> ChatSession:
    session = await chat_repo.get_session(session_id)
    if session is None or session.user_id != user_id:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Chat session {session_id} not found",
        )
    return session


@router.post("")
async def chat_stream(
    request: ChatRequest,
    user: CurrentUser,
    chat_repo: ChatRepo,
    chat_service: ChatStream,
):
    """
    Chat with streaming response (Server-Sent Events).

    Each event is one JSON-encoded StreamingChatChunk. The conversation is
    persisted after every generation step, independently of the stream.
    """
    session_id = (request.chat_id or "").strip()
    if not session_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Chat session ID is empty.",
        )

    try:
        for message in request.messages:
            message.validate_parts()
    except PydanticValidationError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Malformed message part: {e.errors()[0]['msg']}",
        )

    turn = ChatTurn(
        user_id=user.id,
        session_id=session_id,
        messages=request.messages,
        model_id=request.option,
        selected_blobs=request.selected_blobs,
    )
    if turn.user_message is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="No user message to respond to.",
        )

    # A session id that belongs to someone else is treated as unknown.
    existing = await chat_repo.get_session(session_id)
    if existing is not None and existing.user_id != user.id:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Chat session {session_id} not found",
        )

    async def event_generator() -> AsyncGenerator[str, None]:
        """Generate Server-Sent Events for streaming response."""
        try:
            async for chunk in chat_service.stream_turn(turn):
                # Send each chunk as SSE
                payload = chunk.model_dump(mode="json", exclude_none=True)
                yield f"data: {json.dumps(payload, ensure_ascii=False)}\n\n"

        except Exception:
            logger.exception(f"Chat stream for session {session_id} failed")
            error_chunk = {
                "chunk_type": "error",
                "content": GENERIC_ERROR_MESSAGE,
            }
            yield f"data: {json.dumps(error_chunk, ensure_ascii=False)}\n\n"

    return StreamingResponse(
        event_generator(),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",  # Disable buffering for nginx
        },
    )


@router.post("/sessions/{session_id}/abort", response_model=AbortResponse)
async def abort_chat(
    session_id: str,
    user: CurrentUser,
    chat_service: ChatStream,
):
    """Stop the running turn of a session. Completed steps stay stored."""
    return AbortResponse(aborted=chat_service.abort(user.id, session_id))


@router.get("/sessions", response_model=list[ChatSession])
async def list_sessions(
    user: CurrentUser,
    chat_repo: ChatRepo,
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
):
    """List chat sessions for the current user."""
    return await chat_repo.list_sessions(user.id, limit=limit, offset=offset)


@router.get("/history/{session_id}", response_model=list[ChatHistoryMessage])
async def get_history(
    session_id: str,
    user: CurrentUser,
    chat_repo: ChatRepo,
):
    """Get message history for a specific session."""
    await _require_own_session(chat_repo, user.id, session_id)
    messages = await chat_repo.list_messages(user.id, session_id)
    return [
        ChatHistoryMessage(
            id=message.id,
            role=message.role,
            parts=[part_to_ui(part) for part in message.parts],
            created_at=message.created_at,
        )
        for message in messages
    ]


@router.patch("/sessions/{session_id}", response_model=ChatSession)
async def rename_session(
    session_id: str,
    body: ChatSessionRename,
    user: CurrentUser,
    chat_repo: ChatRepo,
):
    """Rename a chat session."""
    title = body.title.strip()
    if not title:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Title must not be empty",
        )
    try:
        return await chat_repo.rename_session(user.id, session_id, title)
    except NotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.message)


@router.delete("/sessions/{session_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_session(
    session_id: str,
    user: CurrentUser,
    chat_repo: ChatRepo,
):
    """Delete a chat session with all its messages."""
    deleted = await chat_repo.delete_session(user.id, session_id)
    if not deleted:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Chat session {session_id} not found",
        )
    return Response(status_code=status.HTTP_204_NO_CONTENT)
