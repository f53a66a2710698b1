"""
API tests for the chat router (SSE stream and history endpoints).
"""

import json

import pytest
from httpx import ASGITransport, AsyncClient

from app.api.deps import (
    get_auth_provider,
    get_chat_session_repository,
    get_chat_stream_service,
)
from app.core.config import Settings
from app.infrastructure.local.mock_auth import MockAuthProvider
from app.interfaces.llm_provider import ILLMProvider
from app.models.step import FinishDelta, ReasoningDelta, SourceContent, TextDelta
from app.services.chat_stream_service import ChatStreamService
from main import create_app


class _AnswerProvider(ILLMProvider):
    """Answers every request with reasoning, a citation and a short text."""

    def __init__(self):
        self.calls = 0

    def get_model_id(self) -> str:
        return "answer"

    def get_model_name(self) -> str:
        return "Answer"

    async def stream_completion(self, messages, tools=None):
        self.calls += 1
        yield ReasoningDelta("Looking it up")
        yield TextDelta("The budget ")
        yield TextDelta("is 10k.")
        yield SourceContent(id="src-1", url="https://example.com/budget", title="Budget")
        yield FinishDelta("stop")


@pytest.fixture
def provider():
    return _AnswerProvider()


@pytest.fixture
async def client(chat_repo, document_repo, provider):
    app = create_app()
    service = ChatStreamService(
        llm_provider=provider,
        chat_repo=chat_repo,
        document_repo=document_repo,
        settings=Settings(),
    )
    app.dependency_overrides[get_auth_provider] = lambda: MockAuthProvider(enabled=True)
    app.dependency_overrides[get_chat_session_repository] = lambda: chat_repo
    app.dependency_overrides[get_chat_stream_service] = lambda: service

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c

    await service.wait_idle()


def _body(chat_id="chat-1", text="What is the budget?"):
    return {
        "messages": [{"id": "user-1", "role": "user", "parts": [{"type": "text", "text": text}]}],
        "chatId": chat_id,
        "option": "gpt-5",
        "selectedBlobs": [],
    }


def _events(response) -> list[dict]:
    return [
        json.loads(line[len("data: "):])
        for line in response.text.split("\n\n")
        if line.startswith("data: ")
    ]


AUTH = {"Authorization": "Bearer test_user"}


@pytest.mark.asyncio
async def test_chat_requires_authentication(client, provider):
    response = await client.post("/api/chat", json=_body())

    assert response.status_code == 401
    assert provider.calls == 0


@pytest.mark.asyncio
@pytest.mark.parametrize("chat_id", [None, "", "   "])
async def test_chat_requires_session_id(client, provider, chat_id):
    response = await client.post("/api/chat", json=_body(chat_id=chat_id), headers=AUTH)

    assert response.status_code == 400
    assert provider.calls == 0


@pytest.mark.asyncio
async def test_chat_requires_user_message(client):
    body = _body()
    body["messages"] = []

    response = await client.post("/api/chat", json=body, headers=AUTH)

    assert response.status_code == 400


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "part",
    [
        {"type": "text", "text": 5},
        {"type": "reasoning", "text": ["a"]},
        {"type": "text", "text": None},
    ],
)
async def test_chat_rejects_malformed_text_part(client, chat_repo, provider, part):
    body = _body()
    body["messages"][0]["parts"] = [part]

    response = await client.post("/api/chat", json=body, headers=AUTH)

    assert response.status_code == 400
    assert response.json()["detail"].startswith("Malformed message part")
    assert provider.calls == 0
    assert await chat_repo.get_session("chat-1") is None


@pytest.mark.asyncio
async def test_chat_rejects_foreign_session(client, chat_repo, provider):
    await chat_repo.ensure_session("other_user", "chat-1")

    response = await client.post("/api/chat", json=_body(), headers=AUTH)

    assert response.status_code == 404
    assert provider.calls == 0


@pytest.mark.asyncio
async def test_chat_streams_and_persists(client, chat_repo):
    response = await client.post("/api/chat", json=_body(), headers=AUTH)

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/event-stream")
    assert response.headers["cache-control"] == "no-cache"

    events = _events(response)
    assert [e["chunk_type"] for e in events] == [
        "start",
        "reasoning",
        "text",
        "text",
        "source",
        "step_finish",
        "done",
    ]
    assert events[4]["part"] == {
        "type": "source-url",
        "sourceId": "src-1",
        "url": "https://example.com/budget",
        "title": "Budget",
    }

    history = await client.get("/api/chat/history/chat-1", headers=AUTH)
    assert history.status_code == 200
    messages = history.json()
    assert [m["role"] for m in messages] == ["user", "assistant"]
    assert messages[0]["parts"] == [{"type": "text", "text": "What is the budget?"}]
    assert messages[1]["id"] == events[0]["message_id"]
    assert [p["type"] for p in messages[1]["parts"]] == ["reasoning", "text", "source-url"]
    assert messages[1]["parts"][1]["text"] == "The budget is 10k."


@pytest.mark.asyncio
async def test_session_endpoints(client, chat_repo):
    await client.post("/api/chat", json=_body(text="Budget review"), headers=AUTH)

    sessions = (await client.get("/api/chat/sessions", headers=AUTH)).json()
    assert [(s["session_id"], s["title"]) for s in sessions] == [("chat-1", "Budget review")]

    renamed = await client.patch(
        "/api/chat/sessions/chat-1", json={"title": "Q3 budget"}, headers=AUTH
    )
    assert renamed.status_code == 200
    assert renamed.json()["title"] == "Q3 budget"

    blank = await client.patch("/api/chat/sessions/chat-1", json={"title": "  "}, headers=AUTH)
    assert blank.status_code == 400

    other = {"Authorization": "Bearer other_user"}
    assert (await client.get("/api/chat/history/chat-1", headers=other)).status_code == 404
    assert (await client.delete("/api/chat/sessions/chat-1", headers=other)).status_code == 404

    deleted = await client.delete("/api/chat/sessions/chat-1", headers=AUTH)
    assert deleted.status_code == 204
    assert await chat_repo.list_messages("test_user", "chat-1") == []
    assert (await client.get("/api/chat/history/chat-1", headers=AUTH)).status_code == 404


@pytest.mark.asyncio
async def test_abort_without_running_turn(client):
    response = await client.post("/api/chat/sessions/chat-1/abort", headers=AUTH)

    assert response.status_code == 200
    assert response.json() == {"aborted": False}


@pytest.mark.asyncio
async def test_models_endpoint(client):
    response = await client.get("/api/models", headers=AUTH)

    assert response.status_code == 200
    data = response.json()
    assert data["default_model_id"] == "gpt-5"
    assert {m["id"] for m in data["models"]} >= {"gpt-5", "o3", "claude-4-sonnet", "gemini-2.5-pro"}


@pytest.mark.asyncio
async def test_health(client):
    response = await client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"
