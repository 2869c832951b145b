"""Tests for the SheetChat HTTP API."""

import json

import pytest
from fastapi.testclient import TestClient

from sheetchat.api.main import create_app, status_for_error
from sheetchat.api.routes.chat import _event_generator
from sheetchat.config import SheetChatConfig
from sheetchat.errors import (
    ConflictError,
    DomainError,
    MalformedReference,
    NotFoundError,
    SheetNotFound,
)
from sheetchat.services.conversation_service import ConversationService
from sheetchat.services.thread_store import ThreadStore
from tests.helpers import ScriptedModelClient, text_step, tool_call, tool_step


@pytest.fixture
def model() -> ScriptedModelClient:
    return ScriptedModelClient([])


@pytest.fixture
def client(session_factory, grid, model):
    app = create_app(
        SheetChatConfig(), session_factory=session_factory, grid=grid, model_client=model
    )
    with TestClient(app) as test_client:
        yield test_client


def sse_events(body: str) -> list[dict]:
    return [
        json.loads(line[len("data:"):].strip())
        for line in body.splitlines()
        if line.startswith("data:")
    ]


class FakeRequest:
    def __init__(self, disconnect_after: int | None = None) -> None:
        self._checks = 0
        self._disconnect_after = disconnect_after

    async def is_disconnected(self) -> bool:
        self._checks += 1
        return self._disconnect_after is not None and self._checks > self._disconnect_after


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


@pytest.mark.parametrize(
    "error, status",
    [
        (MalformedReference("A0"), 400),
        (SheetNotFound("Nope"), 404),
        (NotFoundError("Thread", "t1"), 404),
        (ConflictError("busy"), 409),
        (DomainError("boom"), 500),
    ],
)
def test_status_for_error(error, status):
    assert status_for_error(error) == status


class TestThreadRoutes:
    def test_create_list_get(self, client):
        created = client.post("/api/v1/threads", json={"id": "t1", "title": "Budget"})
        assert created.status_code == 201
        assert created.json()["id"] == "t1"
        assert created.json()["title"] == "Budget"

        listed = client.get("/api/v1/threads")
        assert [t["id"] for t in listed.json()] == ["t1"]

        detail = client.get("/api/v1/threads/t1")
        assert detail.status_code == 200
        assert detail.json()["messages"] == []

    def test_create_without_body(self, client):
        response = client.post("/api/v1/threads")
        assert response.status_code == 201
        assert response.json()["title"] == "New Chat"
        assert response.json()["id"]

    def test_create_duplicate_conflicts(self, client):
        client.post("/api/v1/threads", json={"id": "t1"})
        assert client.post("/api/v1/threads", json={"id": "t1"}).status_code == 409

    def test_detail_includes_parsed_tool_calls(self, client, session_factory):
        with session_factory() as db:
            store = ThreadStore(db)
            store.create_thread("t1")
            store.create_message(None, "t1", "user", "Read A1")
            store.create_message(
                None, "t1", "assistant", "Done",
                tool_calls=[{"tool_name": "readCell", "call_id": "c1", "parameters": {}, "result": {}}],
            )

        messages = client.get("/api/v1/threads/t1").json()["messages"]
        assert [m["role"] for m in messages] == ["user", "assistant"]
        assert messages[0]["tool_calls"] is None
        assert messages[1]["tool_calls"][0]["tool_name"] == "readCell"

    def test_rename(self, client):
        client.post("/api/v1/threads", json={"id": "t1"})
        response = client.patch("/api/v1/threads/t1", json={"title": "Q3 numbers"})
        assert response.status_code == 200
        assert response.json()["title"] == "Q3 numbers"

    def test_rename_rejects_empty_title(self, client):
        client.post("/api/v1/threads", json={"id": "t1"})
        assert client.patch("/api/v1/threads/t1", json={"title": ""}).status_code == 422

    def test_delete(self, client):
        client.post("/api/v1/threads", json={"id": "t1"})
        response = client.delete("/api/v1/threads/t1")
        assert response.json() == {"status": "deleted", "thread_id": "t1"}
        assert client.get("/api/v1/threads/t1").status_code == 404

    @pytest.mark.parametrize(
        "method, path, body",
        [
            ("get", "/api/v1/threads/missing", None),
            ("patch", "/api/v1/threads/missing", {"title": "x"}),
            ("delete", "/api/v1/threads/missing", None),
        ],
    )
    def test_missing_thread(self, client, method, path, body):
        kwargs = {"json": body} if body is not None else {}
        assert client.request(method.upper(), path, **kwargs).status_code == 404


class TestSheetRoutes:
    def test_list_sheets(self, client):
        assert client.get("/api/v1/sheets").json() == {"sheets": ["Sheet1"]}

    def test_sheet_data(self, client):
        data = client.get("/api/v1/sheets/Sheet1").json()
        assert data["headers"] == ["Name", "Email", "Amount", "Bonus"]
        assert data["range"] == "Sheet1!A1:D7"

    def test_range(self, client):
        data = client.get("/api/v1/sheets/Sheet1/range", params={"from": "A1", "to": "B3"}).json()
        assert data["headers"] == ["Name", "Email"]
        assert data["rows"][0] == ["Alice Smith", "alice@example.com"]

    def test_cell_with_formula(self, client):
        data = client.get("/api/v1/sheets/Sheet1/cells/D2").json()
        assert data == {"address": "Sheet1!D2", "value": 150.0, "formula": "C2*0.1"}

    def test_unknown_sheet(self, client):
        response = client.get("/api/v1/sheets/Nope/cells/A1")
        assert response.status_code == 404
        assert response.json()["error_code"] == "E-1002"

    def test_malformed_reference(self, client):
        response = client.get("/api/v1/sheets/Sheet1/cells/A0")
        assert response.status_code == 400
        assert response.json()["error_code"] == "E-1001"

    def test_range_requires_corners(self, client):
        assert client.get("/api/v1/sheets/Sheet1/range").status_code == 422


class TestChatRoutes:
    def test_message_streams_turn(self, client, model):
        model._steps.append(text_step("Hello!"))

        response = client.post("/api/v1/chat/t1/messages", json={"content": "Hi"})

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/event-stream")
        events = sse_events(response.text)
        assert [e["event"] for e in events] == ["agent_message_delta", "agent_message", "done"]
        assert events[-1]["data"]["thread_id"] == "t1"

        detail = client.get("/api/v1/threads/t1").json()
        assert detail["title"] == "Hi"
        assert [m["role"] for m in detail["messages"]] == ["user", "assistant"]

    def test_empty_message_rejected(self, client):
        assert client.post("/api/v1/chat/t1/messages", json={"content": ""}).status_code == 422

    def test_blank_message_rejected(self, client, model):
        response = client.post("/api/v1/chat/t1/messages", json={"content": "  \n "})
        assert response.status_code == 422
        assert model.calls == []
        assert client.get("/api/v1/threads/t1").status_code == 404

    def _deflect(self, client, model) -> str:
        model._steps.extend([
            tool_step(tool_call("call-1", "updateCell", sheet="Sheet1", cell="A1", value="Renamed")),
            text_step("Please confirm."),
        ])
        events = sse_events(
            client.post("/api/v1/chat/t1/messages", json={"content": "Rename A1"}).text
        )
        confirmation = next(e for e in events if e["event"] == "confirmation_required")
        return confirmation["data"]["pendingActionId"]

    def test_approve_pending_action(self, client, model, grid):
        action_id = self._deflect(client, model)
        assert client.get(f"/api/v1/chat/pending/{action_id}").json()["status"] == "pending"

        response = client.post(f"/api/v1/chat/pending/{action_id}/approve")

        assert response.status_code == 200
        assert response.json()["success"] is True
        assert grid.read_cell("Sheet1", "A1").value == "Renamed"
        assert client.get(f"/api/v1/chat/pending/{action_id}").json()["status"] == "executed"
        assert client.post(f"/api/v1/chat/pending/{action_id}/approve").status_code == 409

    def test_reject_pending_action(self, client, model, grid):
        action_id = self._deflect(client, model)

        response = client.post(f"/api/v1/chat/pending/{action_id}/reject")

        assert response.status_code == 200
        assert response.json()["status"] == "rejected"
        assert grid.read_cell("Sheet1", "A1").value == "Name"
        assert client.post(f"/api/v1/chat/pending/{action_id}/reject").status_code == 409

    @pytest.mark.parametrize("suffix", ["", "/approve", "/reject"])
    def test_unknown_pending_action(self, client, suffix):
        method = "GET" if not suffix else "POST"
        assert client.request(method, f"/api/v1/chat/pending/missing{suffix}").status_code == 404


class TestEventGenerator:
    async def test_relays_events_as_json(self, session_factory, grid):
        service = ConversationService(session_factory, grid, ScriptedModelClient([text_step("ok")]))

        payloads = [p async for p in _event_generator(FakeRequest(), service, "t1", "hello")]

        events = [json.loads(p["data"]) for p in payloads]
        assert [e["event"] for e in events] == ["agent_message_delta", "agent_message", "done"]

    async def test_reports_turn_failure_as_error_event(self, session_factory, grid):
        class BrokenModel:
            async def stream_step(self, system_prompt, messages, tools):
                raise RuntimeError("model unavailable")
                yield  # pragma: no cover

        service = ConversationService(session_factory, grid, BrokenModel())

        payloads = [p async for p in _event_generator(FakeRequest(), service, "t1", "hello")]

        assert len(payloads) == 1
        error = json.loads(payloads[0]["data"])
        assert error == {
            "event": "error",
            "data": {"thread_id": "t1", "message": "model unavailable"},
        }

    async def test_disconnect_cancels_turn(self, session_factory, grid):
        steps = [text_step("a long answer", chunks=3)]
        service = ConversationService(session_factory, grid, ScriptedModelClient(steps))

        payloads = [
            p async for p in _event_generator(FakeRequest(disconnect_after=0), service, "t1", "hi")
        ]

        events = [json.loads(p["data"])["event"] for p in payloads]
        assert events[0] == "agent_message_delta"
        assert events[-1] == "cancelled"
        with session_factory() as db:
            roles = [m.role for m in ThreadStore(db).get_messages_by_thread_id("t1")]
        assert roles == ["user"]
