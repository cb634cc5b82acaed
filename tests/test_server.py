"""Tests for the FastAPI server: caller routes, approval routes and the WebSocket."""

from __future__ import annotations

import asyncio
from collections.abc import Iterator
from concurrent.futures import ThreadPoolExecutor
from typing import Any

import httpx
import pytest
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from signbridge.server.app import (
    app,
    get_connection_manager,
    get_signer,
    set_connection_manager,
    set_signer,
)
from signbridge.server.connections import ConnectionManager
from signbridge.signing.accounts import AppState, UserAccount
from signbridge.signing.manager import SignMessageManager
from signbridge.signing.store import IdAllocator


@pytest.fixture()
def server_signer(app_state: AppState) -> Iterator[SignMessageManager]:
    """Install a fresh signer and connection manager for each test."""
    old_signer = get_signer()
    old_manager = get_connection_manager()
    signer = SignMessageManager(app_state, id_allocator=IdAllocator(1))
    set_signer(signer)
    set_connection_manager(ConnectionManager())
    yield signer
    set_signer(old_signer)
    set_connection_manager(old_manager)


@pytest.fixture()
def client(server_signer: SignMessageManager) -> TestClient:
    """FastAPI test client."""
    return TestClient(app)


async def _wait_for_pending(client: httpx.AsyncClient) -> list[dict[str, Any]]:
    for _ in range(200):
        resp = await client.get("/api/pending")
        pending: list[dict[str, Any]] = resp.json()
        if pending:
            return pending
        await asyncio.sleep(0.01)
    raise AssertionError("no pending request appeared")


def _receive_op(ws: Any, op: str) -> dict[str, Any]:
    while True:
        message: dict[str, Any] = ws.receive_json()
        if message["op"] == op:
            return message


def _receive_pending_id(ws: Any) -> int:
    while True:
        message = _receive_op(ws, "pending")
        if message["data"]["messages"]:
            return int(message["data"]["messages"][0]["id"])


def _receive_request_events(ws: Any) -> dict[str, dict[str, Any]]:
    """Collect the non-empty pending snapshot and the popup.open event for a new request."""
    seen: dict[str, dict[str, Any]] = {}
    while len(seen) < 2:
        message: dict[str, Any] = ws.receive_json()
        if message["op"] == "popup.open" or (
            message["op"] == "pending" and message["data"]["messages"]
        ):
            seen[message["op"]] = message
    return seen


class TestHealth:
    def test_health_returns_ok(self, client: TestClient) -> None:
        resp = client.get("/api/health")
        assert resp.status_code == 200
        assert resp.json()["status"] == "ok"


class TestPublicKey:
    def test_prefixed_hex(self, client: TestClient, account: UserAccount) -> None:
        resp = client.get("/api/public-key")
        assert resp.status_code == 200
        assert resp.json() == {
            "public_key_hex": "01" + account.sign_key_pair.public_key.hex()
        }

    def test_base64(self, client: TestClient) -> None:
        resp = client.get("/api/public-key/base64")
        assert resp.status_code == 200
        assert resp.json()["public_key_base64"]

    def test_not_connected(self, client: TestClient, app_state: AppState) -> None:
        app_state.disconnect()
        resp = client.get("/api/public-key")
        assert resp.status_code == 409
        assert resp.json()["detail"] == {
            "code": "not_connected",
            "message": "Please connect to the Signer first.",
        }


class TestApprovalRoutes:
    def test_pending_empty(self, client: TestClient) -> None:
        resp = client.get("/api/pending")
        assert resp.status_code == 200
        assert resp.json() == []

    def test_decisions_on_unknown_id_are_404(self, client: TestClient) -> None:
        assert client.post("/api/pending/999/approve").status_code == 404
        assert client.post("/api/pending/999/reject").status_code == 404

    def test_invalid_payload_is_400(self, client: TestClient) -> None:
        resp = client.post("/api/sign", json={"message_hex": "not-hex"})
        assert resp.status_code == 400
        assert resp.json()["detail"]["code"] == "invalid_payload"

    def test_api_key_required_when_configured(
        self, client: TestClient, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("SIGNBRIDGE_API_KEY", "secret")
        assert client.get("/api/pending").status_code == 401
        assert client.post("/api/pending/1/reject").status_code == 401
        wrong = client.get("/api/pending", headers={"X-API-Key": "guess"})
        assert wrong.status_code == 401
        assert wrong.json()["detail"]["code"] == "unauthorized"
        resp = client.get("/api/pending", headers={"X-API-Key": "secret"})
        assert resp.status_code == 200

    def test_caller_routes_need_no_api_key(
        self, client: TestClient, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("SIGNBRIDGE_API_KEY", "secret")
        assert client.get("/api/public-key").status_code == 200


@pytest.mark.asyncio()
async def test_sign_and_approve_round_trip(server_signer: SignMessageManager) -> None:
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        sign_call = asyncio.create_task(client.post("/api/sign", json={"message_hex": "deadbeef"}))
        (pending,) = await _wait_for_pending(client)
        assert pending["data"] == "deadbeef"
        assert pending["sign_public_key_base64"] is None

        resp = await client.post(f"/api/pending/{pending['id']}/approve")
        assert resp.status_code == 204
        sign_resp = await sign_call
        assert sign_resp.status_code == 200
        assert sign_resp.json()["signature_base64"]

        again = await client.post(f"/api/pending/{pending['id']}/approve")
        assert again.status_code == 409
        assert again.json()["detail"]["code"] == "request_already_decided"
        assert (await client.get("/api/pending")).json() == []


@pytest.mark.asyncio()
async def test_sign_and_reject_round_trip(server_signer: SignMessageManager) -> None:
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        sign_call = asyncio.create_task(client.post("/api/sign", json={"message_hex": "00"}))
        (pending,) = await _wait_for_pending(client)

        resp = await client.post(f"/api/pending/{pending['id']}/reject")
        assert resp.status_code == 204
        sign_resp = await sign_call
        assert sign_resp.status_code == 403
        assert sign_resp.json()["detail"] == {
            "code": "rejected",
            "message": "User denied message signature.",
        }


@pytest.mark.asyncio()
async def test_approve_without_account_is_409(
    server_signer: SignMessageManager, app_state: AppState
) -> None:
    app_state.select_account(None)
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        sign_call = asyncio.create_task(client.post("/api/sign", json={"message_hex": "00"}))
        (pending,) = await _wait_for_pending(client)

        resp = await client.post(f"/api/pending/{pending['id']}/approve")
        assert resp.status_code == 409
        assert resp.json()["detail"]["code"] == "no_account_selected"

        await client.post(f"/api/pending/{pending['id']}/reject")
        assert (await sign_call).status_code == 403


class TestApprovalWebSocket:
    def test_snapshot_on_connect(self, client: TestClient) -> None:
        with client.websocket_connect("/api/ws/approvals") as ws:
            assert ws.receive_json() == {"op": "pending", "data": {"messages": []}}
            assert get_connection_manager().client_count() == 1

    def test_bad_messages_get_errors(self, client: TestClient) -> None:
        with client.websocket_connect("/api/ws/approvals") as ws:
            ws.receive_json()
            ws.send_text("not json")
            assert ws.receive_json()["data"]["message"] == "Invalid message format"
            ws.send_json({"op": "sign", "data": {}})
            assert ws.receive_json()["data"]["message"] == "Unknown op: sign"
            ws.send_json({"op": "approve", "data": {"id": "7"}})
            assert ws.receive_json()["data"]["message"] == "Decision requires an integer id"
            ws.send_json({"op": "reject", "data": {"id": 7}})
            assert ws.receive_json() == {
                "op": "error",
                "data": {
                    "code": "request_not_found",
                    "message": "Could not find message with id: 7",
                },
            }

    def test_unauthorized_connection_is_closed(
        self, client: TestClient, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("SIGNBRIDGE_API_KEY", "secret")
        with pytest.raises(WebSocketDisconnect) as exc_info, client.websocket_connect(
            "/api/ws/approvals"
        ):
            pass
        assert exc_info.value.code == 4001

    def test_connection_with_key_is_accepted(
        self, client: TestClient, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("SIGNBRIDGE_API_KEY", "secret")
        with client.websocket_connect(
            "/api/ws/approvals", headers={"X-API-Key": "secret"}
        ) as ws:
            assert ws.receive_json() == {"op": "pending", "data": {"messages": []}}

    def test_decision_over_websocket_resolves_caller(
        self, server_signer: SignMessageManager
    ) -> None:
        with TestClient(app) as client, client.websocket_connect("/api/ws/approvals") as ws:
            assert ws.receive_json()["op"] == "pending"
            with ThreadPoolExecutor(max_workers=1) as pool:
                sign_call = pool.submit(client.post, "/api/sign", json={"message_hex": "deadbeef"})
                msg_id = _receive_pending_id(ws)
                ws.send_json({"op": "approve", "data": {"id": msg_id}})
                decided = _receive_op(ws, "decided")
                resp = sign_call.result(timeout=10)

        assert decided["data"] == {"id": msg_id, "status": "signed"}
        assert resp.status_code == 200
        assert resp.json()["signature_base64"] == server_signer.get_message(msg_id).raw_sig

    def test_popup_events_are_broadcast(self, server_signer: SignMessageManager) -> None:
        with TestClient(app) as client, client.websocket_connect("/api/ws/approvals") as ws:
            ws.receive_json()
            with ThreadPoolExecutor(max_workers=1) as pool:
                sign_call = pool.submit(client.post, "/api/sign", json={"message_hex": "00"})
                seen = _receive_request_events(ws)
                assert seen["popup.open"]["data"] == {"kind": "sign"}
                msg_id = int(seen["pending"]["data"]["messages"][0]["id"])
                ws.send_json({"op": "reject", "data": {"id": msg_id}})
                _receive_op(ws, "popup.close")
                assert sign_call.result(timeout=10).status_code == 403
