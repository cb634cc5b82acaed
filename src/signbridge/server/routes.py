"""Route handlers for the FastAPI server.

Caller-facing routes (``/api/sign``, ``/api/public-key``) are open: callers are
untrusted and every signature still needs a human decision. Approval-surface
routes (``/api/pending``, ``/api/ws/approvals``) require the API key when one
is configured. Handlers that touch the signer are ``async def`` so every store
mutation runs on the event loop thread.
"""

from __future__ import annotations

import contextlib
import logging
from collections.abc import Callable
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, WebSocket, WebSocketDisconnect, status
from pydantic import ValidationError

from signbridge.server.auth import UNAUTHORIZED_CLOSE_CODE, is_approver, require_approver
from signbridge.server.connections import ConnectionManager
from signbridge.server.models import (
    HealthResponse,
    PendingMessage,
    PublicKeyBase64Response,
    PublicKeyResponse,
    SignRequest,
    SignResponse,
    WSIncoming,
    WSOutgoing,
    pending_snapshot,
)
from signbridge.server.popup import EventPublisher
from signbridge.signing.manager import SignMessageManager
from signbridge.signing.types import (
    IdentityError,
    InvalidPayloadError,
    NoAccountSelectedError,
    RequestAlreadyDecidedError,
    RequestNotFoundError,
    SignatureRejectedError,
    SignatureStateError,
    SignerError,
)

_log = logging.getLogger(__name__)

router = APIRouter()

# These are set by ``configure_routes`` before the app starts serving.
_signer: SignMessageManager
_manager: ConnectionManager
_publisher: EventPublisher


def configure_routes(
    signer: SignMessageManager, manager: ConnectionManager, publisher: EventPublisher
) -> None:
    """Bind the shared signer, connections and event publisher used by all route handlers."""
    global _signer, _manager, _publisher
    _signer = signer
    _manager = manager
    _publisher = publisher


def _error_detail(exc: SignerError) -> dict[str, str]:
    return {"code": exc.code, "message": exc.message}


# --- Health ---


@router.get("/api/health", response_model=HealthResponse)
def health() -> HealthResponse:
    """Health check endpoint."""
    return HealthResponse()


# --- Caller-facing ---


@router.post("/api/sign", response_model=SignResponse)
async def sign(request: SignRequest) -> SignResponse:
    """Queue a message for signing and wait for the approval decision."""
    try:
        signature = await _signer.add_unsigned_message_base16(
            request.message_hex, request.public_key_base64
        )
    except InvalidPayloadError as exc:
        raise HTTPException(status_code=400, detail=_error_detail(exc)) from exc
    except SignatureRejectedError as exc:
        raise HTTPException(status_code=403, detail=_error_detail(exc)) from exc
    except SignatureStateError as exc:
        raise HTTPException(status_code=500, detail=_error_detail(exc)) from exc
    return SignResponse(signature_base64=signature)


@router.get("/api/public-key", response_model=PublicKeyResponse)
async def get_public_key() -> PublicKeyResponse:
    try:
        return PublicKeyResponse(public_key_hex=await _signer.get_active_public_key())
    except IdentityError as exc:
        raise HTTPException(status_code=409, detail=_error_detail(exc)) from exc


@router.get("/api/public-key/base64", response_model=PublicKeyBase64Response)
async def get_public_key_base64() -> PublicKeyBase64Response:
    try:
        return PublicKeyBase64Response(
            public_key_base64=await _signer.get_selected_public_key_base64()
        )
    except IdentityError as exc:
        raise HTTPException(status_code=409, detail=_error_detail(exc)) from exc


# --- Approval surface ---


@router.get(
    "/api/pending",
    response_model=list[PendingMessage],
    dependencies=[Depends(require_approver)],
)
async def list_pending() -> list[PendingMessage]:
    """List requests still waiting for a decision, oldest first."""
    return [PendingMessage.from_request(msg) for msg in _signer.pending_messages()]


@router.post(
    "/api/pending/{msg_id}/approve",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(require_approver)],
)
async def approve(msg_id: int) -> None:
    _decide(_signer.approve_msg, msg_id)


@router.post(
    "/api/pending/{msg_id}/reject",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(require_approver)],
)
async def reject(msg_id: int) -> None:
    _decide(_signer.reject_msg, msg_id)


def _decide(action: Callable[[int], None], msg_id: int) -> None:
    try:
        action(msg_id)
    except RequestAlreadyDecidedError as exc:
        raise HTTPException(status_code=409, detail=_error_detail(exc)) from exc
    except RequestNotFoundError as exc:
        raise HTTPException(status_code=404, detail=_error_detail(exc)) from exc
    except NoAccountSelectedError as exc:
        raise HTTPException(status_code=409, detail=_error_detail(exc)) from exc


# --- WebSocket ---


@router.websocket("/api/ws/approvals")
async def approvals_websocket(websocket: WebSocket) -> None:
    """Push the pending set to an approval surface and accept its decisions."""
    if not is_approver(websocket.headers):
        await websocket.close(code=UNAUTHORIZED_CLOSE_CODE, reason="Unauthorized")
        return

    await _manager.connect(websocket)
    try:
        await _publisher.send_to(websocket, pending_snapshot(_signer.pending_messages()))
        while True:
            raw = await websocket.receive_text()
            try:
                msg = WSIncoming.model_validate_json(raw)
            except ValidationError:
                await _send_error(websocket, {"message": "Invalid message format"})
                continue
            await _handle_decision(msg, websocket)
    except WebSocketDisconnect:
        pass
    except Exception as exc:
        _log.exception("Approval WebSocket error")
        with contextlib.suppress(Exception):
            await _send_error(websocket, {"message": str(exc)})
    finally:
        await _manager.disconnect(websocket)


async def _handle_decision(msg: WSIncoming, websocket: WebSocket) -> None:
    actions: dict[str, Callable[[int], None]] = {
        "approve": _signer.approve_msg,
        "reject": _signer.reject_msg,
    }
    action = actions.get(msg.op)
    if action is None:
        await _send_error(websocket, {"message": f"Unknown op: {msg.op}"})
        return
    msg_id = msg.data.get("id")
    if not isinstance(msg_id, int) or isinstance(msg_id, bool):
        await _send_error(websocket, {"message": "Decision requires an integer id"})
        return
    try:
        action(msg_id)
    except SignerError as exc:
        await _send_error(websocket, _error_detail(exc))
        return
    decided = _signer.get_message(msg_id)
    await websocket.send_text(
        WSOutgoing(op="decided", data={"id": msg_id, "status": decided.status}).model_dump_json()
    )


async def _send_error(websocket: WebSocket, data: dict[str, Any]) -> None:
    await websocket.send_text(WSOutgoing(op="error", data=data).model_dump_json())
