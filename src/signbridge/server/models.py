"""Pydantic models for server API requests, responses, and WebSocket messages."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

from signbridge.signing.types import SigningRequest

# --- Caller-facing ---


class SignRequest(BaseModel):
    """POST /api/sign request body."""

    message_hex: str
    public_key_base64: str | None = None


class SignResponse(BaseModel):
    """POST /api/sign response body."""

    signature_base64: str


class PublicKeyResponse(BaseModel):
    """GET /api/public-key response."""

    public_key_hex: str


class PublicKeyBase64Response(BaseModel):
    """GET /api/public-key/base64 response."""

    public_key_base64: str


class HealthResponse(BaseModel):
    """GET /api/health response."""

    status: str = "ok"
    version: str = "0.1.0"


# --- Approval surface ---


class PendingMessage(BaseModel):
    """One unsigned request as rendered by the approval surface."""

    id: int
    data: str
    time: int
    sign_public_key_base64: str | None = None

    @classmethod
    def from_request(cls, msg: SigningRequest) -> PendingMessage:
        return cls(
            id=msg.id,
            data=msg.data,
            time=msg.time,
            sign_public_key_base64=msg.sign_public_key_base64,
        )


# --- WebSocket models ---


class WSIncoming(BaseModel):
    """Incoming WebSocket message from an approval surface."""

    op: str
    data: dict[str, Any] = Field(default_factory=dict)


class WSOutgoing(BaseModel):
    """Outgoing WebSocket message to approval surfaces."""

    op: str
    data: dict[str, Any] = Field(default_factory=dict)


def pending_snapshot(messages: tuple[SigningRequest, ...]) -> WSOutgoing:
    return WSOutgoing(
        op="pending",
        data={"messages": [PendingMessage.from_request(msg).model_dump() for msg in messages]},
    )
