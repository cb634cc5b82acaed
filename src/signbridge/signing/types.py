"""Signing request model and the signer error taxonomy."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Literal

SignStatus = Literal["unsigned", "signed", "rejected"]
TERMINAL_STATUSES: frozenset[str] = frozenset({"signed", "rejected"})

USER_DENIED_MESSAGE = "User denied message signature."
KEY_CHANGED_MESSAGE = "You have changed the active key, please resend the signature request"


class SignerError(Exception):
    """Base error for signer operations, carrying a machine-readable code."""

    def __init__(self, code: str, message: str) -> None:
        super().__init__(message)
        self.code = code
        self.message = message


class IdentityError(SignerError):
    """Raised when the active public key cannot be resolved."""


class NoAccountSelectedError(SignerError):
    """Raised when approving without a selected signing account."""

    def __init__(self) -> None:
        super().__init__("no_account_selected", "Please select the account first")


class RequestNotFoundError(SignerError, LookupError):
    """Raised when a request id is not known to the store."""

    def __init__(self, msg_id: int, *, code: str = "request_not_found", message: str = "") -> None:
        super().__init__(code, message or f"Could not find message with id: {msg_id}")
        self.msg_id = msg_id


class RequestAlreadyDecidedError(RequestNotFoundError):
    """Raised when a terminal request receives a second decision."""

    def __init__(self, msg_id: int, status: str) -> None:
        super().__init__(
            msg_id,
            code="request_already_decided",
            message=f"Message {msg_id} has already been {status}.",
        )
        self.status = status


class InvalidPayloadError(SignerError, ValueError):
    """Raised when a payload is not a hex string."""

    def __init__(self) -> None:
        super().__init__("invalid_payload", "Message payload must be a hex string.")


class SignatureRejectedError(SignerError):
    """Delivered to the caller when its request ends up rejected."""

    def __init__(self, msg_id: int, message: str) -> None:
        super().__init__("rejected", message)
        self.msg_id = msg_id


class SignatureStateError(SignerError):
    """Delivered to the caller when a request finished in an unknown state."""

    def __init__(self, request: object) -> None:
        super().__init__("unknown_status", f"Message Signature: Unknown problem: {request}")


@dataclass(frozen=True)
class SigningRequest:
    """A single "sign this payload" work item tracked until a decision."""

    id: int
    data: str
    time: int
    status: SignStatus = "unsigned"
    sign_public_key_base64: str | None = None
    raw_sig: str | None = None
    err_msg: str | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "data": self.data,
            "time": self.time,
            "status": self.status,
            "sign_public_key_base64": self.sign_public_key_base64,
            "raw_sig": self.raw_sig,
            "err_msg": self.err_msg,
        }
