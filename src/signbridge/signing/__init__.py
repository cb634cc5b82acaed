"""Pending-signature correlation subsystem.

Public API: AppState, IdAllocator, LoggingPopupManager, PopupManager,
    RequestStore, SignKeyPair, SignMessageManager, SigningRequest,
    UserAccount, prefixed_public_key_hex, resolve_active_public_key,
    selected_public_key_base64, and the SignerError hierarchy
Internal: accounts, identity, manager, popup, store, types
"""

from signbridge.signing.accounts import AppState, SignKeyPair, UserAccount
from signbridge.signing.identity import (
    prefixed_public_key_hex,
    resolve_active_public_key,
    selected_public_key_base64,
)
from signbridge.signing.manager import SignMessageManager
from signbridge.signing.popup import LoggingPopupManager, PopupManager
from signbridge.signing.store import IdAllocator, RequestStore
from signbridge.signing.types import (
    IdentityError,
    InvalidPayloadError,
    NoAccountSelectedError,
    RequestAlreadyDecidedError,
    RequestNotFoundError,
    SignatureRejectedError,
    SignatureStateError,
    SignerError,
    SigningRequest,
)

__all__ = [
    "AppState",
    "IdAllocator",
    "IdentityError",
    "InvalidPayloadError",
    "LoggingPopupManager",
    "NoAccountSelectedError",
    "PopupManager",
    "RequestAlreadyDecidedError",
    "RequestNotFoundError",
    "RequestStore",
    "SignKeyPair",
    "SignMessageManager",
    "SignatureRejectedError",
    "SignatureStateError",
    "SignerError",
    "SigningRequest",
    "UserAccount",
    "prefixed_public_key_hex",
    "resolve_active_public_key",
    "selected_public_key_base64",
]
