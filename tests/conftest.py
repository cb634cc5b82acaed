"""Shared test fixtures for signbridge."""

from __future__ import annotations

import pytest
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey

from signbridge.signing.accounts import AppState, SignKeyPair, UserAccount
from signbridge.signing.manager import SignMessageManager
from signbridge.signing.popup import PopupKind
from signbridge.signing.store import IdAllocator

_FIXED_MILLIS = 1_700_000_000_000
_ID_SEED = 100


class RecordingPopup:
    """Popup adapter that remembers every open/close call."""

    def __init__(self) -> None:
        self.calls: list[str] = []

    def open_popup(self, kind: PopupKind) -> None:
        self.calls.append(f"open:{kind}")

    def close_popup(self) -> None:
        self.calls.append("close")


@pytest.fixture()
def ed25519_key() -> Ed25519PrivateKey:
    return Ed25519PrivateKey.generate()


@pytest.fixture()
def account(ed25519_key: Ed25519PrivateKey) -> UserAccount:
    """Account backed by a fresh Ed25519 key."""
    return UserAccount(name="alice", sign_key_pair=SignKeyPair.from_private_key(ed25519_key))


@pytest.fixture()
def other_account() -> UserAccount:
    """Second account used to simulate an account switch."""
    return UserAccount(
        name="bob",
        sign_key_pair=SignKeyPair.from_private_key(Ed25519PrivateKey.generate()),
    )


@pytest.fixture()
def secp256k1_account() -> UserAccount:
    key = ec.generate_private_key(ec.SECP256K1())
    return UserAccount(name="carol", sign_key_pair=SignKeyPair.from_private_key(key))


@pytest.fixture()
def app_state(account: UserAccount) -> AppState:
    """Connected signer state with ``account`` selected."""
    return AppState(connection_status=True, selected_user_account=account)


@pytest.fixture()
def popup() -> RecordingPopup:
    return RecordingPopup()


@pytest.fixture()
def signer(app_state: AppState, popup: RecordingPopup) -> SignMessageManager:
    """Manager with deterministic ids and a fixed clock."""
    return SignMessageManager(
        app_state,
        popup=popup,
        id_allocator=IdAllocator(_ID_SEED),
        clock=lambda: _FIXED_MILLIS,
    )
