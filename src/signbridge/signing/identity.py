"""Active public key resolution and key encodings."""

from __future__ import annotations

import base64

from signbridge.signing.accounts import AppState, SignKeyPair
from signbridge.signing.types import IdentityError

ED25519_KEY_PREFIX = "01"
ED25519_KEY_LENGTH = 32
SECP256K1_KEY_PREFIX = "02"
SECP256K1_KEY_LENGTH = 33

_KEY_PREFIXES = {
    ED25519_KEY_LENGTH: ED25519_KEY_PREFIX,
    SECP256K1_KEY_LENGTH: SECP256K1_KEY_PREFIX,
}


def prefixed_public_key_hex(public_key: bytes) -> str:
    """Tag raw public key bytes with their algorithm prefix, hex encoded."""
    prefix = _KEY_PREFIXES.get(len(public_key))
    if prefix is None:
        raise IdentityError("unrecognized_key_format", "Key was not of expected format!")
    return prefix + public_key.hex()


def resolve_active_public_key(state: AppState) -> str:
    """Return the selected account's public key as prefixed hex."""
    return prefixed_public_key_hex(_require_active_key_pair(state).public_key)


def selected_public_key_base64(state: AppState) -> str:
    """Return the selected account's raw public key, base64 encoded."""
    return b64_encode(_require_active_key_pair(state).public_key)


def _require_active_key_pair(state: AppState) -> SignKeyPair:
    if not state.connection_status:
        raise IdentityError("not_connected", "Please connect to the Signer first.")
    account = state.selected_user_account
    if account is None:
        raise IdentityError("no_account", "Please create an account first.")
    return account.sign_key_pair


def b64_encode(value: bytes) -> str:
    """Base64 encode bytes to ASCII string."""
    return base64.b64encode(value).decode("ascii")
