"""Tests for active public key resolution and key classification."""

from __future__ import annotations

import base64

import pytest

from signbridge.signing.accounts import AppState, UserAccount
from signbridge.signing.identity import (
    prefixed_public_key_hex,
    resolve_active_public_key,
    selected_public_key_base64,
)
from signbridge.signing.types import IdentityError


class TestPrefixedPublicKeyHex:
    def test_32_byte_key_gets_ed25519_prefix(self) -> None:
        key = bytes(range(32))
        result = prefixed_public_key_hex(key)
        assert result == "01" + key.hex()
        assert len(result) == 2 + 64

    def test_33_byte_key_gets_secp256k1_prefix(self) -> None:
        key = bytes([0x02]) + bytes(range(32))
        result = prefixed_public_key_hex(key)
        assert result == "02" + key.hex()
        assert len(result) == 2 + 66

    def test_hex_is_lowercase(self) -> None:
        assert prefixed_public_key_hex(b"\xab" * 32) == "01" + "ab" * 32

    @pytest.mark.parametrize("length", [0, 31, 34, 65])
    def test_other_lengths_are_rejected(self, length: int) -> None:
        with pytest.raises(IdentityError) as exc_info:
            prefixed_public_key_hex(b"\x00" * length)
        assert exc_info.value.code == "unrecognized_key_format"
        assert str(exc_info.value) == "Key was not of expected format!"


class TestResolveActivePublicKey:
    def test_requires_connection(self, account: UserAccount) -> None:
        state = AppState(connection_status=False, selected_user_account=account)
        with pytest.raises(IdentityError, match="Please connect to the Signer first."):
            resolve_active_public_key(state)

    def test_requires_account(self) -> None:
        state = AppState(connection_status=True)
        with pytest.raises(IdentityError) as exc_info:
            resolve_active_public_key(state)
        assert exc_info.value.code == "no_account"
        assert str(exc_info.value) == "Please create an account first."

    def test_ed25519_account(self, app_state: AppState, account: UserAccount) -> None:
        expected = "01" + account.sign_key_pair.public_key.hex()
        assert resolve_active_public_key(app_state) == expected

    def test_secp256k1_account(self, secp256k1_account: UserAccount) -> None:
        state = AppState(connection_status=True, selected_user_account=secp256k1_account)
        result = resolve_active_public_key(state)
        assert result.startswith("02")
        assert len(result) == 2 + 66


class TestSelectedPublicKeyBase64:
    def test_returns_raw_key_without_prefix(
        self, app_state: AppState, account: UserAccount
    ) -> None:
        result = selected_public_key_base64(app_state)
        assert base64.b64decode(result) == account.sign_key_pair.public_key

    def test_requires_connection(self, account: UserAccount) -> None:
        state = AppState(selected_user_account=account)
        with pytest.raises(IdentityError) as exc_info:
            selected_public_key_base64(state)
        assert exc_info.value.code == "not_connected"

    def test_requires_account(self) -> None:
        with pytest.raises(IdentityError, match="Please create an account first."):
            selected_public_key_base64(AppState(connection_status=True))
