"""Environment configuration for the signer process.

Dependencies: signing.accounts
Wired in: cli.py → main(), server/app.py → module init
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field

from signbridge.signing.accounts import AppState, SignKeyPair, UserAccount

_DEFAULT_HOST = "127.0.0.1"
_DEFAULT_PORT = 8430
_DEFAULT_KEY_ALGORITHM = "ed25519"
_VALID_KEY_ALGORITHMS = frozenset({"ed25519", "secp256k1"})
_DEFAULT_ACCOUNT_NAME = "default"


@dataclass(frozen=True)
class SignerSettings:
    """Resolved signer configuration."""

    host: str = _DEFAULT_HOST
    port: int = _DEFAULT_PORT
    approval_timeout_seconds: int | None = None
    key_algorithm: str = _DEFAULT_KEY_ALGORITHM
    secret_key_hex: str | None = None
    account_name: str = _DEFAULT_ACCOUNT_NAME
    api_key: str | None = field(default=None, repr=False)

    @classmethod
    def from_env(cls) -> SignerSettings:
        algorithm = os.getenv("SIGNBRIDGE_KEY_ALGORITHM", _DEFAULT_KEY_ALGORITHM).strip().lower()
        if algorithm not in _VALID_KEY_ALGORITHMS:
            raise SystemExit(
                "SIGNBRIDGE_KEY_ALGORITHM must be one of: "
                + ", ".join(sorted(_VALID_KEY_ALGORITHMS))
            )
        return cls(
            host=os.getenv("SIGNBRIDGE_HOST", _DEFAULT_HOST),
            port=_read_positive_int("SIGNBRIDGE_PORT", _DEFAULT_PORT),
            approval_timeout_seconds=_read_optional_positive_int(
                "SIGNBRIDGE_APPROVAL_TIMEOUT_SECONDS"
            ),
            key_algorithm=algorithm,
            secret_key_hex=os.getenv("SIGNBRIDGE_SECRET_KEY_HEX") or None,
            account_name=os.getenv("SIGNBRIDGE_ACCOUNT_NAME", _DEFAULT_ACCOUNT_NAME),
            api_key=read_api_key(),
        )


def build_app_state(settings: SignerSettings) -> AppState:
    """Create signer state, preselecting the configured account if any."""
    if settings.secret_key_hex is None:
        return AppState()
    try:
        key_pair = SignKeyPair.from_secret_hex(settings.key_algorithm, settings.secret_key_hex)
    except ValueError as exc:
        raise SystemExit(
            f"SIGNBRIDGE_SECRET_KEY_HEX is not a valid {settings.key_algorithm} key."
        ) from exc
    account = UserAccount(name=settings.account_name, sign_key_pair=key_pair)
    return AppState(connection_status=True, selected_user_account=account)


def read_api_key() -> str | None:
    """Return the approval-surface key, or None when approval auth is disabled."""
    return os.getenv("SIGNBRIDGE_API_KEY", "").strip() or None


def _read_positive_int(name: str, default: int) -> int:
    value = _read_optional_positive_int(name)
    return default if value is None else value


def _read_optional_positive_int(name: str) -> int | None:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return None
    try:
        value = int(raw)
    except ValueError as exc:
        raise SystemExit(f"{name} must be an integer.") from exc
    if value <= 0:
        raise SystemExit(f"{name} must be > 0.")
    return value
