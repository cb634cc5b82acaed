"""Account store boundary: signing key pairs and observable signer state.

Dependencies: signing.types
Wired in: config.py → build_app_state(), signing/manager.py → SignMessageManager
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from typing import Literal

from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey
from cryptography.hazmat.primitives.asymmetric.utils import decode_dss_signature
from cryptography.hazmat.primitives.serialization import Encoding, PublicFormat

from signbridge.signing.types import SigningRequest

_log = logging.getLogger(__name__)

KeyAlgorithm = Literal["ed25519", "secp256k1"]
PendingListener = Callable[[tuple[SigningRequest, ...]], None]

_SECP256K1_SCALAR_BYTES = 32

PrivateKey = Ed25519PrivateKey | ec.EllipticCurvePrivateKey


@dataclass(frozen=True)
class SignKeyPair:
    """Public key bytes plus the private key used for detached signatures."""

    algorithm: KeyAlgorithm
    public_key: bytes
    private_key: PrivateKey = field(repr=False, compare=False)

    @classmethod
    def from_private_key(cls, private_key: PrivateKey) -> SignKeyPair:
        if isinstance(private_key, Ed25519PrivateKey):
            public_key = private_key.public_key().public_bytes(
                encoding=Encoding.Raw, format=PublicFormat.Raw
            )
            return cls(algorithm="ed25519", public_key=public_key, private_key=private_key)
        if isinstance(private_key, ec.EllipticCurvePrivateKey):
            if not isinstance(private_key.curve, ec.SECP256K1):
                raise ValueError(f"Unsupported elliptic curve: {private_key.curve.name}")
            public_key = private_key.public_key().public_bytes(
                encoding=Encoding.X962, format=PublicFormat.CompressedPoint
            )
            return cls(algorithm="secp256k1", public_key=public_key, private_key=private_key)
        raise TypeError(f"Unsupported private key type: {type(private_key).__name__}")

    @classmethod
    def from_secret_hex(cls, algorithm: str, secret_hex: str) -> SignKeyPair:
        """Load a key pair from raw secret key material encoded as hex."""
        secret = bytes.fromhex(secret_hex)
        if algorithm == "ed25519":
            return cls.from_private_key(Ed25519PrivateKey.from_private_bytes(secret))
        if algorithm == "secp256k1":
            scalar = int.from_bytes(secret, "big")
            return cls.from_private_key(ec.derive_private_key(scalar, ec.SECP256K1()))
        raise ValueError(f"Unsupported key algorithm: {algorithm}")

    def sign(self, data: bytes) -> bytes:
        """Return a detached signature over *data*.

        secp256k1 signatures are ECDSA over SHA-256 in fixed-width ``r || s``
        form so both families produce a 64-byte value.
        """
        if isinstance(self.private_key, Ed25519PrivateKey):
            return self.private_key.sign(data)
        der = self.private_key.sign(data, ec.ECDSA(hashes.SHA256()))
        r, s = decode_dss_signature(der)
        return r.to_bytes(_SECP256K1_SCALAR_BYTES, "big") + s.to_bytes(
            _SECP256K1_SCALAR_BYTES, "big"
        )


@dataclass(frozen=True)
class UserAccount:
    """A named account owning one signing key pair."""

    name: str
    sign_key_pair: SignKeyPair


class AppState:
    """Process-wide signer state shared with the approval surface.

    ``to_sign_messages`` is a read-only projection of the pending requests.
    Only the request store replaces it; observers subscribe to be told.
    """

    def __init__(
        self,
        *,
        connection_status: bool = False,
        selected_user_account: UserAccount | None = None,
    ) -> None:
        self.connection_status = connection_status
        self.selected_user_account = selected_user_account
        self._to_sign_messages: tuple[SigningRequest, ...] = ()
        self._listeners: list[PendingListener] = []

    @property
    def to_sign_messages(self) -> tuple[SigningRequest, ...]:
        return self._to_sign_messages

    def connect(self) -> None:
        self.connection_status = True

    def disconnect(self) -> None:
        self.connection_status = False

    def select_account(self, account: UserAccount | None) -> None:
        self.selected_user_account = account
        _log.info("Selected account: %s", account.name if account else None)

    def subscribe(self, listener: PendingListener) -> Callable[[], None]:
        """Register a pending-set observer; returns a function that removes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def replace_to_sign_messages(self, messages: Iterable[SigningRequest]) -> None:
        self._to_sign_messages = tuple(messages)
        for listener in list(self._listeners):
            try:
                listener(self._to_sign_messages)
            except Exception:
                _log.exception("Pending-set listener failed")
