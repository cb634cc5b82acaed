"""In-memory signing request store with pending-set projection.

Dependencies: signing.types
Wired in: signing/manager.py → SignMessageManager
"""

from __future__ import annotations

import logging
import secrets
import time
from collections.abc import Callable

from signbridge.signing.types import (
    RequestAlreadyDecidedError,
    RequestNotFoundError,
    SigningRequest,
)

_log = logging.getLogger(__name__)

MAX_SAFE_INTEGER = 2**53 - 1

PendingCallback = Callable[[tuple[SigningRequest, ...]], None]


def now_millis() -> int:
    return int(time.time() * 1000)


class IdAllocator:
    """Monotonic request id counter that wraps at ``MAX_SAFE_INTEGER``."""

    def __init__(self, seed: int) -> None:
        self._next_id = seed

    @classmethod
    def random(cls) -> IdAllocator:
        # A random seed keeps ids from a restarted process apart from stale UI state.
        return cls(secrets.randbelow(MAX_SAFE_INTEGER))

    def allocate(self) -> int:
        self._next_id = self._next_id % MAX_SAFE_INTEGER
        msg_id = self._next_id
        self._next_id += 1
        return msg_id


class RequestStore:
    """Ordered collection of signing requests keyed by id.

    Every mutation pushes the freshly derived pending set to ``on_change``.
    Requests are kept after they reach a terminal state.
    """

    def __init__(
        self,
        allocator: IdAllocator,
        *,
        on_change: PendingCallback | None = None,
        clock: Callable[[], int] = now_millis,
    ) -> None:
        self._allocator = allocator
        self._on_change = on_change
        self._clock = clock
        self._messages: dict[int, SigningRequest] = {}

    def create(self, data: str, public_key_base64: str | None = None) -> int:
        msg_id = self._allocator.allocate()
        while msg_id in self._messages:
            msg_id = self._allocator.allocate()
        self._messages[msg_id] = SigningRequest(
            id=msg_id,
            data=data,
            time=self._clock(),
            sign_public_key_base64=public_key_base64,
        )
        _log.info("Queued signature request %d", msg_id)
        self._refresh()
        return msg_id

    def get(self, msg_id: int) -> SigningRequest:
        msg = self._messages.get(msg_id)
        if msg is None:
            raise RequestNotFoundError(msg_id)
        return msg

    def update(self, msg: SigningRequest) -> None:
        current = self.get(msg.id)
        if current.is_terminal:
            raise RequestAlreadyDecidedError(msg.id, current.status)
        self._messages[msg.id] = msg
        self._refresh()

    def pending(self) -> tuple[SigningRequest, ...]:
        return tuple(msg for msg in self._messages.values() if msg.status == "unsigned")

    def messages(self) -> tuple[SigningRequest, ...]:
        return tuple(self._messages.values())

    def _refresh(self) -> None:
        if self._on_change is not None:
            self._on_change(self.pending())
