"""Sign message manager: correlates caller requests with approval decisions.

A caller awaits ``add_unsigned_message_base16``. The request is queued in the
store, the approval surface is opened, and the caller's coroutine suspends on
a one-shot future registered under the request id. The approval surface later
calls ``approve_msg`` or ``reject_msg``; either one moves the request to a
terminal state, pops the future from the waiter map and resolves it. A second
decision on the same id raises instead of firing again.

Dependencies: signing.identity, signing.popup, signing.store, signing.types
Wired in: server/app.py → get_signer()
"""

from __future__ import annotations

import asyncio
import logging
import re
from collections.abc import Callable
from dataclasses import replace

from signbridge.signing.accounts import AppState
from signbridge.signing.identity import (
    b64_encode,
    resolve_active_public_key,
    selected_public_key_base64,
)
from signbridge.signing.popup import LoggingPopupManager, PopupManager
from signbridge.signing.store import IdAllocator, RequestStore, now_millis
from signbridge.signing.types import (
    KEY_CHANGED_MESSAGE,
    USER_DENIED_MESSAGE,
    InvalidPayloadError,
    NoAccountSelectedError,
    RequestAlreadyDecidedError,
    SignatureRejectedError,
    SignatureStateError,
    SigningRequest,
)

_log = logging.getLogger(__name__)

TIMED_OUT_MESSAGE = "Signature request timed out."
CANCELLED_MESSAGE = "Signature request was cancelled."

_HEX_PAYLOAD = re.compile(r"(?:[0-9a-fA-F]{2})*")


class SignMessageManager:
    """Queues signature requests and settles them on human approval."""

    def __init__(
        self,
        app_state: AppState,
        *,
        popup: PopupManager | None = None,
        id_allocator: IdAllocator | None = None,
        timeout_seconds: float | None = None,
        clock: Callable[[], int] = now_millis,
    ) -> None:
        self._app_state = app_state
        self._popup: PopupManager = popup or LoggingPopupManager()
        self._store = RequestStore(
            id_allocator or IdAllocator.random(),
            on_change=app_state.replace_to_sign_messages,
            clock=clock,
        )
        self._timeout_seconds = timeout_seconds
        self._waiters: dict[int, asyncio.Future[SigningRequest]] = {}
        self._timeouts: dict[int, asyncio.TimerHandle] = {}

    @property
    def app_state(self) -> AppState:
        return self._app_state

    def set_popup(self, popup: PopupManager) -> None:
        self._popup = popup

    # --- caller-facing ---

    async def add_unsigned_message_base16(
        self,
        raw_message_base16: str,
        public_key_base64: str | None = None,
    ) -> str:
        """Queue a payload for signing and wait for the human decision.

        Returns the base64 signature once approved. Raises
        ``SignatureRejectedError`` when the request is rejected, including
        key-rotation rejections, timeouts and cancellations.
        """
        if not _HEX_PAYLOAD.fullmatch(raw_message_base16):
            raise InvalidPayloadError()
        loop = asyncio.get_running_loop()
        msg_id = self._store.create(raw_message_base16, public_key_base64)
        waiter: asyncio.Future[SigningRequest] = loop.create_future()
        self._waiters[msg_id] = waiter
        if self._timeout_seconds is not None:
            self._timeouts[msg_id] = loop.call_later(self._timeout_seconds, self._expire, msg_id)
        self._open_popup()
        try:
            msg = await waiter
        except asyncio.CancelledError:
            self._abandon(msg_id)
            raise
        return _settle(msg)

    async def get_active_public_key(self) -> str:
        """Return the active key as algorithm-prefixed hex."""
        return resolve_active_public_key(self._app_state)

    async def get_selected_public_key_base64(self) -> str:
        return selected_public_key_base64(self._app_state)

    # --- approval surface ---

    def pending_messages(self) -> tuple[SigningRequest, ...]:
        return self._store.pending()

    def messages(self) -> tuple[SigningRequest, ...]:
        return self._store.messages()

    def get_message(self, msg_id: int) -> SigningRequest:
        return self._store.get(msg_id)

    def reject_msg(self, msg_id: int) -> None:
        msg = self._get_pending_msg(msg_id)
        self._finish(replace(msg, status="rejected", err_msg=USER_DENIED_MESSAGE))
        self._close_popup()

    def approve_msg(self, msg_id: int) -> None:
        msg = self._get_pending_msg(msg_id)
        account = self._app_state.selected_user_account
        if account is None:
            raise NoAccountSelectedError()
        key_pair = account.sign_key_pair
        active_public_key = b64_encode(key_pair.public_key)

        # The popup may outlive an account switch; never sign with a key the caller did not ask for.
        if msg.sign_public_key_base64 and msg.sign_public_key_base64 != active_public_key:
            self._finish(replace(msg, status="rejected", err_msg=KEY_CHANGED_MESSAGE))
            self._close_popup()
            return

        signature = key_pair.sign(bytes.fromhex(msg.data))
        self._finish(replace(msg, status="signed", raw_sig=b64_encode(signature)))
        self._close_popup()

    # --- internals ---

    def _get_pending_msg(self, msg_id: int) -> SigningRequest:
        msg = self._store.get(msg_id)
        if msg.is_terminal:
            raise RequestAlreadyDecidedError(msg_id, msg.status)
        return msg

    def _finish(self, msg: SigningRequest) -> None:
        self._store.update(msg)
        _log.info("Signature request %d %s", msg.id, msg.status)
        handle = self._timeouts.pop(msg.id, None)
        if handle is not None:
            handle.cancel()
        waiter = self._waiters.pop(msg.id, None)
        if waiter is None:
            _log.debug("No caller awaiting signature request %d", msg.id)
            return
        if not waiter.done():
            waiter.set_result(msg)

    def _expire(self, msg_id: int) -> None:
        self._timeouts.pop(msg_id, None)
        msg = self._store.get(msg_id)
        if msg.is_terminal:
            return
        _log.warning("Signature request %d timed out after %ss", msg_id, self._timeout_seconds)
        self._finish(replace(msg, status="rejected", err_msg=TIMED_OUT_MESSAGE))
        self._close_popup()

    def _abandon(self, msg_id: int) -> None:
        self._waiters.pop(msg_id, None)
        msg = self._store.get(msg_id)
        if not msg.is_terminal:
            _log.info("Caller cancelled signature request %d", msg_id)
            self._finish(replace(msg, status="rejected", err_msg=CANCELLED_MESSAGE))
            self._close_popup()
        else:
            handle = self._timeouts.pop(msg_id, None)
            if handle is not None:
                handle.cancel()

    def _open_popup(self) -> None:
        try:
            self._popup.open_popup("sign")
        except Exception:
            _log.warning("Failed to open approval surface", exc_info=True)

    def _close_popup(self) -> None:
        try:
            self._popup.close_popup()
        except Exception:
            _log.warning("Failed to close approval surface", exc_info=True)


def _settle(msg: SigningRequest) -> str:
    if msg.status == "signed" and msg.raw_sig is not None:
        return msg.raw_sig
    if msg.status == "rejected":
        raise SignatureRejectedError(msg.id, msg.err_msg or USER_DENIED_MESSAGE)
    _log.error("Signature request %d finished in unexpected state: %r", msg.id, msg)
    raise SignatureStateError(msg)
