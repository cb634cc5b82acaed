"""Approval surface window lifecycle."""

from __future__ import annotations

import logging
from typing import Literal, Protocol

_log = logging.getLogger(__name__)

PopupKind = Literal["sign"]


class PopupManager(Protocol):
    """Opens and closes the approval surface. Both calls are fire-and-forget."""

    def open_popup(self, kind: PopupKind) -> None: ...

    def close_popup(self) -> None: ...


class LoggingPopupManager:
    """Popup adapter for headless use: records the request and nothing else."""

    def open_popup(self, kind: PopupKind) -> None:
        _log.info("Approval surface requested (%s)", kind)

    def close_popup(self) -> None:
        _log.info("Approval surface close requested")
