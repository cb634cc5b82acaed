"""FastAPI application setup and signer wiring."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager

from fastapi import FastAPI

from signbridge.config import SignerSettings, build_app_state
from signbridge.server.connections import ConnectionManager
from signbridge.server.popup import BroadcastPopupManager, EventPublisher
from signbridge.server.routes import configure_routes, router
from signbridge.signing.manager import SignMessageManager

_log = logging.getLogger(__name__)


def _build_signer() -> SignMessageManager:
    settings = SignerSettings.from_env()
    return SignMessageManager(
        build_app_state(settings),
        timeout_seconds=settings.approval_timeout_seconds,
    )


_manager = ConnectionManager()
_signer = _build_signer()
_publisher = EventPublisher(_manager)
_unsubscribe: Callable[[], None] | None = None


def _wire() -> None:
    """Point the signer's popup and pending-set events at the current connections."""
    global _publisher, _unsubscribe
    if _unsubscribe is not None:
        _unsubscribe()
    _publisher = EventPublisher(_manager)
    _signer.set_popup(BroadcastPopupManager(_publisher))
    _unsubscribe = _signer.app_state.subscribe(_publisher.publish_pending)
    configure_routes(_signer, _manager, _publisher)


def get_signer() -> SignMessageManager:
    """Return the global sign message manager."""
    return _signer


def set_signer(signer: SignMessageManager) -> None:
    """Replace the global sign message manager."""
    global _signer, _unsubscribe
    if _unsubscribe is not None:
        _unsubscribe()
        _unsubscribe = None
    _signer = signer
    _wire()


def get_connection_manager() -> ConnectionManager:
    """Return the global connection manager."""
    return _manager


def set_connection_manager(manager: ConnectionManager) -> None:
    """Replace the global connection manager."""
    global _manager
    _manager = manager
    _wire()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan: startup/shutdown hooks."""
    _log.info("Signbridge server starting")
    yield
    _log.info("Signbridge server shutting down")
    await _publisher.drain()


app = FastAPI(
    title="Signbridge",
    version="0.1.0",
    lifespan=lifespan,
)

_wire()
app.include_router(router)
