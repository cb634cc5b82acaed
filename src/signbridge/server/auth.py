"""Access control for the approval surface.

Whoever holds the approval surface decides what gets signed, so
``/api/pending`` and ``/api/ws/approvals`` check ``X-API-Key`` against the
configured approval key. ``/api/sign`` and the public-key routes stay open.
"""

from __future__ import annotations

import secrets

from fastapi import HTTPException, Request, status
from fastapi.datastructures import Headers

from signbridge.config import read_api_key

UNAUTHORIZED_CLOSE_CODE = 4001


def is_approver(headers: Headers) -> bool:
    """True when approval auth is disabled or the headers carry the approval key."""
    expected = read_api_key()
    if expected is None:
        return True
    provided = headers.get("X-API-Key", "")
    return bool(provided) and secrets.compare_digest(provided, expected)


def require_approver(request: Request) -> None:
    if not is_approver(request.headers):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"code": "unauthorized", "message": "Invalid or missing API key"},
        )
