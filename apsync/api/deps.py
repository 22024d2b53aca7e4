from __future__ import annotations

from fastapi import HTTPException, status

from apsync.session import Session


_SESSION: Session | None = None


def attach_session(session: Session | None) -> None:
    """Expose `session` to the HTTP routes (None detaches)."""

    global _SESSION
    _SESSION = session


def get_session() -> Session:
    if _SESSION is None:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="No active session")
    return _SESSION
