from __future__ import annotations

from contextlib import contextmanager
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from apsync.session import Session


class SessionBusy(ValueError):
    pass


@contextmanager
def session_lock(session: "Session", *, timeout_s: float = 0.0):
    """Serialize access to a session between the tick loop and HTTP intents.

    Fails fast by default: a caller that cannot get the lock gets
    SessionBusy instead of stalling the game loop.
    """

    if timeout_s > 0:
        acquired = session.lock.acquire(timeout=timeout_s)
    else:
        acquired = session.lock.acquire(blocking=False)
    if not acquired:
        raise SessionBusy("Session is busy")
    try:
        yield session
    finally:
        session.lock.release()
