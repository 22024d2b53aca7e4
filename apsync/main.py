from __future__ import annotations

import logging
import os
import threading

from fastapi import FastAPI

from apsync.api.deps import attach_session
from apsync.api.routes import router
from apsync.client.redis_client import RedisMessagingClient
from apsync.game_loop import run_ticks
from apsync.infra.redis_client import create_redis
from apsync.session import Session, open_session
from apsync.settings import settings_from_env

app = FastAPI(title="apsync", version="0.1.0")
app.include_router(router)
# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

_stop = threading.Event()
_loop_thread: threading.Thread | None = None
_session: Session | None = None


def _autostart_enabled() -> bool:
    return os.environ.get("APSYNC_AUTOSTART", "").strip().lower() in {"1", "true", "yes"}


@app.on_event("startup")
def _startup() -> None:
    """Headless mode: connect from APSYNC_* env vars and tick in a background thread."""

    global _loop_thread, _session
    if not _autostart_enabled():
        return

    settings = settings_from_env()
    client = RedisMessagingClient(r=create_redis(), slot=settings.slot)
    _session = open_session(settings=settings, client=client)
    if _session is None:
        logger.error("Session initialization failed; serving without a session")
        return

    attach_session(_session)
    _stop.clear()
    _loop_thread = threading.Thread(
        target=run_ticks, args=(_session,), kwargs={"should_stop": _stop.is_set}, daemon=True
    )
    _loop_thread.start()


@app.on_event("shutdown")
def _shutdown() -> None:
    global _loop_thread, _session
    _stop.set()
    if _loop_thread is not None:
        _loop_thread.join(timeout=2.0)
        _loop_thread = None
    if _session is not None:
        _session.shutdown()
        attach_session(None)
        _session = None


@app.get("/info")
async def info() -> dict[str, str]:
    return {"name": "apsync", "version": "0.1.0"}
