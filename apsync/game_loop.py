from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass

from apsync.lock import SessionBusy, session_lock
from apsync.session import Session

logger = logging.getLogger(__name__)

TICK_RATE = 35


@dataclass(frozen=True, slots=True)
class LoopConfig:
    tick_rate: int = TICK_RATE
    # Upper bound on how long a tick waits for an HTTP intent to finish.
    lock_timeout_s: float = 0.5
    # Persist every N ticks; 0 disables periodic saves.
    autosave_every: int = 0


def run_ticks(
    session: Session,
    *,
    ticks: int | None = None,
    config: LoopConfig | None = None,
    clock: Callable[[], float] = time.monotonic,
    sleep: Callable[[float], None] = time.sleep,
    should_stop: Callable[[], bool] = lambda: False,
) -> int:
    """Drive `session.update()` at a fixed rate.

    Stand-in for a host game loop (headless relays, tests). Runs until `ticks`
    updates have happened or `should_stop()` is true. Returns the tick count.
    """

    cfg = config or LoopConfig()
    period = 1.0 / cfg.tick_rate
    done = 0
    next_at = clock()

    while (ticks is None or done < ticks) and not should_stop():
        done += 1
        try:
            with session_lock(session, timeout_s=cfg.lock_timeout_s):
                session.update()
            if cfg.autosave_every and done % cfg.autosave_every == 0:
                with session_lock(session, timeout_s=cfg.lock_timeout_s):
                    session.save()
        except SessionBusy:
            logger.warning("Session busy for %.2fs; skipping tick %d", cfg.lock_timeout_s, done)

        next_at += period
        delay = next_at - clock()
        if delay > 0:
            sleep(delay)
        else:
            # Fell behind; don't try to catch up with a burst of ticks.
            next_at = clock()

    logger.debug("Tick loop stopped after %d ticks", done)
    return done
