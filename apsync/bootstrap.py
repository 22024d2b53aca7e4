from __future__ import annotations

import logging
import random
import time
from collections.abc import Callable
from typing import TYPE_CHECKING

from apsync.api.models import SessionState
from apsync.client.base import ConnectionStatus
from apsync.ingestion import register_handlers
from apsync.session_store import load_snapshot

if TYPE_CHECKING:
    from apsync.session import Session

logger = logging.getLogger(__name__)

CLIENT_VERSION = (0, 4, 1)

FLIP_NONE = 0
FLIP_ALL = 1
FLIP_SEEDED = 2

Clock = Callable[[], float]
Sleep = Callable[[float], None]


class BootstrapError(RuntimeError):
    """Initialization cannot continue; no usable session exists."""


def hash_seed(text: str) -> int:
    """djb2 string hash (h = h*33 + c, from 5381), wrapped to 64 bits."""

    h = 5381
    for c in text.encode("utf-8"):
        h = (h * 33 + c) & 0xFFFFFFFFFFFFFFFF
    return h


def save_dir_name(*, seed_name: str, slot: str) -> str:
    return f"AP_{seed_name}_{slot.encode('utf-8').hex().upper()}"


def resolve_level_flips(*, state: SessionState, seed: str) -> None:
    """Set each level's `flipped` flag from the slot's flip mode.

    Seeded flips are recomputed at every start instead of being persisted, so
    the same seed and slot always produce the same layout.
    """

    if state.flip_levels == FLIP_ALL:
        for _ep, _map, level in state.iter_levels():
            level.flipped = True
    elif state.flip_levels == FLIP_SEEDED:
        rng = random.Random(hash_seed(seed))
        for _ep, _map, level in state.iter_levels():
            level.flipped = rng.randrange(2) == 1


def wait_for_connection(session: "Session", *, clock: Clock, sleep: Sleep) -> None:
    settings = session.settings
    start = clock()
    while True:
        status = session.client.connection_status()
        if status == ConnectionStatus.authenticated:
            logger.info("Authenticated as %s on %s", settings.slot, settings.server)
            return
        if status == ConnectionStatus.connection_refused:
            raise BootstrapError("Failed to connect, connection refused")
        sleep(settings.poll_interval_s)
        if clock() - start > settings.connect_timeout_s:
            raise BootstrapError("Failed to connect, timeout")


def prepare_save_dir(session: "Session") -> None:
    try:
        room = session.client.room_info()
    except LookupError as e:
        raise BootstrapError(str(e)) from e

    session.seed = save_dir_name(seed_name=room.seed_name, slot=session.settings.slot)
    session.save_dir = session.settings.save_root / session.seed
    session.was_connected = True
    try:
        session.save_dir.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        # Saving will fail later and be reported there; play can go on.
        logger.error("Could not create save directory %s: %s", session.save_dir, e)

    if load_snapshot(state=session.state, profile=session.profile, save_dir=session.save_dir):
        logger.info("Loaded session state from %s", session.save_dir)


def replay_inbox(session: "Session") -> None:
    """Catch up on the inbox. Events the snapshot already holds restore state silently."""

    session.client.set_replay_boundary(session.state.inbox_cursor)
    session.client.poll()


def ensure_episode_selected(state: SessionState) -> None:
    if state.episodes and not any(state.episodes):
        state.episodes[0] = True


def scout_locations(session: "Session", *, clock: Clock, sleep: Sleep) -> None:
    """Ask which locations hold progression items, once per save slot."""

    state = session.state
    if state.progressive_locations:
        return

    location_ids: list[int] = []
    for ep in range(1, session.profile.episode_count + 1):
        if state.is_episode_enabled(ep):
            location_ids.extend(session.profile.locations_for_episode(ep))

    logger.info("Scouting %d locations", len(location_ids))
    session.client.send_location_scouts(location_ids, 0)

    settings = session.settings
    start = clock()
    while not state.progressive_locations:
        session.update()
        sleep(settings.poll_interval_s)
        if clock() - start > settings.scout_timeout_s:
            raise BootstrapError("Failed to connect, timeout waiting for location scouts")


def bootstrap(session: "Session", *, clock: Clock = time.monotonic, sleep: Sleep = time.sleep) -> None:
    """Connect, authenticate, load the snapshot and prepare the level layout.

    Raises BootstrapError on refusal or when a deadline passes.
    """

    settings = session.settings
    client = session.client

    client.set_client_version(CLIENT_VERSION)
    register_handlers(session)
    client.connect(server=settings.server, game=settings.game, slot=settings.slot, password=settings.password)
    client.set_death_link_supported(True)

    wait_for_connection(session, clock=clock, sleep=sleep)
    prepare_save_dir(session)
    replay_inbox(session)
    ensure_episode_selected(session.state)
    resolve_level_flips(state=session.state, seed=session.seed)
    scout_locations(session, clock=clock, sleep=sleep)
