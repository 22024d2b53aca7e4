from __future__ import annotations

import logging
import threading
import time
from pathlib import Path

from apsync.api.models import LevelState, SessionState
from apsync.bootstrap import BootstrapError, Clock, Sleep, bootstrap
from apsync.client.base import MessagingClient
from apsync.deathlink import DeathLinkBridge
from apsync.ingestion import drain_item_queue
from apsync.messages import MessageRelay
from apsync.notifications import NotificationIcon, NotificationScheduler
from apsync.profiles.games import LEVEL_COMPLETE_INDEX
from apsync.profiles.registry import GameProfile, LevelInfo, ProfileLoadError, load_game_profile
from apsync.session_store import save_snapshot
from apsync.settings import SessionSettings

logger = logging.getLogger(__name__)


class Session:
    """One slot's synchronized progress, from connection to final save.

    Everything here runs on the thread that owns the game loop; the HTTP
    surface serializes with it through `apsync.lock.session_lock`.
    """

    def __init__(self, *, settings: SessionSettings, client: MessagingClient, profile: GameProfile) -> None:
        self.settings = settings
        self.client = client
        self.profile = profile
        self.state = SessionState.for_profile(profile)

        self.notifications = NotificationScheduler()
        self.messages = MessageRelay(settings.message_callback)
        self.deathlink = DeathLinkBridge(client)

        self.in_game = False
        self.initialized = False
        self.was_connected = False
        self.seed = ""
        self.save_dir: Path | None = None

        self.lock = threading.Lock()

    # ---- lifecycle ----

    def initialize(self, *, clock: Clock = time.monotonic, sleep: Sleep = time.sleep) -> bool:
        try:
            bootstrap(self, clock=clock, sleep=sleep)
        except BootstrapError as e:
            logger.error("%s", e)
            # Nothing from a half-finished bootstrap survives.
            self.state = SessionState.for_profile(self.profile)
            self.notifications.clear()
            self.was_connected = False
            self.seed = ""
            self.save_dir = None
            return False

        self.initialized = True
        return True

    def save(self) -> bool:
        if not self.was_connected or self.save_dir is None:
            return False
        self.state.inbox_cursor = self.client.last_event_id()
        return save_snapshot(state=self.state, profile=self.profile, save_dir=self.save_dir)

    def shutdown(self) -> bool:
        saved = self.save()
        self.initialized = False
        return saved

    def update(self) -> None:
        """Advance one tick. Never blocks."""

        if self.initialized:
            self.messages.flush()

        self.client.poll()
        self.messages.drain(self.client, initialized=self.initialized)

        if self.in_game:
            drain_item_queue(self)

        self.notifications.tick()

    def set_in_game(self, in_game: bool) -> None:
        self.in_game = in_game

    # ---- queries ----

    def get_seed(self) -> str:
        return self.seed

    def level_info(self, ep: int, map: int) -> LevelInfo:
        return self.profile.level_info(ep, map)

    def level_state(self, ep: int, map: int) -> LevelState:
        return self.state.level(ep, map)

    def is_location_progressive(self, ep: int, map: int, index: int) -> bool:
        loc_id = self.profile.location_id(ep, map, index)
        if loc_id is None:
            return False
        return loc_id in self.state.progressive_locations

    def notification_icons(self) -> tuple[NotificationIcon, ...]:
        return self.notifications.icons()

    # ---- player actions ----

    def check_location(self, ep: int, map: int, index: int) -> None:
        loc_id = self.profile.location_id(ep, map, index)
        if loc_id is None:
            return
        # The check list itself is only updated when the server echoes it back.
        if index >= 0 and self.state.level(ep, map).is_checked(index):
            logger.info("Location already checked: E%dM%d #%d", ep, map, index)
        self.client.send_item(loc_id)

    def complete_level(self, ep: int, map: int) -> None:
        self.state.level(ep, map).completed = True
        self.check_location(ep, map, LEVEL_COMPLETE_INDEX)

    def check_victory(self) -> bool:
        if self.state.victory:
            return True

        for ep, _map, level in self.state.iter_levels():
            if self.state.is_episode_enabled(ep) and not level.completed:
                return False

        self.state.victory = True
        self.client.story_complete()
        self.settings.victory_callback()
        return True

    def send_message(self, text: str) -> None:
        self.client.send_say(text)

    def on_death(self) -> None:
        self.deathlink.on_death()

    def clear_death(self) -> None:
        self.deathlink.clear_death()

    def should_die(self) -> bool:
        return self.deathlink.should_die()

    # ---- level select ----

    def level_save_path(self, ep: int, map: int) -> Path:
        if self.save_dir is None:
            raise RuntimeError("Session has no save directory yet")
        if self.profile.constants.commercial:
            return self.save_dir / f"save_MAP{map:02d}.dsg"
        return self.save_dir / f"save_E{ep}M{map}.dsg"

    def enter_level(self, ep: int, map: int) -> Path | None:
        """Start playing a level; returns its in-game save file if one exists."""

        if not self.state.is_episode_enabled(ep):
            raise ValueError(f"Episode {ep} is not enabled")
        if not self.state.level(ep, map).unlocked:
            raise ValueError(f"Level E{ep}M{map} is locked")

        self.state.ep = ep
        self.state.map = map
        self.in_game = True

        # Victory may have been earned while in the menus.
        self.check_victory()

        path = self.level_save_path(ep, map)
        return path if path.exists() else None

    def return_to_level_select(self) -> None:
        self.state.ep = 0
        self.state.map = 0
        self.in_game = False


def open_session(
    *,
    settings: SessionSettings,
    client: MessagingClient,
    clock: Clock = time.monotonic,
    sleep: Sleep = time.sleep,
) -> Session | None:
    """Resolve the game profile and run the bootstrap.

    Returns None on any fatal initialization error.
    """

    try:
        profile = load_game_profile(game=settings.game, root=settings.profile_root)
    except ProfileLoadError as e:
        logger.error("%s", e)
        return None

    session = Session(settings=settings, client=client, profile=profile)
    if not session.initialize(clock=clock, sleep=sleep):
        return None
    return session
