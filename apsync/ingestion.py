"""Server event handlers.

State mutation happens as soon as an event arrives. The player-visible part
of an item (the in-game grant plus its notification icon) only happens while
gameplay is active; otherwise the item id waits in `SessionState.item_queue`.
"""
from __future__ import annotations

import logging
from collections.abc import Callable
from functools import partial
from typing import TYPE_CHECKING

from apsync.api.models import SessionState
from apsync.client.base import NetworkItem
from apsync.profiles.games import (
    BACKPACK_TYPE,
    LEVEL_COMPLETE_TYPE,
    LEVEL_UNLOCK_TYPE,
)

if TYPE_CHECKING:
    from apsync.session import Session

logger = logging.getLogger(__name__)

PROGRESSION_FLAG = 0b1


def receive_item(session: "Session", item_id: int, notify: bool) -> None:
    profile = session.profile
    state = session.state

    item = profile.get_item(item_id)
    if item is None:
        return

    doom_type = item.doom_type
    level = state.level(item.ep, item.map) if item.ep and item.map else None
    level_name = profile.level_info(item.ep, item.map).name if level is not None else None
    notif_text: str | None = None

    key_bit = profile.key_bit(doom_type)
    if key_bit is not None and level is not None:
        level.keys[key_bit] = True
        notif_text = level_name

    if doom_type == profile.constants.map_type and level is not None:
        level.has_map = True
        notif_text = level_name

    if doom_type == BACKPACK_TYPE:
        state.player.backpack = True
        state.recompute_max_ammo(profile.max_ammos)

    weapon_slot = profile.weapon_slot(doom_type)
    if weapon_slot is not None:
        state.player.weapon_owned[weapon_slot] = True

    # Inventory items are not tracked here; the game adds them up on grant.

    if doom_type == LEVEL_UNLOCK_TYPE and level is not None:
        level.unlocked = True
        notif_text = level_name

    if doom_type == LEVEL_COMPLETE_TYPE and level is not None:
        level.completed = True

    if not notify:
        return

    if not session.in_game:
        state.item_queue.append(item_id)
        return

    session.settings.give_item_callback(doom_type, item.ep, item.map)

    sprite = profile.sprite_for(doom_type)
    if sprite is not None:
        session.notifications.push(sprite=sprite, text=notif_text or "")


def drain_item_queue(session: "Session") -> int:
    """Deliver every queued item, oldest first. Returns how many were delivered."""

    delivered = 0
    queue = session.state.item_queue
    while session.in_game and queue:
        item_id = queue.pop(0)
        receive_item(session, item_id, True)
        delivered += 1
    return delivered


def receive_location(session: "Session", location_id: int) -> None:
    found = session.profile.find_location(location_id)
    if found is None:
        logger.warning("Checked location id not found: %d", location_id)
        return

    ep, map_, index = found
    # Completion comes through the level-complete item, not the check list.
    if index < 0:
        return

    level = session.state.level(ep, map_)
    if level.is_checked(index):
        return
    if len(level.checks) >= session.profile.check_max:
        logger.warning("E%dM%d already has %d checks; ignoring index %d", ep, map_, len(level.checks), index)
        return

    level.checks.append(index)
    level.check_count = len(level.checks)


def receive_location_info(session: "Session", items: list[NetworkItem]) -> None:
    for item in items:
        if item.flags & PROGRESSION_FLAG:
            session.state.progressive_locations.add(item.location)


# ---- slot data ----


def _set_int(attr: str, state: SessionState, value: int) -> None:
    setattr(state, attr, value)


def _set_flag(attr: str, state: SessionState, value: int) -> None:
    setattr(state, attr, bool(value))


def _set_episode(n: int, state: SessionState, value: int) -> None:
    # Games with fewer episodes still receive episode2..4; those are ignored.
    if n <= len(state.episodes):
        state.episodes[n - 1] = bool(value)


SLOT_DATA_FIELDS: dict[str, Callable[[SessionState, int], None]] = {
    "difficulty": partial(_set_int, "difficulty"),
    "random_monsters": partial(_set_int, "random_monsters"),
    "random_pickups": partial(_set_int, "random_items"),
    "flip_levels": partial(_set_int, "flip_levels"),
    "episode1": partial(_set_episode, 1),
    "episode2": partial(_set_episode, 2),
    "episode3": partial(_set_episode, 3),
    "episode4": partial(_set_episode, 4),
    "two_ways_keydoors": partial(_set_flag, "two_ways_keydoors"),
}


def apply_slot_data(session: "Session", key: str, value: int) -> None:
    setter = SLOT_DATA_FIELDS.get(key)
    if setter is None:
        logger.debug("Ignoring unknown slot data %r", key)
        return
    setter(session.state, value)


def register_handlers(session: "Session") -> None:
    """Wire the session's event handlers into its messaging client."""

    client = session.client
    client.set_item_received_callback(partial(receive_item, session))
    client.set_location_checked_callback(partial(receive_location, session))
    client.set_location_info_callback(partial(receive_location_info, session))
    for key in SLOT_DATA_FIELDS:
        client.register_slot_data_callback(key, partial(apply_slot_data, session, key))
