from __future__ import annotations

import logging
from pathlib import Path
from typing import Annotated, Any

from pydantic import BaseModel, BeforeValidator, Field, ValidationError

from apsync.api.models import SessionState
from apsync.profiles.games import LEVEL_COMPLETE_INDEX
from apsync.profiles.registry import GameProfile

logger = logging.getLogger(__name__)

SNAPSHOT_FILENAME = "apstate.json"


# ---- lenient document schema ----
#
# Snapshots are not versioned. Anything of the wrong type reads as "absent"
# so partial or older documents still load.


def _int_or_none(v: Any) -> int | None:
    if isinstance(v, bool):
        return int(v)
    if isinstance(v, int):
        return v
    return None


def _list_or_empty(v: Any) -> list:
    return v if isinstance(v, list) else []


def _str_or_none(v: Any) -> str | None:
    return v if isinstance(v, str) and v else None


def _dict_or_none(v: Any) -> dict | BaseModel | None:
    # Built documents pass their sub-models in directly.
    return v if isinstance(v, (dict, BaseModel)) else None


LenientInt = Annotated[int | None, BeforeValidator(_int_or_none)]
LenientInts = Annotated[list[LenientInt], BeforeValidator(_list_or_empty)]


class InventorySlotDoc(BaseModel):
    type: LenientInt = None
    count: LenientInt = None


class PlayerDoc(BaseModel):
    health: LenientInt = None
    armor_points: LenientInt = None
    armor_type: LenientInt = None
    backpack: LenientInt = None
    ready_weapon: LenientInt = None
    kill_count: LenientInt = None
    item_count: LenientInt = None
    secret_count: LenientInt = None
    powers: LenientInts = Field(default_factory=list)
    weapon_owned: LenientInts = Field(default_factory=list)
    ammo: LenientInts = Field(default_factory=list)
    inventory: Annotated[
        list[Annotated[InventorySlotDoc | None, BeforeValidator(_dict_or_none)]],
        BeforeValidator(_list_or_empty),
    ] = Field(default_factory=list)


class LevelDoc(BaseModel):
    completed: LenientInt = None
    keys0: LenientInt = None
    keys1: LenientInt = None
    keys2: LenientInt = None
    check_count: LenientInt = None
    has_map: LenientInt = None
    unlocked: LenientInt = None
    special: LenientInt = None
    checks: LenientInts = Field(default_factory=list)


LevelDocs = Annotated[
    list[Annotated[LevelDoc | None, BeforeValidator(_dict_or_none)]],
    BeforeValidator(_list_or_empty),
]


class SnapshotDocument(BaseModel):
    player: Annotated[PlayerDoc | None, BeforeValidator(_dict_or_none)] = None
    episodes: Annotated[list[LevelDocs], BeforeValidator(_list_or_empty)] = Field(default_factory=list)
    item_queue: LenientInts = Field(default_factory=list)
    ep: LenientInt = None
    map: LenientInt = None
    enabled_episodes: LenientInts = Field(default_factory=list)
    progressive_locations: LenientInts = Field(default_factory=list)
    victory: LenientInt = None
    # Last inbox entry whose effects this snapshot already holds.
    inbox_cursor: Annotated[str | None, BeforeValidator(_str_or_none)] = None


def snapshot_path(save_dir: Path) -> Path:
    return save_dir / SNAPSHOT_FILENAME


# ---- serialize ----


def _level_doc(level) -> LevelDoc:
    return LevelDoc(
        completed=int(level.completed),
        keys0=int(level.keys[0]),
        keys1=int(level.keys[1]),
        keys2=int(level.keys[2]),
        check_count=level.check_count,
        has_map=int(level.has_map),
        unlocked=int(level.unlocked),
        special=int(level.special),
        checks=list(level.checks),
    )


def to_document(*, state: SessionState, profile: GameProfile) -> SnapshotDocument:
    p = state.player
    transient = profile.constants.transient_inventory_types
    player = PlayerDoc(
        health=p.health,
        armor_points=p.armor_points,
        armor_type=p.armor_type,
        backpack=int(p.backpack),
        ready_weapon=p.ready_weapon,
        kill_count=p.kill_count,
        item_count=p.item_count,
        secret_count=p.secret_count,
        powers=list(p.powers),
        weapon_owned=[int(w) for w in p.weapon_owned],
        ammo=list(p.ammo),
        inventory=[InventorySlotDoc(type=s.type, count=s.count) for s in p.inventory if s.type not in transient],
    )
    return SnapshotDocument(
        player=player,
        episodes=[[_level_doc(level) for level in maps] for maps in state.level_states],
        item_queue=list(state.item_queue),
        ep=state.ep,
        map=state.map,
        enabled_episodes=[int(e) for e in state.episodes],
        progressive_locations=sorted(state.progressive_locations),
        victory=int(state.victory),
        inbox_cursor=state.inbox_cursor,
    )


def save_snapshot(*, state: SessionState, profile: GameProfile, save_dir: Path) -> bool:
    """Write the snapshot; failures are logged and reported as False, never raised."""

    path = snapshot_path(save_dir)
    doc = to_document(state=state, profile=profile)
    try:
        path.write_text(doc.model_dump_json(indent=2), encoding="utf-8")
    except OSError as e:
        logger.error("Failed to save session state to %s: %s", path, e)
        return False
    return True


# ---- deserialize ----


def _overwrite(current: int, value: int | None) -> int:
    return current if value is None else value


def _or(current: bool, value: int | None) -> bool:
    return bool(current) or bool(value)


def _merge_list(current: list, values: list[int | None], merge) -> None:
    for i, value in enumerate(values[: len(current)]):
        current[i] = merge(current[i], value)


def merge_document(*, state: SessionState, profile: GameProfile, doc: SnapshotDocument) -> None:
    """Merge a snapshot into `state`.

    Numbers overwrite when present; flags only ever go from False to True.
    """

    if doc.player is not None:
        pd, p = doc.player, state.player
        p.health = _overwrite(p.health, pd.health)
        p.armor_points = _overwrite(p.armor_points, pd.armor_points)
        p.armor_type = _overwrite(p.armor_type, pd.armor_type)
        p.backpack = _or(p.backpack, pd.backpack)
        p.ready_weapon = _overwrite(p.ready_weapon, pd.ready_weapon)
        p.kill_count = _overwrite(p.kill_count, pd.kill_count)
        p.item_count = _overwrite(p.item_count, pd.item_count)
        p.secret_count = _overwrite(p.secret_count, pd.secret_count)
        _merge_list(p.powers, pd.powers, _overwrite)
        _merge_list(p.weapon_owned, pd.weapon_owned, _or)
        _merge_list(p.ammo, pd.ammo, _overwrite)
        for slot, slot_doc in zip(p.inventory, pd.inventory):
            if slot_doc is None:
                continue
            slot.type = _overwrite(slot.type, slot_doc.type)
            slot.count = _overwrite(slot.count, slot_doc.count)

    state.recompute_max_ammo(profile.max_ammos)

    for ei, level_docs in enumerate(doc.episodes[: len(state.level_states)]):
        levels = state.level_states[ei]
        for mi, ld in enumerate(level_docs[: len(levels)]):
            if ld is None:
                continue
            level = levels[mi]
            level.completed = _or(level.completed, ld.completed)
            level.keys = [_or(level.keys[0], ld.keys0), _or(level.keys[1], ld.keys1), _or(level.keys[2], ld.keys2)]
            level.has_map = _or(level.has_map, ld.has_map)
            level.unlocked = _or(level.unlocked, ld.unlocked)
            level.special = _or(level.special, ld.special)
            for index in ld.checks:
                if index is None or index == LEVEL_COMPLETE_INDEX or level.is_checked(index):
                    continue
                if len(level.checks) >= profile.check_max:
                    logger.warning("Dropping snapshot checks past the cap for E%dM%d", ei + 1, mi + 1)
                    break
                level.checks.append(index)
            level.check_count = len(level.checks)

    state.item_queue.extend(item_id for item_id in doc.item_queue if item_id is not None)

    state.ep = _overwrite(state.ep, doc.ep)
    state.map = _overwrite(state.map, doc.map)
    _merge_list(state.episodes, doc.enabled_episodes, _or)

    state.progressive_locations.update(loc for loc in doc.progressive_locations if loc is not None)
    state.victory = _or(state.victory, doc.victory)
    if doc.inbox_cursor is not None:
        state.inbox_cursor = doc.inbox_cursor


def load_snapshot(*, state: SessionState, profile: GameProfile, save_dir: Path) -> bool:
    """Merge `<save_dir>/apstate.json` into `state`.

    A missing file means a fresh session and returns False. An unreadable or
    corrupt file is logged and also leaves `state` untouched.
    """

    path = snapshot_path(save_dir)
    try:
        raw = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return False
    except OSError as e:
        logger.error("Failed to read session state from %s: %s", path, e)
        return False

    try:
        doc = SnapshotDocument.model_validate_json(raw)
    except ValidationError as e:
        logger.error("Ignoring corrupt session state in %s: %s", path, e)
        return False

    merge_document(state=state, profile=profile, doc=doc)
    return True
