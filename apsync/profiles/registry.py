from __future__ import annotations

import csv
import logging
import os
from dataclasses import dataclass
from pathlib import Path

from apsync.profiles.games import (
    BACKPACK_TYPE,
    LEVEL_COMPLETE_INDEX,
    LEVEL_COMPLETE_TYPE,
    LEVEL_UNLOCK_TYPE,
    SUPPORTED_GAMES,
    GameConstants,
)

logger = logging.getLogger(__name__)


class ProfileLoadError(RuntimeError):
    pass


class ProfileTablesMissing(ProfileLoadError):
    pass


@dataclass(frozen=True, slots=True)
class ItemDef:
    """What a server item id means locally.

    `ep`/`map` are 1-based; 0 means the item is not tied to a level.
    """

    ep: int
    map: int
    doom_type: int


@dataclass(frozen=True, slots=True)
class LevelInfo:
    name: str
    check_count: int


@dataclass(frozen=True, slots=True)
class GameProfile:
    """Immutable per-game tables, resolved once at session start.

    Location lookups go both ways: `location_table` is keyed by
    `(ep, map, index)` and `location_index` is the reverse map built at load.
    """

    constants: GameConstants
    item_table: dict[int, ItemDef]
    location_table: dict[tuple[int, int, int], int]
    location_index: dict[int, tuple[int, int, int]]
    level_infos: dict[tuple[int, int], LevelInfo]

    @staticmethod
    def from_tables(
        *,
        constants: GameConstants,
        items: dict[int, ItemDef],
        locations: dict[tuple[int, int, int], int],
        levels: dict[tuple[int, int], LevelInfo],
    ) -> "GameProfile":
        _validate_effect_codes(constants)

        index: dict[int, tuple[int, int, int]] = {}
        for key, loc_id in sorted(locations.items()):
            if loc_id in index:
                raise ProfileLoadError(f"Duplicate location id: {loc_id}")
            index[loc_id] = key

        referenced = [*levels, *((ep, map_) for ep, map_, _ in locations)]
        referenced += [(i.ep, i.map) for i in items.values() if (i.ep, i.map) != (0, 0)]
        for ep, map_ in referenced:
            if not (1 <= ep <= constants.episode_count and 1 <= map_ <= constants.map_count):
                raise ProfileLoadError(f"Level E{ep}M{map_} is outside {constants.game}")

        return GameProfile(
            constants=constants,
            item_table=dict(items),
            location_table=dict(locations),
            location_index=index,
            level_infos=dict(levels),
        )

    @property
    def game(self) -> str:
        return self.constants.game

    @property
    def episode_count(self) -> int:
        return self.constants.episode_count

    @property
    def map_count(self) -> int:
        return self.constants.map_count

    @property
    def max_ammos(self) -> tuple[int, ...]:
        return self.constants.max_ammos

    @property
    def check_max(self) -> int:
        return self.constants.check_max

    def get_item(self, item_id: int) -> ItemDef | None:
        return self.item_table.get(item_id)

    def location_id(self, ep: int, map: int, index: int) -> int | None:
        return self.location_table.get((ep, map, index))

    def find_location(self, location_id: int) -> tuple[int, int, int] | None:
        return self.location_index.get(location_id)

    def level_info(self, ep: int, map: int) -> LevelInfo:
        info = self.level_infos.get((ep, map))
        if info is None:
            return LevelInfo(name=default_level_name(self.constants, ep, map), check_count=0)
        return info

    def locations_for_episode(self, ep: int) -> list[int]:
        """All location ids of an episode, excluding level-complete ones."""

        return [
            loc_id
            for (e, _m, index), loc_id in sorted(self.location_table.items())
            if e == ep and index != LEVEL_COMPLETE_INDEX
        ]

    def key_bit(self, doom_type: int) -> int | None:
        return self.constants.keys_map.get(doom_type)

    def weapon_slot(self, doom_type: int) -> int | None:
        return self.constants.weapons_map.get(doom_type)

    def sprite_for(self, doom_type: int) -> str | None:
        return self.constants.sprites.get(doom_type)


def default_level_name(constants: GameConstants, ep: int, map: int) -> str:
    if constants.commercial:
        return f"MAP{map:02d}"
    return f"E{ep}M{map}"


def _validate_effect_codes(constants: GameConstants) -> None:
    reserved = {LEVEL_UNLOCK_TYPE, LEVEL_COMPLETE_TYPE, BACKPACK_TYPE}
    for label, codes in (("key", constants.keys_map), ("weapon", constants.weapons_map)):
        clash = sorted(reserved.intersection(codes))
        if clash or any(c < 0 for c in codes):
            raise ProfileLoadError(f"{constants.game}: {label} codes overlap reserved effect codes: {clash}")
    if constants.map_type in reserved:
        raise ProfileLoadError(f"{constants.game}: map code {constants.map_type} is reserved")


def _read_csv_rows(path: Path) -> list[list[str]]:
    try:
        raw = path.read_text(encoding="utf-8-sig")
    except FileNotFoundError as e:
        raise ProfileTablesMissing(f"Profile file not found: {path}") from e

    reader = csv.reader(raw.splitlines())
    rows = [[c.strip() for c in row if c is not None] for row in reader]
    return [row for row in rows if any(cell.strip() for cell in row)]


def _table_rows(path: Path, header: list[str]) -> list[list[str]]:
    rows = _read_csv_rows(path)
    if not rows:
        raise ProfileLoadError(f"Empty profile CSV: {path}")
    if [c.casefold() for c in rows[0]][: len(header)] != header:
        raise ProfileLoadError(f"Unexpected header in {path}: {rows[0]}")
    return [row for row in rows[1:] if len(row) >= len(header)]


def _to_int(path: Path, value: str) -> int:
    try:
        return int(value)
    except ValueError as e:
        raise ProfileLoadError(f"Expected an integer in {path}, got {value!r}") from e


def load_item_csv(path: Path) -> dict[int, ItemDef]:
    out: dict[int, ItemDef] = {}
    for row in _table_rows(path, ["item_id", "episode", "map", "doom_type"]):
        item_id, ep, map_, doom_type = (_to_int(path, v) for v in row[:4])
        if item_id in out:
            raise ProfileLoadError(f"Duplicate item id: {item_id}")
        out[item_id] = ItemDef(ep=ep, map=map_, doom_type=doom_type)
    return out


def load_location_csv(path: Path) -> dict[tuple[int, int, int], int]:
    out: dict[tuple[int, int, int], int] = {}
    for row in _table_rows(path, ["location_id", "episode", "map", "index"]):
        loc_id, ep, map_, index = (_to_int(path, v) for v in row[:4])
        out[(ep, map_, index)] = loc_id
    return out


def load_level_csv(path: Path) -> dict[tuple[int, int], LevelInfo]:
    out: dict[tuple[int, int], LevelInfo] = {}
    for row in _table_rows(path, ["episode", "map", "name", "check_count"]):
        ep, map_ = _to_int(path, row[0]), _to_int(path, row[1])
        out[(ep, map_)] = LevelInfo(name=row[2], check_count=_to_int(path, row[3]))
    return out


def _fallback_profile(constants: GameConstants) -> GameProfile:
    """Small generated dataset for tests/dev when the real tables are missing.

    Every level gets three checks plus its completion location, and one item
    per key slot, map, unlock and completion. Global items (backpack, weapons)
    come last.
    """

    items: dict[int, ItemDef] = {}
    locations: dict[tuple[int, int, int], int] = {}
    levels: dict[tuple[int, int], LevelInfo] = {}

    key_codes: dict[int, int] = {}
    for code, bit in constants.keys_map.items():
        key_codes.setdefault(bit, code)

    item_id = constants.id_base
    loc_id = constants.id_base + 10_000
    for ep in range(1, constants.episode_count + 1):
        for map_ in range(1, constants.map_count + 1):
            levels[(ep, map_)] = LevelInfo(name=default_level_name(constants, ep, map_), check_count=3)
            for index in (0, 1, 2, LEVEL_COMPLETE_INDEX):
                locations[(ep, map_, index)] = loc_id
                loc_id += 1
            for doom_type in [*sorted(key_codes.values()), constants.map_type, LEVEL_UNLOCK_TYPE, LEVEL_COMPLETE_TYPE]:
                items[item_id] = ItemDef(ep=ep, map=map_, doom_type=doom_type)
                item_id += 1

    for doom_type in [BACKPACK_TYPE, *sorted(constants.weapons_map)]:
        items[item_id] = ItemDef(ep=0, map=0, doom_type=doom_type)
        item_id += 1

    return GameProfile.from_tables(constants=constants, items=items, locations=locations, levels=levels)


def load_game_profile(*, game: str, root: Path) -> GameProfile:
    constants = SUPPORTED_GAMES.get(game)
    if constants is None:
        raise ProfileLoadError(f"Invalid game: {game}")

    profile_dir = root / "assets" / "profiles" / constants.slug

    # Default behavior: fall back to a generated dataset when files are missing.
    # Malformed tables always raise.
    # Force strict behavior by setting APSYNC_STRICT_PROFILES=1.
    strict = os.getenv("APSYNC_STRICT_PROFILES", "").strip().lower() in {"1", "true", "yes"}

    try:
        return GameProfile.from_tables(
            constants=constants,
            items=load_item_csv(profile_dir / "items.csv"),
            locations=load_location_csv(profile_dir / "locations.csv"),
            levels=load_level_csv(profile_dir / "levels.csv"),
        )
    except ProfileTablesMissing as e:
        if strict:
            raise
        logger.warning("%s; using generated tables for %s", e, game)
        return _fallback_profile(constants)
