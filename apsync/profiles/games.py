from __future__ import annotations

from dataclasses import dataclass


# Effect codes shared by every game. Real per-game object codes are positive,
# so these never collide with a key, weapon or map code.
BACKPACK_TYPE = 8
LEVEL_UNLOCK_TYPE = -1
LEVEL_COMPLETE_TYPE = -2

# Location index reserved for "level completed" in every location table.
LEVEL_COMPLETE_INDEX = -1

CHECK_MAX = 64


@dataclass(frozen=True, slots=True)
class GameConstants:
    """Fixed numbers for one supported game; table data is loaded separately."""

    game: str
    slug: str
    episode_count: int
    map_count: int
    weapon_count: int
    ammo_count: int
    powerup_count: int
    inventory_count: int
    max_ammos: tuple[int, ...]
    keys_map: dict[int, int]
    weapons_map: dict[int, int]
    map_type: int
    sprites: dict[int, str]
    commercial: bool = False
    transient_inventory_types: frozenset[int] = frozenset()
    id_base: int = 0
    check_max: int = CHECK_MAX


_DOOM_KEYS = {5: 0, 40: 0, 6: 1, 39: 1, 13: 2, 38: 2}

_DOOM_WEAPONS = {2001: 2, 2002: 3, 2003: 4, 2004: 5, 2006: 6, 2005: 7}

_DOOM_SPRITES = {
    5: "BKEYA0",
    6: "YKEYA0",
    13: "RKEYA0",
    38: "RSKUA0",
    39: "YSKUA0",
    40: "BSKUA0",
    2026: "PMAPA0",
    BACKPACK_TYPE: "BPAKA0",
    2001: "SHOTA0",
    2002: "MGUNA0",
    2003: "LAUNA0",
    2004: "PLASA0",
    2005: "CSAWA0",
    2006: "BFUGA0",
    2018: "ARM1A0",
    2019: "ARM2A0",
    2012: "MEDIA0",
    2013: "SOULA0",
    2022: "PINVA0",
    2023: "PSTRA0",
    2024: "PINSA0",
    2025: "SUITA0",
    2045: "PVISA0",
}

_HERETIC_SPRITES = {
    80: "CKYYA0",
    73: "AKYYA0",
    79: "BKYYA0",
    35: "SPMPA0",
    BACKPACK_TYPE: "BAGHA0",
    2005: "WGNTA0",
    2001: "WBOWA0",
    53: "WBLSA0",
    2003: "WPHXA0",
    2002: "WMCEA0",
    2004: "WSKLA0",
    85: "SHLDA0",
    31: "SHD2A0",
    81: "PTN1A0",
}


DOOM_1993 = GameConstants(
    game="DOOM 1993",
    slug="doom_1993",
    episode_count=4,
    map_count=9,
    weapon_count=9,
    ammo_count=4,
    powerup_count=6,
    inventory_count=0,
    max_ammos=(200, 50, 300, 50),
    keys_map=dict(_DOOM_KEYS),
    weapons_map=dict(_DOOM_WEAPONS),
    map_type=2026,
    sprites=dict(_DOOM_SPRITES),
    id_base=350_000,
)

DOOM_II = GameConstants(
    game="DOOM II",
    slug="doom_ii",
    episode_count=1,
    map_count=32,
    weapon_count=9,
    ammo_count=4,
    powerup_count=6,
    inventory_count=0,
    max_ammos=(200, 50, 300, 50),
    keys_map=dict(_DOOM_KEYS),
    # Super shotgun lives in weapon slot 8.
    weapons_map={**_DOOM_WEAPONS, 82: 8},
    map_type=2026,
    sprites={**_DOOM_SPRITES, 82: "SGN2A0", 83: "MEGAA0"},
    commercial=True,
    id_base=360_000,
)

HERETIC = GameConstants(
    game="Heretic",
    slug="heretic",
    episode_count=5,
    map_count=9,
    weapon_count=9,
    ammo_count=6,
    powerup_count=9,
    inventory_count=14,
    max_ammos=(100, 50, 200, 200, 20, 150),
    keys_map={80: 0, 73: 1, 79: 2},
    weapons_map={2005: 7, 2001: 2, 53: 3, 2003: 5, 2002: 6, 2004: 4},
    map_type=35,
    sprites=dict(_HERETIC_SPRITES),
    # Wings of wrath are per-level and never carried between sessions.
    transient_inventory_types=frozenset({9}),
    id_base=370_000,
)


SUPPORTED_GAMES: dict[str, GameConstants] = {c.game: c for c in (DOOM_1993, DOOM_II, HERETIC)}
