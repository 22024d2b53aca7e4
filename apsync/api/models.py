from __future__ import annotations

from enum import StrEnum

from pydantic import BaseModel, Field

from apsync.profiles.registry import GameProfile


class IconState(StrEnum):
    pending = "pending"
    dropping = "dropping"
    hiding = "hiding"


class InventorySlot(BaseModel):
    type: int = 0
    count: int = 0


class PlayerState(BaseModel):
    health: int = 100
    armor_points: int = 0
    armor_type: int = 0
    backpack: bool = False
    ready_weapon: int = 1
    kill_count: int = 0
    item_count: int = 0
    secret_count: int = 0

    # Fixed-size per profile; see SessionState.for_profile.
    powers: list[int] = Field(default_factory=list)
    weapon_owned: list[bool] = Field(default_factory=list)
    ammo: list[int] = Field(default_factory=list)
    max_ammo: list[int] = Field(default_factory=list)
    inventory: list[InventorySlot] = Field(default_factory=list)


class LevelState(BaseModel):
    completed: bool = False
    keys: list[bool] = Field(default_factory=lambda: [False, False, False])

    # Location indices already checked, in arrival order. Never holds duplicates.
    checks: list[int] = Field(default_factory=list)
    check_count: int = 0

    has_map: bool = False
    unlocked: bool = False
    flipped: bool = False
    special: bool = False

    def is_checked(self, index: int) -> bool:
        return index in self.checks


class SessionState(BaseModel):
    """Randomizer-relevant progress for one slot.

    Episodes/maps are 0-based in `level_states` and `episodes`; every accessor
    takes the 1-based numbers used by the server tables and the UI.
    """

    player: PlayerState = Field(default_factory=PlayerState)
    level_states: list[list[LevelState]] = Field(default_factory=list)
    episodes: list[bool] = Field(default_factory=list)

    # Current level cursor; 0/0 while in the level select.
    ep: int = 0
    map: int = 0

    difficulty: int = 0
    random_monsters: int = 0
    random_items: int = 0
    flip_levels: int = 0
    two_ways_keydoors: bool = False
    victory: bool = False

    progressive_locations: set[int] = Field(default_factory=set)
    item_queue: list[int] = Field(default_factory=list)

    # Newest inbox entry already reflected in this state.
    inbox_cursor: str = "0-0"

    @staticmethod
    def for_profile(profile: GameProfile) -> "SessionState":
        c = profile.constants
        weapon_owned = [False] * c.weapon_count
        weapon_owned[0] = True  # Fist
        weapon_owned[1] = True  # Pistol
        ammo = [0] * c.ammo_count
        ammo[0] = 50

        player = PlayerState(
            powers=[0] * c.powerup_count,
            weapon_owned=weapon_owned,
            ammo=ammo,
            max_ammo=list(c.max_ammos),
            inventory=[InventorySlot() for _ in range(c.inventory_count)],
        )
        return SessionState(
            player=player,
            level_states=[[LevelState() for _ in range(c.map_count)] for _ in range(c.episode_count)],
            episodes=[False] * c.episode_count,
        )

    def level(self, ep: int, map: int) -> LevelState:
        if ep < 1 or map < 1:
            raise IndexError(f"Level E{ep}M{map} does not exist")
        return self.level_states[ep - 1][map - 1]

    def iter_levels(self):
        """Yield `(ep, map, level_state)` with 1-based numbers."""

        for ei, maps in enumerate(self.level_states):
            for mi, level in enumerate(maps):
                yield ei + 1, mi + 1, level

    def is_episode_enabled(self, ep: int) -> bool:
        return 1 <= ep <= len(self.episodes) and self.episodes[ep - 1]

    def recompute_max_ammo(self, max_ammos: tuple[int, ...]) -> None:
        # Always derived from the base table so repeated backpacks never compound.
        factor = 2 if self.player.backpack else 1
        self.player.max_ammo = [base * factor for base in max_ammos]


# ---- HTTP bodies for the level-select UI ----


class EnterLevelRequest(BaseModel):
    ep: int = Field(..., ge=1)
    map: int = Field(..., ge=1)


class CheckLocationRequest(BaseModel):
    ep: int = Field(..., ge=1)
    map: int = Field(..., ge=1)
    index: int = Field(..., ge=-1)


class ChatRequest(BaseModel):
    text: str = Field(..., min_length=1, max_length=4000)


class LevelView(BaseModel):
    ep: int
    map: int
    name: str
    completed: bool
    unlocked: bool
    has_map: bool
    flipped: bool
    keys: list[bool]
    check_count: int
    total_checks: int


class NotificationView(BaseModel):
    sprite: str
    text: str
    x: int
    y: int
    state: str


class SessionView(BaseModel):
    game: str
    seed: str
    in_game: bool
    ep: int
    map: int
    episodes: list[bool]
    victory: bool
    player: PlayerState


class EnterLevelResponse(BaseModel):
    ep: int
    map: int
    save_path: str | None = None
