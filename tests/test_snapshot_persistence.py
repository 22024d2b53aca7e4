from __future__ import annotations

import json
from pathlib import Path

from apsync.api.models import InventorySlot, SessionState
from apsync.profiles.registry import GameProfile, load_game_profile
from apsync.session_store import SNAPSHOT_FILENAME, load_snapshot, save_snapshot, to_document


def _populated(profile: GameProfile) -> SessionState:
    state = SessionState.for_profile(profile)
    state.episodes[0] = True
    state.player.health = 73
    state.player.armor_points = 50
    state.player.armor_type = 1
    state.player.backpack = True
    state.player.weapon_owned[2] = True
    state.player.ammo = [120, 10, 0, 40]
    state.recompute_max_ammo(profile.max_ammos)

    level = state.level(1, 1)
    level.completed = True
    level.keys = [True, False, True]
    level.checks = [1, 0]
    level.check_count = 2
    level.has_map = True
    level.unlocked = True

    state.item_queue = [360013]
    state.ep, state.map = 1, 2
    state.progressive_locations = {4242, 4300}
    state.victory = False
    return state


def test_snapshot_round_trip(profile: GameProfile, tmp_path: Path) -> None:
    saved = _populated(profile)
    assert save_snapshot(state=saved, profile=profile, save_dir=tmp_path)
    assert (tmp_path / SNAPSHOT_FILENAME).exists()

    loaded = SessionState.for_profile(profile)
    assert load_snapshot(state=loaded, profile=profile, save_dir=tmp_path)

    assert loaded.player == saved.player
    assert loaded.level(1, 1) == saved.level(1, 1)
    assert loaded.level(1, 2) == saved.level(1, 2)
    assert loaded.item_queue == saved.item_queue
    assert (loaded.ep, loaded.map) == (1, 2)
    assert loaded.episodes == [True]
    assert loaded.progressive_locations == {4242, 4300}
    assert not loaded.victory


def test_saved_file_carries_player_and_level_state(profile: GameProfile, tmp_path: Path) -> None:
    state = _populated(profile)
    state.inbox_cursor = "1700000000000-3"
    save_snapshot(state=state, profile=profile, save_dir=tmp_path)

    doc = json.loads((tmp_path / SNAPSHOT_FILENAME).read_text(encoding="utf-8"))

    assert doc["player"]["health"] == 73
    assert doc["player"]["weapon_owned"][2] == 1
    first = doc["episodes"][0][0]
    assert first["completed"] == 1
    assert first["keys0"] == 1
    assert first["checks"] == [1, 0]
    assert doc["episodes"][0][1] is not None
    assert doc["inbox_cursor"] == "1700000000000-3"

    loaded = SessionState.for_profile(profile)
    load_snapshot(state=loaded, profile=profile, save_dir=tmp_path)
    assert loaded.inbox_cursor == "1700000000000-3"


def test_missing_snapshot_leaves_state_untouched(profile: GameProfile, tmp_path: Path) -> None:
    state = SessionState.for_profile(profile)
    before = state.model_dump()

    assert not load_snapshot(state=state, profile=profile, save_dir=tmp_path)
    assert state.model_dump() == before


def test_corrupt_snapshot_is_ignored(profile: GameProfile, tmp_path: Path) -> None:
    (tmp_path / SNAPSHOT_FILENAME).write_text("{not json", encoding="utf-8")
    state = SessionState.for_profile(profile)
    before = state.model_dump()

    assert not load_snapshot(state=state, profile=profile, save_dir=tmp_path)
    assert state.model_dump() == before


def test_partial_snapshot_merges_leniently(profile: GameProfile, tmp_path: Path) -> None:
    doc = {
        "player": {"health": 40, "armor_points": "lots", "weapon_owned": [1, 0, 0]},
        "episodes": [[{"unlocked": 1, "keys1": 1, "checks": [2, 2, -1, "x"]}, None, "junk"]],
        "enabled_episodes": [0],
        "victory": "maybe",
        "unknown_key": 5,
    }
    (tmp_path / SNAPSHOT_FILENAME).write_text(json.dumps(doc), encoding="utf-8")

    state = SessionState.for_profile(profile)
    state.level(1, 1).keys[0] = True
    state.level(1, 2).completed = True
    state.episodes[0] = True

    assert load_snapshot(state=state, profile=profile, save_dir=tmp_path)

    assert state.player.health == 40
    assert state.player.armor_points == 0
    # Flags only ever turn on.
    assert state.player.weapon_owned[1]
    assert state.episodes == [True]
    assert state.level(1, 2).completed

    level = state.level(1, 1)
    assert level.unlocked
    assert level.keys == [True, True, False]
    assert level.checks == [2]
    assert level.check_count == 1
    assert not state.victory


def test_backpack_capacity_is_recomputed_on_load(profile: GameProfile, tmp_path: Path) -> None:
    doc = {"player": {"backpack": 1}}
    (tmp_path / SNAPSHOT_FILENAME).write_text(json.dumps(doc), encoding="utf-8")

    state = SessionState.for_profile(profile)
    # Loading twice must not compound the doubling.
    load_snapshot(state=state, profile=profile, save_dir=tmp_path)
    load_snapshot(state=state, profile=profile, save_dir=tmp_path)

    assert state.player.backpack
    assert state.player.max_ammo == [400, 100, 600, 100]


def test_save_failure_is_reported_not_raised(profile: GameProfile, tmp_path: Path) -> None:
    state = SessionState.for_profile(profile)

    assert not save_snapshot(state=state, profile=profile, save_dir=tmp_path / "missing")


def test_transient_inventory_is_not_saved(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.delenv("APSYNC_STRICT_PROFILES", raising=False)
    heretic = load_game_profile(game="Heretic", root=tmp_path)
    state = SessionState.for_profile(heretic)
    state.player.inventory[0] = InventorySlot(type=9, count=1)
    state.player.inventory[1] = InventorySlot(type=3, count=2)

    doc = to_document(state=state, profile=heretic)

    types = [slot.type for slot in doc.player.inventory]
    assert 9 not in types
    assert 3 in types
    assert len(doc.episodes) == 5
    assert len(doc.episodes[0]) == 9
