from __future__ import annotations

import os
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path


GiveItemCallback = Callable[[int, int, int], None]


def _noop_give_item(doom_type: int, ep: int, map: int) -> None:
    return None


def _noop() -> None:
    return None


def _noop_message(line: str) -> None:
    return None


def default_profile_root() -> Path:
    # project root is one level up from this file: apsync/settings.py
    env = os.environ.get("APSYNC_PROFILE_ROOT")
    return Path(env) if env else Path(__file__).resolve().parents[1]


@dataclass(frozen=True, slots=True)
class SessionSettings:
    """Connection settings plus the host callbacks the session fires."""

    server: str
    game: str
    slot: str
    password: str = ""

    # Save-slot directories are created under this root.
    save_root: Path = field(default_factory=Path.cwd)
    profile_root: Path = field(default_factory=default_profile_root)

    give_item_callback: GiveItemCallback = _noop_give_item
    victory_callback: Callable[[], None] = _noop
    message_callback: Callable[[str], None] = _noop_message

    # Bounded waits during bootstrap.
    connect_timeout_s: float = 10.0
    scout_timeout_s: float = 10.0
    poll_interval_s: float = 0.1


def settings_from_env(**overrides) -> SessionSettings:
    """Build settings from APSYNC_* environment variables.

    Keyword overrides win over the environment (callbacks are typically passed this way).
    """

    values: dict = {
        "server": os.environ.get("APSYNC_SERVER", "localhost:38281"),
        "game": os.environ.get("APSYNC_GAME", "DOOM 1993"),
        "slot": os.environ.get("APSYNC_SLOT", ""),
        "password": os.environ.get("APSYNC_PASSWORD", ""),
    }
    if os.environ.get("APSYNC_SAVE_ROOT"):
        values["save_root"] = Path(os.environ["APSYNC_SAVE_ROOT"])
    values.update(overrides)
    if not values["slot"]:
        raise ValueError("A slot name is required (set APSYNC_SLOT)")
    return SessionSettings(**values)
