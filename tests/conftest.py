from __future__ import annotations

import json
import os
from collections.abc import Generator
from dataclasses import dataclass, field
from pathlib import Path

import fakeredis
import pytest

from apsync.client.base import ConnectionStatus
from apsync.client.redis_client import RedisMessagingClient
from apsync.profiles.registry import GameProfile, load_game_profile
from apsync.session import Session
from apsync.settings import SessionSettings
from apsync.streams import SlotKeys, publish_to_stream

TESTS_ROOT = Path(__file__).resolve().parent
SLOT = "Player1"
SEED_NAME = "12345678901234567890"


@pytest.fixture(scope="session", autouse=True)
def _load_dotenv_for_tests() -> None:
    """Load repo .env for local runs.

    In CI, we *don't* auto-load `.env` by default.
    Opt-in locally with: APSYNC_LOAD_DOTENV_FOR_TESTS=1
    """

    if os.environ.get("CI") and os.environ.get("APSYNC_LOAD_DOTENV_FOR_TESTS") != "1":
        return

    env_path = TESTS_ROOT.parent / ".env"
    if env_path.exists():
        from dotenv import load_dotenv

        load_dotenv(dotenv_path=env_path, override=False)


@dataclass
class HostRecorder:
    """Stands in for the host game: records every callback the session fires."""

    given: list[tuple[int, int, int]] = field(default_factory=list)
    victories: int = 0
    lines: list[str] = field(default_factory=list)

    def give_item(self, doom_type: int, ep: int, map: int) -> None:
        self.given.append((doom_type, ep, map))

    def victory(self) -> None:
        self.victories += 1

    def message(self, line: str) -> None:
        self.lines.append(line)


class FakeClock:
    """Monotonic clock whose sleep advances time and lets the relay answer."""

    def __init__(self, on_sleep=None) -> None:
        self.now = 0.0
        self.on_sleep = on_sleep

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.now += seconds
        if self.on_sleep is not None:
            self.on_sleep()


class FakeRelay:
    """Plays the server side of the Redis contract."""

    def __init__(self, r: fakeredis.FakeRedis, slot: str = SLOT) -> None:
        self.r = r
        self.keys = SlotKeys(slot=slot)
        self.progressive: set[int] = set()
        # What the relay answers to a connect command: "authenticate", "refuse" or None.
        self.on_connect: str | None = "authenticate"
        self.seed_name = SEED_NAME
        self._seen_outbox = "0-0"

    def authenticate(self, seed_name: str | None = None) -> None:
        self.r.hset(self.keys.room, mapping={"seed_name": seed_name or self.seed_name})
        self.r.set(self.keys.status, ConnectionStatus.authenticated.value)

    def refuse(self) -> None:
        self.r.set(self.keys.status, ConnectionStatus.connection_refused.value)

    def item(self, item_id: int, notify: bool = True) -> None:
        publish_to_stream(r=self.r, key=self.keys.inbox, fields={"type": "item_received", "item_id": item_id, "notify": int(notify)})

    def location(self, location_id: int) -> None:
        publish_to_stream(r=self.r, key=self.keys.inbox, fields={"type": "location_checked", "location_id": location_id})

    def scouts(self, entries: list[tuple[int, int]]) -> None:
        payload = json.dumps([{"location": loc, "flags": flags} for loc, flags in entries])
        publish_to_stream(r=self.r, key=self.keys.inbox, fields={"type": "location_info", "locations": payload})

    def slot_data(self, key: str, value: int) -> None:
        publish_to_stream(r=self.r, key=self.keys.inbox, fields={"type": "slot_data", "key": key, "value": value})

    def message(self, kind: str = "text", **fields: object) -> None:
        publish_to_stream(r=self.r, key=self.keys.inbox, fields={"type": "message", "kind": kind, **fields})

    def death(self) -> None:
        self.r.set(self.keys.death_link, "1")

    def commands(self, cmd: str | None = None) -> list[dict[str, str]]:
        entries = [fields for _id, fields in self.r.xrange(self.keys.outbox)]
        return [f for f in entries if cmd is None or f.get("cmd") == cmd]

    def pump(self) -> None:
        """Answer commands sent since the last pump."""

        for entry_id, fields in self.r.xrange(self.keys.outbox, min=self._seen_outbox):
            if entry_id == self._seen_outbox:
                continue
            self._seen_outbox = entry_id
            if fields.get("cmd") == "connect":
                if self.on_connect == "authenticate":
                    self.authenticate()
                elif self.on_connect == "refuse":
                    self.refuse()
            elif fields.get("cmd") == "location_scouts":
                ids = json.loads(fields["locations"])
                self.scouts([(loc, 1 if loc in self.progressive else 0) for loc in ids])


@pytest.fixture()
def r() -> fakeredis.FakeRedis:
    return fakeredis.FakeRedis(decode_responses=True)


@pytest.fixture()
def relay(r: fakeredis.FakeRedis) -> FakeRelay:
    return FakeRelay(r)


@pytest.fixture()
def client(r: fakeredis.FakeRedis) -> RedisMessagingClient:
    return RedisMessagingClient(r=r, slot=SLOT)


@pytest.fixture()
def host() -> HostRecorder:
    return HostRecorder()


@pytest.fixture()
def settings(tmp_path: Path, host: HostRecorder) -> SessionSettings:
    return SessionSettings(
        server="localhost:38281",
        game="DOOM II",
        slot=SLOT,
        save_root=tmp_path,
        profile_root=TESTS_ROOT,
        give_item_callback=host.give_item,
        victory_callback=host.victory,
        message_callback=host.message,
    )


@pytest.fixture()
def profile() -> GameProfile:
    return load_game_profile(game="DOOM II", root=TESTS_ROOT)


@pytest.fixture()
def session(settings: SessionSettings, client: RedisMessagingClient, profile: GameProfile, tmp_path: Path) -> Generator[Session, None, None]:
    """A session wired to its client but not bootstrapped."""

    from apsync.ingestion import register_handlers

    s = Session(settings=settings, client=client, profile=profile)
    register_handlers(s)
    s.save_dir = tmp_path / "save"
    s.save_dir.mkdir()
    s.was_connected = True
    s.state.episodes[0] = True
    yield s


@pytest.fixture()
def clock(relay: FakeRelay) -> FakeClock:
    return FakeClock(on_sleep=relay.pump)
