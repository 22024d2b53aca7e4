from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping, Sequence, cast

import redis


@dataclass(frozen=True, slots=True)
class SlotKeys:
    """Redis keys shared with the relay for one slot."""

    slot: str

    @property
    def prefix(self) -> str:
        return f"apsync:{self.slot}"

    @property
    def inbox(self) -> str:
        # Relay -> session: items, checks, scouts, slot data, chat lines.
        return f"{self.prefix}:inbox"

    @property
    def outbox(self) -> str:
        # Session -> relay: commands.
        return f"{self.prefix}:outbox"

    @property
    def status(self) -> str:
        return f"{self.prefix}:status"

    @property
    def room(self) -> str:
        return f"{self.prefix}:room"

    @property
    def death_link(self) -> str:
        return f"{self.prefix}:death_link"


def publish_to_stream(*, r: redis.Redis, key: str, fields: Mapping[str, object]) -> str:
    """Append an entry to a stream."""

    # redis-py stubs expect field/value unions; streams only ever carry strings here.
    stream_id = r.xadd(key, {str(k): str(v) for k, v in fields.items()})
    return cast(str, stream_id)


def publish_many(*, r: redis.Redis, entries: Sequence[tuple[str, Mapping[str, object]]]) -> list[str]:
    ids: list[str] = []
    for key, fields in entries:
        ids.append(publish_to_stream(r=r, key=key, fields=fields))
    return ids
