from __future__ import annotations

import json
import logging
from collections.abc import Callable, Sequence

import redis

from apsync.client.base import (
    ConnectionStatus,
    HintMessage,
    ItemReceivedCallback,
    ItemRecvMessage,
    ItemSendMessage,
    LocationCheckedCallback,
    LocationInfoCallback,
    MessagingClient,
    NetworkItem,
    RoomInfo,
    ServerMessage,
    SlotDataCallback,
    TextMessage,
)
from apsync.streams import SlotKeys, publish_to_stream

logger = logging.getLogger(__name__)


def _flag(value: str | None) -> bool:
    return (value or "").strip().lower() in {"1", "true", "yes"}


def _id_key(entry_id: str) -> tuple[int, ...]:
    return tuple(int(part) for part in entry_id.split("-"))


def parse_message(fields: dict[str, str]) -> ServerMessage:
    """Build a typed chat/log message from an inbox entry."""

    kind = fields.get("kind", "text")
    text = fields.get("text", "")
    if kind == "item_send":
        return ItemSendMessage(text=text, item=fields.get("item", ""), recv_player=fields.get("recv_player", ""))
    if kind == "item_recv":
        return ItemRecvMessage(text=text, item=fields.get("item", ""), send_player=fields.get("send_player", ""))
    if kind == "hint":
        return HintMessage(
            text=text,
            item=fields.get("item", ""),
            send_player=fields.get("send_player", ""),
            recv_player=fields.get("recv_player", ""),
            location=fields.get("location", ""),
            checked=_flag(fields.get("checked")),
        )
    return TextMessage(text=text)


def parse_network_items(raw: str) -> list[NetworkItem]:
    out: list[NetworkItem] = []
    for entry in json.loads(raw or "[]"):
        out.append(
            NetworkItem(
                location=int(entry["location"]),
                flags=int(entry.get("flags", 0)),
                item=int(entry.get("item", 0)),
                player=int(entry.get("player", 0)),
            )
        )
    return out


class RedisMessagingClient(MessagingClient):
    """Messaging client backed by Redis keys that a relay keeps in sync with the server.

    Contract with the relay (see `SlotKeys`):
      - inbox stream entries carry a `type` field: `item_received`,
        `location_checked`, `location_info`, `slot_data` or `message`.
      - the relay writes the connection status string and the room hash.
      - a remote death sets the death-link key; we delete it to clear.
      - every command we send is an outbox stream entry with a `cmd` field.
    """

    def __init__(self, *, r: redis.Redis, slot: str, batch: int = 100) -> None:
        self._r = r
        self.keys = SlotKeys(slot=slot)
        self._batch = batch
        self._cursor = "0-0"
        self._replay_until = "0-0"
        self._connected = False
        self._messages: list[ServerMessage] = []

        self._on_item: ItemReceivedCallback | None = None
        self._on_location: LocationCheckedCallback | None = None
        self._on_location_info: LocationInfoCallback | None = None
        self._slot_data: dict[str, SlotDataCallback] = {}

    # ---- commands ----

    def _send(self, cmd: str, **fields: object) -> str:
        return publish_to_stream(r=self._r, key=self.keys.outbox, fields={"cmd": cmd, **fields})

    def set_client_version(self, version: tuple[int, int, int]) -> None:
        self._send("client_version", version=".".join(str(v) for v in version))

    def connect(self, *, server: str, game: str, slot: str, password: str) -> None:
        self._connected = True
        self._r.set(self.keys.status, ConnectionStatus.connecting.value)
        self._send("connect", server=server, game=game, slot=slot, password=password)

    def set_death_link_supported(self, supported: bool) -> None:
        self._send("death_link_supported", value=int(supported))

    def send_item(self, location_id: int) -> None:
        self._send("location_checks", locations=json.dumps([location_id]))

    def send_location_scouts(self, location_ids: Sequence[int], create_as_hint: int = 0) -> None:
        self._send("location_scouts", locations=json.dumps(list(location_ids)), create_as_hint=create_as_hint)

    def send_say(self, text: str) -> None:
        self._send("say", text=text)

    def story_complete(self) -> None:
        self._send("status_goal")

    def death_link_send(self) -> None:
        self._send("death_link", source=self.keys.slot)

    def death_link_clear(self) -> None:
        self._r.delete(self.keys.death_link)

    def death_link_pending(self) -> bool:
        return bool(self._r.exists(self.keys.death_link))

    # ---- status ----

    def connection_status(self) -> ConnectionStatus:
        raw = self._r.get(self.keys.status)
        if raw is None:
            return ConnectionStatus.connecting if self._connected else ConnectionStatus.disconnected
        try:
            return ConnectionStatus(str(raw))
        except ValueError:
            logger.warning("Unknown connection status from relay: %r", raw)
            return ConnectionStatus.connecting

    def room_info(self) -> RoomInfo:
        room = self._r.hgetall(self.keys.room)
        seed_name = room.get("seed_name") if room else None
        if not seed_name:
            raise LookupError(f"No room info published for slot {self.keys.slot!r}")
        return RoomInfo(seed_name=str(seed_name))

    # ---- callbacks ----

    def set_item_received_callback(self, cb: ItemReceivedCallback) -> None:
        self._on_item = cb

    def set_location_checked_callback(self, cb: LocationCheckedCallback) -> None:
        self._on_location = cb

    def set_location_info_callback(self, cb: LocationInfoCallback) -> None:
        self._on_location_info = cb

    def register_slot_data_callback(self, key: str, cb: SlotDataCallback) -> None:
        self._slot_data[key] = cb

    # ---- inbox ----

    def last_event_id(self) -> str:
        return max(self._cursor, self._replay_until, key=_id_key)

    def set_replay_boundary(self, event_id: str) -> None:
        self._replay_until = event_id

    def poll(self) -> None:
        """Dispatch every inbox entry published since the last poll."""

        while True:
            resp = self._r.xread({self.keys.inbox: self._cursor}, count=self._batch)
            if not resp:
                return
            for _stream, entries in resp:
                for entry_id, fields in entries:
                    # Advance first; a malformed entry is skipped, never replayed.
                    self._cursor = entry_id
                    self._dispatch(entry_id, fields)

    def _dispatch(self, entry_id: str, fields: dict[str, str]) -> None:
        kind = fields.get("type")
        # Entries the saved state already reflects only restore state.
        replay = _id_key(entry_id) <= _id_key(self._replay_until)
        try:
            call = self._parse(kind, fields, replay=replay)
        except (KeyError, ValueError, TypeError) as e:
            logger.warning("Malformed inbox entry %s (%r): %s", entry_id, kind, e)
            return
        if call is None:
            logger.debug("Ignoring inbox entry %s of type %r", entry_id, kind)
            return
        cb, args = call
        cb(*args)

    def _parse(self, kind: str | None, fields: dict[str, str], *, replay: bool) -> tuple[Callable[..., None], tuple] | None:
        if kind == "item_received":
            notify = _flag(fields.get("notify", "1")) and not replay
            args = (int(fields["item_id"]), notify)
            return (self._on_item, args) if self._on_item is not None else None
        if kind == "location_checked":
            args = (int(fields["location_id"]),)
            return (self._on_location, args) if self._on_location is not None else None
        if kind == "location_info":
            args = (parse_network_items(fields.get("locations", "[]")),)
            return (self._on_location_info, args) if self._on_location_info is not None else None
        if kind == "slot_data":
            cb = self._slot_data.get(fields.get("key", ""))
            return (cb, (int(fields["value"]),)) if cb is not None else None
        if kind == "message" and not replay:
            return self._messages.append, (parse_message(fields),)
        return None

    def is_message_pending(self) -> bool:
        return bool(self._messages)

    def get_latest_message(self) -> ServerMessage | None:
        return self._messages[0] if self._messages else None

    def clear_latest_message(self) -> None:
        if self._messages:
            self._messages.pop(0)
