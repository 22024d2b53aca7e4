from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from enum import StrEnum


class ConnectionStatus(StrEnum):
    disconnected = "disconnected"
    connecting = "connecting"
    authenticated = "authenticated"
    connection_refused = "connection_refused"


@dataclass(frozen=True, slots=True)
class RoomInfo:
    seed_name: str


@dataclass(frozen=True, slots=True)
class NetworkItem:
    """One scouted location; bit 0 of `flags` marks a progression item."""

    location: int
    flags: int = 0
    item: int = 0
    player: int = 0


@dataclass(frozen=True, slots=True)
class TextMessage:
    text: str


@dataclass(frozen=True, slots=True)
class ItemSendMessage:
    text: str
    item: str
    recv_player: str


@dataclass(frozen=True, slots=True)
class ItemRecvMessage:
    text: str
    item: str
    send_player: str


@dataclass(frozen=True, slots=True)
class HintMessage:
    text: str
    item: str
    send_player: str
    recv_player: str
    location: str
    checked: bool


ServerMessage = TextMessage | ItemSendMessage | ItemRecvMessage | HintMessage

ItemReceivedCallback = Callable[[int, bool], None]
LocationCheckedCallback = Callable[[int], None]
LocationInfoCallback = Callable[[list[NetworkItem]], None]
SlotDataCallback = Callable[[int], None]


class MessagingClient(ABC):
    """Everything the session needs from the server connection.

    Events are delivered by `poll()` through the registered callbacks, on the
    thread that calls it. Chat/log lines are a separate polled inbox. Sends
    are fire-and-forget.
    """

    @abstractmethod
    def set_client_version(self, version: tuple[int, int, int]) -> None:
        raise NotImplementedError

    @abstractmethod
    def connect(self, *, server: str, game: str, slot: str, password: str) -> None:
        raise NotImplementedError

    @abstractmethod
    def poll(self) -> None:
        raise NotImplementedError

    @abstractmethod
    def last_event_id(self) -> str:
        """Id of the newest inbox event already delivered or replayed."""
        raise NotImplementedError

    @abstractmethod
    def set_replay_boundary(self, event_id: str) -> None:
        """Deliver events up to `event_id` again without notifying."""
        raise NotImplementedError

    @abstractmethod
    def connection_status(self) -> ConnectionStatus:
        raise NotImplementedError

    @abstractmethod
    def room_info(self) -> RoomInfo:
        raise NotImplementedError

    @abstractmethod
    def set_death_link_supported(self, supported: bool) -> None:
        raise NotImplementedError

    @abstractmethod
    def set_item_received_callback(self, cb: ItemReceivedCallback) -> None:
        raise NotImplementedError

    @abstractmethod
    def set_location_checked_callback(self, cb: LocationCheckedCallback) -> None:
        raise NotImplementedError

    @abstractmethod
    def set_location_info_callback(self, cb: LocationInfoCallback) -> None:
        raise NotImplementedError

    @abstractmethod
    def register_slot_data_callback(self, key: str, cb: SlotDataCallback) -> None:
        raise NotImplementedError

    @abstractmethod
    def is_message_pending(self) -> bool:
        raise NotImplementedError

    @abstractmethod
    def get_latest_message(self) -> ServerMessage | None:
        raise NotImplementedError

    @abstractmethod
    def clear_latest_message(self) -> None:
        raise NotImplementedError

    @abstractmethod
    def send_item(self, location_id: int) -> None:
        """Report a checked location."""
        raise NotImplementedError

    @abstractmethod
    def send_location_scouts(self, location_ids: Sequence[int], create_as_hint: int = 0) -> None:
        raise NotImplementedError

    @abstractmethod
    def send_say(self, text: str) -> None:
        raise NotImplementedError

    @abstractmethod
    def story_complete(self) -> None:
        raise NotImplementedError

    @abstractmethod
    def death_link_send(self) -> None:
        raise NotImplementedError

    @abstractmethod
    def death_link_clear(self) -> None:
        raise NotImplementedError

    @abstractmethod
    def death_link_pending(self) -> bool:
        raise NotImplementedError
