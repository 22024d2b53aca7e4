from __future__ import annotations

import logging
from collections.abc import Callable

from apsync.client.base import HintMessage, ItemRecvMessage, ItemSendMessage, MessagingClient, ServerMessage

logger = logging.getLogger(__name__)

# Inline color tokens understood by the HUD renderer: `~<digit>` switches
# color until the next token.
COLOR_TEXT = "~2"
COLOR_LOCATION = "~3"
COLOR_PLAYER = "~4"
COLOR_ITEM = "~9"


def format_message(msg: ServerMessage) -> str:
    if isinstance(msg, ItemSendMessage):
        return f"{COLOR_ITEM}{msg.item}{COLOR_TEXT} was sent to {COLOR_PLAYER}{msg.recv_player}"
    if isinstance(msg, ItemRecvMessage):
        return f"{COLOR_TEXT}Received {COLOR_ITEM}{msg.item}{COLOR_TEXT} from {COLOR_PLAYER}{msg.send_player}"
    if isinstance(msg, HintMessage):
        checked = " (Checked)" if msg.checked else " (Unchecked)"
        return (
            f"{COLOR_ITEM}{msg.item}{COLOR_TEXT} from {COLOR_PLAYER}{msg.send_player}"
            f"{COLOR_TEXT} to {COLOR_PLAYER}{msg.recv_player}{COLOR_TEXT} at {COLOR_LOCATION}{msg.location}{checked}"
        )
    return f"{COLOR_TEXT}{msg.text}"


class MessageRelay:
    """Moves chat/log lines from the client inbox to the HUD callback.

    Lines that arrive before the session is initialized are held and
    delivered, in order, on the first update after initialization.
    """

    def __init__(self, deliver: Callable[[str], None]) -> None:
        self._deliver = deliver
        self._cached: list[str] = []

    @property
    def cached(self) -> tuple[str, ...]:
        return tuple(self._cached)

    def flush(self) -> None:
        cached, self._cached = self._cached, []
        for line in cached:
            self._deliver(line)

    def drain(self, client: MessagingClient, *, initialized: bool) -> int:
        handled = 0
        while client.is_message_pending():
            msg = client.get_latest_message()
            if msg is not None:
                logger.info("%s", msg.text)
                line = format_message(msg)
                if initialized:
                    self._deliver(line)
                else:
                    self._cached.append(line)
                handled += 1
            client.clear_latest_message()
        return handled
