from __future__ import annotations

from apsync.client.base import MessagingClient


class DeathLinkBridge:
    """Pass-through to the client's death-link channel; holds no state of its own."""

    def __init__(self, client: MessagingClient) -> None:
        self._client = client

    def on_death(self) -> None:
        self._client.death_link_send()

    def clear_death(self) -> None:
        self._client.death_link_clear()

    def should_die(self) -> bool:
        return self._client.death_link_pending()
