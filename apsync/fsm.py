from __future__ import annotations

from typing import TYPE_CHECKING

from statemachine import State, StateMachine

from apsync.api.models import IconState

if TYPE_CHECKING:
    from apsync.notifications import NotificationIcon


class NotificationFSM(StateMachine):
    """Lifecycle of one on-screen notification icon.

    pending -> dropping -> hiding. Removal after hiding is the scheduler's job;
    the FSM only guards the order of transitions.
    """

    pending = State(IconState.pending.value, value=IconState.pending.value, initial=True)
    dropping = State(IconState.dropping.value, value=IconState.dropping.value)
    hiding = State(IconState.hiding.value, value=IconState.hiding.value, final=True)

    release = pending.to(dropping)
    expire = dropping.to(hiding)

    def __init__(self, icon: "NotificationIcon"):
        self.icon = icon
        super().__init__(start_value=icon.state.value)

    def sync_state_to_model(self) -> None:
        self.icon.state = IconState(str(self.current_state.value))
