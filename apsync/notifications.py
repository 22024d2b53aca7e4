from __future__ import annotations

from dataclasses import dataclass, field

from apsync.api.models import IconState
from apsync.fsm import NotificationFSM


ICON_SIZE = 30
ICON_PADDING = 2

SPAWN_X = ICON_SIZE / 2 + ICON_PADDING
SPAWN_Y = -200.0 + ICON_SIZE / 2

# Bottom of the stacking region; the first settled icon rests just above it.
STACK_BASE_Y = 2.0
RELEASE_Y = -160.0

GRAVITY = 0.15
MAX_FALL_SPEED = 8.0
BOUNCE = -0.3
HIDE_ACCELERATION = 0.14

# Ticks spent resting before sliding away (~10 seconds at 35 ticks/second).
MAX_AGE = 350


@dataclass(slots=True)
class NotificationIcon:
    sprite: str
    text: str = ""
    xf: float = SPAWN_X
    yf: float = SPAWN_Y
    velx: float = 0.0
    vely: float = 0.0
    t: int = 0
    state: IconState = IconState.pending
    x: int = int(SPAWN_X)
    y: int = int(SPAWN_Y)
    fsm: NotificationFSM = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        self.fsm = NotificationFSM(self)

    def release(self) -> None:
        self.fsm.release()
        self.fsm.sync_state_to_model()

    def expire(self) -> None:
        self.fsm.expire()
        self.fsm.sync_state_to_model()


class NotificationScheduler:
    """Animates acknowledgement icons: they drop into a stack, bounce, then slide off.

    Each icon rests on the one before it, so the stack grows upward from
    `STACK_BASE_Y`. Icons wait in `pending` until the icon below them has
    fallen far enough to leave room.
    """

    def __init__(self) -> None:
        self._icons: list[NotificationIcon] = []

    def push(self, *, sprite: str, text: str = "") -> NotificationIcon:
        icon = NotificationIcon(sprite=sprite, text=text)
        self._icons.append(icon)
        return icon

    def icons(self) -> tuple[NotificationIcon, ...]:
        return tuple(self._icons)

    def __len__(self) -> int:
        return len(self._icons)

    def clear(self) -> None:
        self._icons.clear()

    def tick(self) -> None:
        previous_y = STACK_BASE_Y
        kept: list[NotificationIcon] = []

        for icon in self._icons:
            if icon.state == IconState.pending and previous_y > RELEASE_Y:
                icon.release()
            if icon.state == IconState.pending:
                kept.append(icon)
                continue

            if icon.state == IconState.dropping:
                icon.vely = min(icon.vely + GRAVITY, MAX_FALL_SPEED)
                icon.yf += icon.vely
                rest_y = previous_y - ICON_SIZE - ICON_PADDING
                if icon.yf >= rest_y:
                    icon.yf = rest_y
                    icon.vely *= BOUNCE
                    icon.t += 1
                    if icon.t > MAX_AGE:
                        icon.expire()

            if icon.state == IconState.hiding:
                icon.velx -= HIDE_ACCELERATION
                icon.xf += icon.velx
                if icon.xf < -ICON_SIZE / 2:
                    continue

            icon.x = int(icon.xf)
            icon.y = int(icon.yf)
            previous_y = icon.yf
            kept.append(icon)

        self._icons = kept
