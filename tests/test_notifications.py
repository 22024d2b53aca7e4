from __future__ import annotations

import pytest
from statemachine.exceptions import TransitionNotAllowed

from apsync.api.models import IconState
from apsync.notifications import (
    ICON_PADDING,
    ICON_SIZE,
    MAX_AGE,
    SPAWN_X,
    SPAWN_Y,
    STACK_BASE_Y,
    NotificationIcon,
    NotificationScheduler,
)


def _tick(scheduler: NotificationScheduler, n: int) -> None:
    for _ in range(n):
        scheduler.tick()


def test_new_icon_spawns_pending_above_the_screen() -> None:
    scheduler = NotificationScheduler()
    icon = scheduler.push(sprite="BKEYA0", text="Entryway")

    assert icon.state == IconState.pending
    assert icon.xf == SPAWN_X
    assert icon.yf == SPAWN_Y
    assert icon.fsm.current_state.id == "pending"


def test_icon_falls_and_settles_on_the_stack_base() -> None:
    scheduler = NotificationScheduler()
    scheduler.push(sprite="BKEYA0")

    _tick(scheduler, 1)
    (icon,) = scheduler.icons()
    assert icon.state == IconState.dropping
    assert icon.yf > SPAWN_Y

    _tick(scheduler, 200)
    assert icon.y == int(STACK_BASE_Y - ICON_SIZE - ICON_PADDING)
    assert icon.state == IconState.dropping


def test_icon_does_not_hide_before_max_age() -> None:
    scheduler = NotificationScheduler()
    scheduler.push(sprite="BKEYA0")

    _tick(scheduler, MAX_AGE + 1)

    (icon,) = scheduler.icons()
    assert icon.state != IconState.hiding
    assert icon.t <= MAX_AGE + 1


def test_resting_icon_hides_on_the_tick_after_max_age() -> None:
    scheduler = NotificationScheduler()
    icon = scheduler.push(sprite="BKEYA0")
    # Already on its resting slot, so every tick counts as a touchdown.
    icon.yf = STACK_BASE_Y - ICON_SIZE - ICON_PADDING

    _tick(scheduler, MAX_AGE)
    assert icon.state == IconState.dropping
    assert icon.t == MAX_AGE

    scheduler.tick()
    assert icon.state == IconState.hiding
    assert icon.t == MAX_AGE + 1


def test_icon_eventually_hides_then_is_removed() -> None:
    scheduler = NotificationScheduler()
    icon = scheduler.push(sprite="BKEYA0")

    saw_hiding = False
    for _ in range(2000):
        scheduler.tick()
        if icon.state == IconState.hiding:
            saw_hiding = True
        if len(scheduler) == 0:
            break

    assert saw_hiding
    assert len(scheduler) == 0
    assert icon.xf < -ICON_SIZE / 2


def test_second_icon_waits_for_room_then_stacks() -> None:
    scheduler = NotificationScheduler()
    first = scheduler.push(sprite="BKEYA0")
    second = scheduler.push(sprite="RKEYA0")

    _tick(scheduler, 1)
    assert first.state == IconState.dropping
    assert second.state == IconState.pending

    _tick(scheduler, 300)
    assert second.state == IconState.dropping
    assert second.y == int(first.yf - ICON_SIZE - ICON_PADDING)
    assert scheduler.icons() == (first, second)


def test_hidden_icon_cannot_drop_again() -> None:
    icon = NotificationIcon(sprite="BKEYA0")
    icon.release()
    icon.expire()

    assert icon.state == IconState.hiding
    with pytest.raises(TransitionNotAllowed):
        icon.release()


def test_clear_drops_every_icon() -> None:
    scheduler = NotificationScheduler()
    scheduler.push(sprite="BKEYA0")
    scheduler.push(sprite="RKEYA0")

    scheduler.clear()

    assert scheduler.icons() == ()
