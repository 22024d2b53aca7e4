from __future__ import annotations

from dataclasses import replace

import pytest

from apsync.client.base import NetworkItem
from apsync.ingestion import apply_slot_data, receive_location, receive_location_info
from apsync.session import Session

from conftest import FakeRelay


def test_checked_location_is_recorded_once(session: Session) -> None:
    receive_location(session, 4243)
    receive_location(session, 4243)
    receive_location(session, 4242)

    level = session.level_state(1, 1)
    assert level.checks == [1, 0]
    assert level.check_count == 2


def test_level_complete_location_is_not_a_check(session: Session) -> None:
    receive_location(session, 4245)

    level = session.level_state(1, 1)
    assert level.checks == []
    assert level.check_count == 0
    assert not level.completed


def test_unknown_location_is_logged_and_ignored(session: Session, caplog: pytest.LogCaptureFixture) -> None:
    before = session.state.model_dump()

    with caplog.at_level("WARNING"):
        receive_location(session, 1)

    assert session.state.model_dump() == before
    assert "not found" in caplog.text


def test_checks_stop_at_the_cap(session: Session) -> None:
    capped = replace(session.profile.constants, check_max=2)
    session.profile = replace(session.profile, constants=capped)

    for loc_id in (4242, 4243, 4244):
        receive_location(session, loc_id)

    assert session.level_state(1, 1).checks == [0, 1]
    assert session.level_state(1, 1).check_count == 2


def test_locations_arrive_through_the_client(session: Session, relay: FakeRelay) -> None:
    relay.location(4300)
    relay.location(4301)
    relay.location(4300)

    session.update()

    assert session.level_state(1, 2).checks == [0, 1]


def test_location_info_records_progression_flags(session: Session) -> None:
    receive_location_info(
        session,
        [
            NetworkItem(location=4242, flags=0b001),
            NetworkItem(location=4243, flags=0b100),
            NetworkItem(location=4300, flags=0b011),
        ],
    )

    assert session.state.progressive_locations == {4242, 4300}
    assert session.is_location_progressive(1, 1, 0)
    assert not session.is_location_progressive(1, 1, 1)
    assert not session.is_location_progressive(1, 9, 0)


def test_slot_data_configures_the_session(session: Session, relay: FakeRelay) -> None:
    relay.slot_data("difficulty", 3)
    relay.slot_data("random_pickups", 1)
    relay.slot_data("flip_levels", 2)
    relay.slot_data("two_ways_keydoors", 1)
    relay.slot_data("episode1", 0)

    session.update()

    s = session.state
    assert s.difficulty == 3
    assert s.random_items == 1
    assert s.random_monsters == 0
    assert s.flip_levels == 2
    assert s.two_ways_keydoors is True
    assert s.episodes == [False]


def test_slot_data_for_missing_episodes_is_ignored(session: Session) -> None:
    apply_slot_data(session, "episode4", 1)
    apply_slot_data(session, "not_a_key", 1)

    assert session.state.episodes == [True]
