from __future__ import annotations

from apsync.session import Session

from conftest import SLOT, FakeRelay


def test_local_death_is_sent(session: Session, relay: FakeRelay) -> None:
    session.on_death()

    assert relay.commands("death_link") == [{"cmd": "death_link", "source": SLOT}]


def test_remote_death_is_pending_until_cleared(session: Session, relay: FakeRelay) -> None:
    assert not session.should_die()

    relay.death()
    assert session.should_die()
    # Polling does not consume it.
    assert session.should_die()

    session.clear_death()
    assert not session.should_die()


def test_clear_without_pending_death_is_harmless(session: Session) -> None:
    session.clear_death()

    assert not session.should_die()
