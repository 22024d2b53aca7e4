from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager

from fastapi import APIRouter, Depends, HTTPException, status

from apsync.api.deps import get_session
from apsync.api.models import (
    ChatRequest,
    CheckLocationRequest,
    EnterLevelRequest,
    EnterLevelResponse,
    LevelView,
    NotificationView,
    SessionView,
)
from apsync.lock import SessionBusy, session_lock
from apsync.session import Session

router = APIRouter()


@contextmanager
def _locked(session: Session) -> Iterator[Session]:
    try:
        with session_lock(session, timeout_s=1.0) as s:
            yield s
    except SessionBusy as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e)) from e


def _require_level(session: Session, ep: int, map: int) -> None:
    p = session.profile
    if not (1 <= ep <= p.episode_count and 1 <= map <= p.map_count):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Level E{ep}M{map} not found")


def _level_view(session: Session, ep: int, map: int) -> LevelView:
    info = session.level_info(ep, map)
    level = session.level_state(ep, map)
    return LevelView(
        ep=ep,
        map=map,
        name=info.name,
        completed=level.completed,
        unlocked=level.unlocked,
        has_map=level.has_map,
        flipped=level.flipped,
        keys=list(level.keys),
        check_count=level.check_count,
        total_checks=info.check_count,
    )


@router.get("/healthcheck")
def healthcheck() -> dict[str, str]:
    return {"status": "ok"}


@router.get("/session", response_model=SessionView)
def get_session_route(session: Session = Depends(get_session)) -> SessionView:
    with _locked(session):
        s = session.state
        return SessionView(
            game=session.profile.game,
            seed=session.get_seed(),
            in_game=session.in_game,
            ep=s.ep,
            map=s.map,
            episodes=list(s.episodes),
            victory=s.victory,
            player=s.player.model_copy(deep=True),
        )


@router.get("/session/levels/{ep}", response_model=list[LevelView])
def list_levels_route(ep: int, session: Session = Depends(get_session)) -> list[LevelView]:
    _require_level(session, ep, 1)
    with _locked(session):
        return [_level_view(session, ep, m) for m in range(1, session.profile.map_count + 1)]


@router.get("/session/notifications", response_model=list[NotificationView])
def notifications_route(session: Session = Depends(get_session)) -> list[NotificationView]:
    with _locked(session):
        return [
            NotificationView(sprite=i.sprite, text=i.text, x=i.x, y=i.y, state=i.state.value)
            for i in session.notification_icons()
        ]


@router.post("/session/levels/enter", response_model=EnterLevelResponse)
def enter_level_route(payload: EnterLevelRequest, session: Session = Depends(get_session)) -> EnterLevelResponse:
    _require_level(session, payload.ep, payload.map)
    with _locked(session):
        try:
            path = session.enter_level(payload.ep, payload.map)
        except ValueError as e:
            raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e)) from e
    return EnterLevelResponse(ep=payload.ep, map=payload.map, save_path=str(path) if path else None)


@router.post("/session/levels/leave", status_code=status.HTTP_204_NO_CONTENT)
def leave_level_route(session: Session = Depends(get_session)) -> None:
    with _locked(session):
        session.return_to_level_select()
        session.save()


@router.post("/session/locations/check", status_code=status.HTTP_202_ACCEPTED)
def check_location_route(payload: CheckLocationRequest, session: Session = Depends(get_session)) -> dict[str, bool]:
    _require_level(session, payload.ep, payload.map)
    with _locked(session):
        session.check_location(payload.ep, payload.map, payload.index)
        progressive = session.is_location_progressive(payload.ep, payload.map, payload.index)
    return {"progressive": progressive}


@router.post("/session/levels/{ep}/{map}/complete", response_model=LevelView)
def complete_level_route(ep: int, map: int, session: Session = Depends(get_session)) -> LevelView:
    _require_level(session, ep, map)
    with _locked(session):
        session.complete_level(ep, map)
        session.check_victory()
        return _level_view(session, ep, map)


@router.post("/session/chat", status_code=status.HTTP_202_ACCEPTED)
def chat_route(payload: ChatRequest, session: Session = Depends(get_session)) -> dict[str, str]:
    with _locked(session):
        session.send_message(payload.text)
    return {"status": "sent"}


@router.post("/session/death", status_code=status.HTTP_202_ACCEPTED)
def death_route(session: Session = Depends(get_session)) -> dict[str, str]:
    with _locked(session):
        session.on_death()
    return {"status": "sent"}


@router.delete("/session/death", status_code=status.HTTP_204_NO_CONTENT)
def clear_death_route(session: Session = Depends(get_session)) -> None:
    with _locked(session):
        session.clear_death()


@router.get("/session/death")
def poll_death_route(session: Session = Depends(get_session)) -> dict[str, bool]:
    with _locked(session):
        return {"pending": session.should_die()}
