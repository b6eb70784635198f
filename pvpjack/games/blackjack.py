from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException

from ..exceptions import PvpJackError
from ..schemas import (
    Room, User, GameStatus, PlayerStatus, CreateRoomIn, JoinRoomIn, BetIn,
    RoomView, PlayerView, HandView, SessionOut,
)
from ..security import current_user, get_services, to_user_out, http_error
from .cards import hand_value
from .lobby import inactivity, ROOM_TIMEOUT_SECONDS
from .room_state import current_player

router = APIRouter(prefix="/blackjack", tags=["blackjack"])

# statuses that would give away another player's hand before the reveal
MASKED_STATUSES = {PlayerStatus.BUST, PlayerStatus.BLACKJACK, PlayerStatus.FIVECARD}


def to_view(room: Room, viewer_id: str, spectating: bool = False,
            timeout: float = ROOM_TIMEOUT_SECONDS, now: Optional[float] = None) -> RoomView:
    reveal_all = spectating or room.game_status == GameStatus.ROUND_END
    players = []
    for p in room.players:
        visible = reveal_all or p.user_id == viewer_id
        if visible:
            hand = HandView(cards=[c.to_blob() for c in p.hand], card_count=len(p.hand),
                            value=hand_value(p.hand) if p.hand else None)
            status = p.status.value
        else:
            hand = HandView(card_count=len(p.hand))
            status = "done" if p.status in MASKED_STATUSES else p.status.value
        players.append(PlayerView(
            user_id=p.user_id,
            username=p.username,
            bet=p.bet,
            status=status,
            hand=hand,
            is_winner=p.user_id in room.winners,
        ))
    idle = inactivity(room, now, timeout)
    turn = current_player(room) if room.game_status == GameStatus.PLAYING else None
    return RoomView(
        id=room.id,
        name=room.name,
        creator_id=room.creator_id,
        creator_name=room.creator_name,
        is_private=room.is_private,
        players=players,
        spectators=[s.username for s in room.spectators],
        max_players=room.max_players,
        game_status=room.game_status,
        current_turn_index=room.current_turn_index,
        current_player_id=turn.user_id if turn else None,
        round_number=room.round_number,
        min_bet=room.min_bet,
        pot=room.pot,
        winners=room.winners,
        message=room.message,
        inactive_minutes=idle[0],
        minutes_until_prune=idle[1],
    )


def _view_for(services, user: User, room: Room) -> RoomView:
    spectating = room.is_spectator(user.id) and room.player(user.id) is None
    return to_view(room, user.id, spectating, timeout=services.lobby.room_timeout)


def _current_view(services, user: User, room_id: str, room: Optional[Room]) -> RoomView:
    # None from the service means the action was stale: answer with the room as it is now
    if room is None:
        room = services.repo.room(room_id)
    if room is None:
        raise HTTPException(404, "Room not found")
    return _view_for(services, user, room)


# --------- lobby ---------
@router.get("/rooms", response_model=List[RoomView])
def list_rooms(user: User = Depends(current_user), services=Depends(get_services)):
    return [_view_for(services, user, r) for r in services.lobby.visible_rooms(user)]


@router.post("/rooms", response_model=RoomView)
async def create_room(body: CreateRoomIn, user: User = Depends(current_user), services=Depends(get_services)):
    try:
        room = await services.lobby.create_room(user, body.name, body.is_private, body.code, body.min_bet)
    except PvpJackError as e:
        raise http_error(e)
    return _view_for(services, user, room)


@router.get("/rooms/{room_id}", response_model=RoomView)
def get_room(room_id: str, user: User = Depends(current_user), services=Depends(get_services)):
    return _current_view(services, user, room_id, None)


@router.post("/rooms/{room_id}/join", response_model=RoomView)
async def join_room(room_id: str, body: JoinRoomIn, user: User = Depends(current_user),
                    services=Depends(get_services)):
    try:
        room = await services.lobby.join_room(user, room_id, body.code)
    except PvpJackError as e:
        raise http_error(e)
    return _view_for(services, user, room)


@router.post("/rooms/{room_id}/enter", response_model=RoomView)
def enter_room(room_id: str, user: User = Depends(current_user), services=Depends(get_services)):
    try:
        room = services.lobby.enter_room(user, room_id)
    except PvpJackError as e:
        raise http_error(e)
    return _view_for(services, user, room)


@router.post("/rooms/{room_id}/spectate", response_model=RoomView)
async def spectate(room_id: str, user: User = Depends(current_user), services=Depends(get_services)):
    try:
        room = await services.lobby.spectate(user, room_id)
    except PvpJackError as e:
        raise http_error(e)
    return _current_view(services, user, room.id, None)


@router.post("/leave")
async def leave_room(user: User = Depends(current_user), services=Depends(get_services)):
    await services.lobby.leave_room(user)
    return {"ok": True}


@router.get("/session", response_model=SessionOut)
def session(user: User = Depends(current_user), services=Depends(get_services)):
    s = services.lobby.reconcile(user.id)
    room = None
    if s.current_room_id is not None:
        found = services.repo.room(s.current_room_id)
        if found is not None:
            room = to_view(found, user.id, s.spectating, timeout=services.lobby.room_timeout)
    return SessionOut(user=to_user_out(user), current_room_id=s.current_room_id,
                      spectating=s.spectating, room=room)


# --------- game actions ---------
@router.post("/rooms/{room_id}/start", response_model=RoomView)
async def start(room_id: str, user: User = Depends(current_user), services=Depends(get_services)):
    try:
        room = await services.game.start_game(room_id, user.id)
    except PvpJackError as e:
        raise http_error(e)
    return _current_view(services, user, room_id, room)


@router.post("/rooms/{room_id}/bet", response_model=RoomView)
async def bet(room_id: str, body: BetIn, user: User = Depends(current_user), services=Depends(get_services)):
    try:
        room = await services.game.place_bet(room_id, user.id, body.amount)
    except PvpJackError as e:
        raise http_error(e)
    return _current_view(services, user, room_id, room)


@router.post("/rooms/{room_id}/hit", response_model=RoomView)
async def hit(room_id: str, user: User = Depends(current_user), services=Depends(get_services)):
    room = await services.game.hit(room_id, user.id)
    return _current_view(services, user, room_id, room)


@router.post("/rooms/{room_id}/stand", response_model=RoomView)
async def stand(room_id: str, user: User = Depends(current_user), services=Depends(get_services)):
    room = await services.game.stand(room_id, user.id)
    return _current_view(services, user, room_id, room)


@router.post("/rooms/{room_id}/next-round", response_model=RoomView)
async def next_round(room_id: str, user: User = Depends(current_user), services=Depends(get_services)):
    try:
        room = await services.game.next_round(room_id, user.id)
    except PvpJackError as e:
        raise http_error(e)
    return _current_view(services, user, room_id, room)
