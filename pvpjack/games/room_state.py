"""
Room state machine.

waiting -> betting -> playing -> roundEnd -> betting ...
Any state with players seated can fall back to waiting when too few remain.

Every mutator takes a room, works on a deep copy and returns the new room,
or ``None`` when the action is stale (wrong phase, wrong turn, unknown
player). Callers persist the returned room; ``None`` means "do nothing".
Bad input raises ``ValidationFailed`` instead.
"""
import random
import time
import uuid
from typing import Optional

from ..exceptions import InvalidBet, InsufficientBalance, InvalidStateTransition
from ..schemas import (
    Room, PlayerInGame, GameStatus, PlayerStatus, TERMINAL_STATUSES,
)
from .cards import create_deck, hand_value, is_blackjack, MAX_CARDS, SHOE_DECKS

MAX_PLAYERS = 8
MIN_PLAYERS = 2
DEFAULT_MIN_BET = 10

TRANSITIONS = {
    GameStatus.WAITING: {GameStatus.BETTING},
    # betting -> roundEnd when every dealt hand is a natural
    GameStatus.BETTING: {GameStatus.PLAYING, GameStatus.ROUND_END, GameStatus.WAITING},
    GameStatus.PLAYING: {GameStatus.ROUND_END, GameStatus.WAITING},
    GameStatus.ROUND_END: {GameStatus.BETTING, GameStatus.WAITING},
}


def can_transition(src: GameStatus, dst: GameStatus) -> bool:
    return dst in TRANSITIONS.get(src, set())


def transition(room: Room, dst: GameStatus) -> Room:
    if not can_transition(room.game_status, dst):
        raise InvalidStateTransition(room.game_status, dst)
    room.game_status = dst
    return room


def fingerprint(room: Room) -> str:
    """Identity of a room's position in the state machine, used to drop stale timers."""
    statuses = ",".join(p.status.value for p in room.players)
    return f"{room.game_status.value}:{room.round_number}:{room.current_turn_index}:{statuses}"


def touch(room: Room, message: Optional[str] = None) -> Room:
    if message is not None:
        room.message = message
    room.last_update = time.time()
    return room


# --------- construction ---------
def new_room(creator_id: str, creator_name: str, name: str, is_private: bool = False,
             code: str = "", min_bet: int = DEFAULT_MIN_BET) -> Room:
    room = Room(
        id=uuid.uuid4().hex,
        name=name,
        creator_id=creator_id,
        creator_name=creator_name,
        is_private=is_private,
        code=code if is_private else "",
        players=[PlayerInGame(user_id=creator_id, username=creator_name)],
        max_players=MAX_PLAYERS,
        min_bet=min_bet,
        message="Waiting for players...",
    )
    return touch(room)


def reset_players(room: Room) -> Room:
    for p in room.players:
        p.hand = []
        p.bet = 0
        p.status = PlayerStatus.WAITING
    room.pot = 0
    return room


def revert_to_waiting(room: Room, message: str = "Not enough players. Waiting for more...") -> Room:
    """Cancel whatever is in progress and wait for players."""
    if room.game_status != GameStatus.WAITING:
        transition(room, GameStatus.WAITING)
    reset_players(room)
    room.deck = []
    room.winners = []
    room.current_turn_index = 0
    return touch(room, message)


def driver_id(room: Room) -> Optional[str]:
    """Who may start the game and the next round: the creator, else the first seat."""
    if room.player(room.creator_id) is not None:
        return room.creator_id
    return room.players[0].user_id if room.players else None


def current_player(room: Room) -> Optional[PlayerInGame]:
    if room.game_status != GameStatus.PLAYING:
        return None
    if 0 <= room.current_turn_index < len(room.players):
        return room.players[room.current_turn_index]
    return None


def is_turn_of(room: Room, user_id: str) -> bool:
    p = current_player(room)
    return p is not None and p.user_id == user_id


def all_ready(room: Room) -> bool:
    return len(room.players) >= MIN_PLAYERS and all(
        p.status == PlayerStatus.READY for p in room.players
    )


# --------- transitions ---------
def start_game(room: Room, user_id: str) -> Optional[Room]:
    """waiting -> betting."""
    if room.game_status != GameStatus.WAITING:
        return None
    if driver_id(room) != user_id or len(room.players) < MIN_PLAYERS:
        return None
    room = room.model_copy(deep=True)
    transition(room, GameStatus.BETTING)
    reset_players(room)
    room.winners = []
    return touch(room, "Place your bets!")


def place_bet(room: Room, user_id: str, amount: int, balance: int) -> Optional[Room]:
    """Record a bet and mark the player ready. Balance is not touched here."""
    if room.game_status != GameStatus.BETTING:
        return None
    idx = room.seat_of(user_id)
    if idx < 0:
        return None
    if room.players[idx].status not in (PlayerStatus.WAITING, PlayerStatus.READY):
        return None
    if amount < room.min_bet:
        raise InvalidBet(f"Minimum bet is {room.min_bet}")
    if amount > balance:
        raise InsufficientBalance(f"Bet {amount} exceeds balance {balance}")
    room = room.model_copy(deep=True)
    p = room.players[idx]
    p.bet = amount
    p.status = PlayerStatus.READY
    room.pot = sum(pl.bet for pl in room.players)
    return touch(room, f"{p.username} bet {amount} coins!")


def first_playable_index(room: Room, start: int = 0) -> int:
    """Index of the next seat still playing at or after ``start``; len(players) if none."""
    idx = start
    while idx < len(room.players) and room.players[idx].status != PlayerStatus.PLAYING:
        idx += 1
    return idx


def deal(room: Room, rng: Optional[random.Random] = None) -> Optional[Room]:
    """betting -> playing with a fresh shoe and two cards per seat.

    Naturals are marked ``blackjack`` and never get a turn. A natural beats
    every other hand, so once one is dealt nobody else plays. The other seats
    stand on their dealt cards and the turn index is put past the last seat,
    so the caller settles the round straight away.
    """
    if room.game_status != GameStatus.BETTING or not all_ready(room):
        return None
    room = room.model_copy(deep=True)
    deck = create_deck(SHOE_DECKS, rng)
    for p in room.players:
        p.hand = [deck.pop(), deck.pop()]
        p.status = PlayerStatus.BLACKJACK if is_blackjack(p.hand) else PlayerStatus.PLAYING
    room.deck = deck
    room.pot = sum(p.bet for p in room.players)
    room.round_number += 1
    if any(p.status == PlayerStatus.BLACKJACK for p in room.players):
        for p in room.players:
            if p.status == PlayerStatus.PLAYING:
                p.status = PlayerStatus.STAND
        room.current_turn_index = len(room.players)
    else:
        room.current_turn_index = first_playable_index(room)
    if room.current_turn_index < len(room.players):
        transition(room, GameStatus.PLAYING)
        msg = f"Cards dealt! {room.players[room.current_turn_index].username} is playing..."
    else:
        msg = "Cards dealt!"
    return touch(room, msg)


def hit(room: Room, user_id: str) -> Optional[Room]:
    if not is_turn_of(room, user_id):
        return None
    idx = room.current_turn_index
    player = room.players[idx]
    if len(player.hand) >= MAX_CARDS or player.status != PlayerStatus.PLAYING:
        return None
    if not room.deck:
        return None
    room = room.model_copy(deep=True)
    player = room.players[idx]
    player.hand.append(room.deck.pop())
    value = hand_value(player.hand)
    if value > 21:
        player.status = PlayerStatus.BUST
    elif len(player.hand) >= MAX_CARDS:
        player.status = PlayerStatus.FIVECARD
    elif value == 21:
        player.status = PlayerStatus.STAND
    if player.status in TERMINAL_STATUSES:
        msg = f"{player.username} finished their turn."
    else:
        msg = f"{player.username} drew a card."
    return touch(room, msg)


def stand(room: Room, user_id: str) -> Optional[Room]:
    if not is_turn_of(room, user_id):
        return None
    idx = room.current_turn_index
    if room.players[idx].status != PlayerStatus.PLAYING:
        return None
    room = room.model_copy(deep=True)
    player = room.players[idx]
    player.status = PlayerStatus.STAND
    return touch(room, f"{player.username} stands.")


# --------- seats ---------
def seat_player(room: Room, user_id: str, username: str) -> Room:
    room = room.model_copy(deep=True)
    room.spectators = [s for s in room.spectators if s.user_id != user_id]
    room.players.append(PlayerInGame(user_id=user_id, username=username))
    return touch(room)


def unseat(room: Room, user_id: str) -> Optional[Room]:
    """Remove a player and/or spectator.

    Returns ``None`` when the room is left without players and must be
    deleted. Dropping below two players outside ``waiting`` cancels the
    round.
    """
    room = room.model_copy(deep=True)
    seat = room.seat_of(user_id)
    room.spectators = [s for s in room.spectators if s.user_id != user_id]
    room.players = [p for p in room.players if p.user_id != user_id]
    if not room.players:
        return None
    if len(room.players) < MIN_PLAYERS and room.game_status != GameStatus.WAITING:
        return revert_to_waiting(room)
    if seat >= 0:
        room.pot = sum(p.bet for p in room.players)
        if room.game_status == GameStatus.PLAYING:
            if seat < room.current_turn_index:
                room.current_turn_index -= 1
            elif seat == room.current_turn_index:
                # may land past the last seat; the caller then settles the round
                room.current_turn_index = first_playable_index(room, seat)
    return touch(room)
