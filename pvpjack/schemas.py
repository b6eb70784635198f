from enum import Enum
from typing import Optional, Literal, List

from pydantic import BaseModel, ConfigDict, EmailStr, Field
from pydantic.alias_generators import to_camel


class Record(BaseModel):
    # Stored blobs use camelCase keys; Python code uses snake_case
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_blob(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


# --------- Game records ---------
class Suit(str, Enum):
    HEARTS = "hearts"
    DIAMONDS = "diamonds"
    CLUBS = "clubs"
    SPADES = "spades"

Rank = Literal["A", "2", "3", "4", "5", "6", "7", "8", "9", "10", "J", "Q", "K"]

class GameStatus(str, Enum):
    WAITING = "waiting"
    BETTING = "betting"
    PLAYING = "playing"
    ROUND_END = "roundEnd"

class PlayerStatus(str, Enum):
    WAITING = "waiting"
    READY = "ready"
    PLAYING = "playing"
    STAND = "stand"
    BUST = "bust"
    BLACKJACK = "blackjack"
    FIVECARD = "fivecard"

# Hand is frozen for the rest of the round once a player reaches one of these
TERMINAL_STATUSES = frozenset(
    {PlayerStatus.STAND, PlayerStatus.BUST, PlayerStatus.BLACKJACK, PlayerStatus.FIVECARD}
)

class Card(Record):
    model_config = ConfigDict(frozen=True)
    suit: Suit
    rank: Rank

class PlayerInGame(Record):
    user_id: str
    username: str
    hand: List[Card] = Field(default_factory=list)
    bet: int = Field(default=0, ge=0)
    status: PlayerStatus = PlayerStatus.WAITING

class Spectator(Record):
    user_id: str
    username: str

class Room(Record):
    id: str
    name: str
    creator_id: str
    creator_name: str
    is_private: bool = False
    code: str = ""
    players: List[PlayerInGame] = Field(default_factory=list)
    spectators: List[Spectator] = Field(default_factory=list)
    max_players: int = 8
    game_status: GameStatus = GameStatus.WAITING
    deck: List[Card] = Field(default_factory=list)
    current_turn_index: int = 0
    round_number: int = 0
    min_bet: int = 10
    pot: int = 0
    winners: List[str] = Field(default_factory=list)
    message: str = ""
    last_update: float = 0.0

    def player(self, user_id: str) -> Optional[PlayerInGame]:
        for p in self.players:
            if p.user_id == user_id:
                return p
        return None

    def seat_of(self, user_id: str) -> int:
        for idx, p in enumerate(self.players):
            if p.user_id == user_id:
                return idx
        return -1

    def is_spectator(self, user_id: str) -> bool:
        return any(s.user_id == user_id for s in self.spectators)

class User(Record):
    id: str
    username: str
    full_name: str = ""
    email: str = ""
    password_hash: str = ""
    balance: int = Field(default=0, ge=0)
    is_admin: bool = False
    is_super_admin: bool = False
    created_at: float = 0.0

class TelegramConfig(Record):
    bot_token: str = ""
    chat_id: str = ""


# --------- Request bodies ---------
class RegisterIn(BaseModel):
    username: str = Field(min_length=3)
    full_name: str = Field(min_length=1)
    email: EmailStr
    password: str = Field(min_length=4)

class LoginIn(BaseModel):
    identifier: str
    password: str

class CreateRoomIn(BaseModel):
    name: str
    is_private: bool = False
    code: str = ""
    min_bet: int = 10

class JoinRoomIn(BaseModel):
    code: Optional[str] = None

class BetIn(BaseModel):
    amount: int

class BalanceActionIn(BaseModel):
    user_id: str
    action: Literal["set", "add", "subtract", "reset", "withdraw"]
    amount: int = 0
    note: Optional[str] = None

class TelegramConfigIn(BaseModel):
    bot_token: str = ""
    chat_id: str = ""


# --------- Views ---------
class UserOut(BaseModel):
    id: str
    username: str
    full_name: str
    email: Optional[str] = None
    balance: int
    is_admin: bool = False
    is_super_admin: bool = False

class HandView(BaseModel):
    cards: Optional[list] = None  # None when hidden from this viewer
    card_count: int
    value: Optional[int] = None

class PlayerView(BaseModel):
    user_id: str
    username: str
    bet: int
    status: str
    hand: HandView
    is_winner: bool = False

class RoomView(BaseModel):
    id: str
    name: str
    creator_id: str
    creator_name: str
    is_private: bool
    players: List[PlayerView]
    spectators: List[str]
    max_players: int
    game_status: GameStatus
    current_turn_index: int
    current_player_id: Optional[str] = None
    round_number: int
    min_bet: int
    pot: int
    winners: List[str]
    message: str
    inactive_minutes: int
    minutes_until_prune: int

class SessionOut(BaseModel):
    user: UserOut
    current_room_id: Optional[str] = None
    spectating: bool = False
    room: Optional[RoomView] = None

class NotifyOut(BaseModel):
    ok: bool
    error: Optional[str] = None
    bot_name: Optional[str] = None
