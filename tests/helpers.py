import time

from pvpjack.notifier import NotifyResult
from pvpjack.schemas import Card, GameStatus, PlayerInGame, PlayerStatus, Room, User


def card(rank, suit="spades"):
    return Card(suit=suit, rank=rank)


def hand(*ranks):
    return [card(r) for r in ranks]


def player(user_id, ranks=(), status=PlayerStatus.PLAYING, bet=100):
    return PlayerInGame(user_id=user_id, username=user_id, hand=hand(*ranks), bet=bet, status=status)


def make_room(*players, status=GameStatus.PLAYING, turn=0, deck=None, room_id="r1", min_bet=10):
    return Room(
        id=room_id,
        name="Table " + room_id,
        creator_id=players[0].user_id,
        creator_name=players[0].username,
        players=list(players),
        game_status=status,
        current_turn_index=turn,
        deck=deck or [],
        min_bet=min_bet,
        pot=sum(p.bet for p in players),
        last_update=time.time(),
    )


def make_user(user_id, balance=1000, **kw):
    kw.setdefault("full_name", user_id.title())
    kw.setdefault("email", f"{user_id}@example.com")
    return User(id=user_id, username=user_id, balance=balance, **kw)


class StackedShuffle:
    """Stands in for random.Random: the given cards come off the shoe first, in order."""

    def __init__(self, *top):
        self.top = top

    def shuffle(self, cards):
        for c in self.top:
            cards.remove(c)
        cards.extend(reversed(self.top))


class FakeNotifier:
    def __init__(self, ok=True):
        self.ok = ok
        self.sent = []

    async def send(self, config, message):
        self.sent.append(message)
        if self.ok:
            return NotifyResult(ok=True)
        return NotifyResult(ok=False, error="offline")

    async def test_connection(self, config):
        return NotifyResult(ok=self.ok, bot_name="TestBot")
