"""
Game service: every player action is one read-modify-write cycle.

1. re-read the room from the shared store
2. apply a pure transition from room_state / settlement
3. write the whole room back (a stale transition returns None: nothing is written)
4. schedule the automatic follow-up (auto-deal, auto-advance) if the new
   state calls for one

There are no awaits between 1 and 3, so on one event loop each cycle is
atomic with respect to other requests.
"""
import logging
import os
import random
from typing import Optional

from ..notifier import TelegramNotifier, notify
from ..schemas import Room, GameStatus
from ..store import GameRepository
from . import room_state
from .room_state import fingerprint, all_ready, driver_id
from .scheduler import TransitionScheduler
from .settlement import (
    advance_turn, round_over, current_is_done, determine_winners, settle,
    apply_settlement, finish_round, notification_text,
)

logger = logging.getLogger(__name__)

AUTO_ADVANCE_DELAY = float(os.getenv("AUTO_ADVANCE_DELAY", "1.0"))
AUTO_DEAL_DELAY = float(os.getenv("AUTO_DEAL_DELAY", "0.5"))


class GameService:
    def __init__(self, repo: GameRepository, notifier: TelegramNotifier,
                 scheduler: Optional[TransitionScheduler] = None,
                 advance_delay: float = AUTO_ADVANCE_DELAY,
                 deal_delay: float = AUTO_DEAL_DELAY,
                 rng: Optional[random.Random] = None):
        self.repo = repo
        self.notifier = notifier
        self.scheduler = scheduler or TransitionScheduler()
        self.advance_delay = advance_delay
        self.deal_delay = deal_delay
        self.rng = rng

    # --------- player actions ---------
    async def start_game(self, room_id: str, user_id: str) -> Optional[Room]:
        room = self.repo.room(room_id)
        if room is None:
            return None
        return await self._commit(room_state.start_game(room, user_id), "start")

    async def place_bet(self, room_id: str, user_id: str, amount: int) -> Optional[Room]:
        room = self.repo.room(room_id)
        if room is None:
            return None
        user = self.repo.user(user_id)
        balance = user.balance if user else 0
        return await self._commit(room_state.place_bet(room, user_id, amount, balance), "bet")

    async def hit(self, room_id: str, user_id: str) -> Optional[Room]:
        room = self.repo.room(room_id)
        if room is None:
            return None
        return await self._commit(room_state.hit(room, user_id), "hit")

    async def stand(self, room_id: str, user_id: str) -> Optional[Room]:
        room = self.repo.room(room_id)
        if room is None:
            return None
        return await self._commit(room_state.stand(room, user_id), "stand")

    async def next_round(self, room_id: str, user_id: str) -> Optional[Room]:
        """roundEnd -> betting, dropping seats that cannot cover the minimum bet."""
        room = self.repo.room(room_id)
        if room is None or room.game_status != GameStatus.ROUND_END or driver_id(room) != user_id:
            logger.debug("Ignoring stale next-round in room %s by %s", room_id, user_id)
            return None
        balances = {u.id: u.balance for u in self.repo.users()}
        room = room.model_copy(deep=True)
        dropped = [p.username for p in room.players if balances.get(p.user_id, 0) < room.min_bet]
        room.players = [p for p in room.players if balances.get(p.user_id, 0) >= room.min_bet]
        if dropped:
            logger.info("Room %s: dropped %s (balance below %s)", room.id, dropped, room.min_bet)
        if len(room.players) < room_state.MIN_PLAYERS:
            room = room_state.revert_to_waiting(room)
        else:
            room_state.transition(room, GameStatus.BETTING)
            room_state.reset_players(room)
            room.winners = []
            room_state.touch(room, "New round! Place your bets!")
        return await self._commit(room, "next-round")

    # --------- automatic transitions ---------
    async def deal(self, room_id: str) -> Optional[Room]:
        room = self.repo.room(room_id)
        if room is None:
            return None
        dealt = room_state.deal(room, self.rng)
        if dealt is None:
            return None
        logger.info("Room %s: round %s dealt to %d players", room_id, dealt.round_number, len(dealt.players))
        if round_over(dealt):
            # a natural was dealt; nobody plays
            return await self.end_round(dealt)
        return await self._commit(dealt, "deal")

    async def advance(self, room_id: str) -> Optional[Room]:
        room = self.repo.room(room_id)
        if room is None or not current_is_done(room):
            return None
        moved = advance_turn(room)
        if round_over(moved):
            return await self.end_round(moved)
        return await self._commit(moved, "advance")

    async def end_round(self, room: Room) -> Optional[Room]:
        """Settle the round once: winners, ledger deltas, room -> roundEnd, notification."""
        fresh = self.repo.room(room.id)
        if fresh is None or fresh.game_status == GameStatus.ROUND_END:
            return None
        winners = determine_winners(room.players)
        result = settle(room.players, winners)
        users = apply_settlement(self.repo.users(), result)
        settled = finish_round(room, result)
        if not self.repo.commit_settlement(settled, users):
            return None
        logger.info(
            "Room %s: round %s settled, winners=%s share=%s remainder=%s",
            room.id, settled.round_number, result.winners, result.winner_share, result.remainder,
        )
        await notify(self.notifier, self.repo.telegram_config(), notification_text(settled, result), "round")
        return self.repo.room(room.id)

    async def after_seat_change(self, room: Room) -> Optional[Room]:
        """Follow-ups once a seat was added or removed and the room persisted."""
        if room.game_status == GameStatus.PLAYING and round_over(room):
            return await self.end_round(room)
        await self._follow_up(room)
        return self.repo.room(room.id)

    def forget(self, room_id: str):
        self.scheduler.cancel(room_id)

    # --------- internals ---------
    async def _commit(self, room: Optional[Room], action: str) -> Optional[Room]:
        if room is None:
            logger.debug("Ignoring stale %s", action)
            return None
        if not self.repo.put_room(room):
            return None
        await self._follow_up(room)
        return self.repo.room(room.id)

    async def _follow_up(self, room: Room):
        if room.game_status == GameStatus.BETTING and all_ready(room):
            await self._later(room, "deal", self.deal_delay, self._auto_deal)
        elif current_is_done(room):
            await self._later(room, "advance", self.advance_delay, self._auto_advance)

    async def _later(self, room: Room, kind: str, delay: float, fn):
        fp = fingerprint(room)
        if delay <= 0:
            await fn(room.id, fp)
            return
        room_id = room.id
        self.scheduler.schedule(room_id, kind, fp, delay, lambda expected: fn(room_id, expected))

    async def _auto_deal(self, room_id: str, expected: str):
        room = self.repo.room(room_id)
        if room is None or fingerprint(room) != expected:
            logger.debug("Dropping stale auto-deal for room %s", room_id)
            return
        await self.deal(room_id)

    async def _auto_advance(self, room_id: str, expected: str):
        room = self.repo.room(room_id)
        if room is None or fingerprint(room) != expected:
            logger.debug("Dropping stale auto-advance for room %s", room_id)
            return
        await self.advance(room_id)
