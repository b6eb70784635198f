"""
Lobby coordinator: which room each user session is in.

A session holds the user's current room (zero or one), whether they are
spectating, and a provisional cached copy of the rooms/users collections.
The cache is refreshed by ``reconcile`` (polling) and by store change
events; every mutation still re-reads the store first.
"""
import dataclasses
import logging
import os
import time
from typing import Dict, List, Optional

from pydantic import ValidationError

from ..exceptions import NotAllowed, RoomFull, RoomNotFound, ValidationFailed, WrongRoomCode
from ..notifier import TelegramNotifier, notify
from ..schemas import Room, User, Spectator, GameStatus
from ..store import GameRepository, StoreChange, ROOMS_KEY, USERS_KEY
from . import room_state
from .service import GameService

logger = logging.getLogger(__name__)

ROOM_TIMEOUT_SECONDS = float(os.getenv("ROOM_TIMEOUT_SECONDS", "3600"))


@dataclasses.dataclass
class ClientSession:
    user_id: str
    current_room_id: Optional[str] = None
    spectating: bool = False
    rooms: List[Room] = dataclasses.field(default_factory=list)
    users: List[User] = dataclasses.field(default_factory=list)
    synced_at: float = 0.0

    def enter(self, room_id: str, spectating: bool = False):
        self.current_room_id = room_id
        self.spectating = spectating

    def evict(self):
        self.current_room_id = None
        self.spectating = False


def inactivity(room: Room, now: Optional[float] = None, timeout: float = ROOM_TIMEOUT_SECONDS):
    """(minutes idle, minutes left before pruning)"""
    elapsed = max(0.0, (now or time.time()) - room.last_update)
    remaining = max(0.0, timeout - elapsed)
    return int(elapsed // 60), int(remaining // 60)



def find_room_of(rooms: List[Room], user_id: str) -> Optional[Room]:
    """The room the user is seated in, else the first one they are watching."""
    seated = next((r for r in rooms if r.player(user_id) is not None), None)
    return seated or next((r for r in rooms if r.is_spectator(user_id)), None)


class LobbyCoordinator:
    def __init__(self, repo: GameRepository, service: GameService, notifier: TelegramNotifier,
                 room_timeout: float = ROOM_TIMEOUT_SECONDS):
        self.repo = repo
        self.service = service
        self.notifier = notifier
        self.room_timeout = room_timeout
        self.sessions: Dict[str, ClientSession] = {}
        self._unsubscribe = repo.store.subscribe(self.on_store_change)

    def close(self):
        self._unsubscribe()

    def session(self, user_id: str) -> ClientSession:
        s = self.sessions.get(user_id)
        if s is None:
            s = self.sessions[user_id] = ClientSession(user_id=user_id)
        return s

    def current_room_id(self, user_id: str, rooms: Optional[List[Room]] = None) -> Optional[str]:
        """The session's room; an empty session is filled from the store."""
        s = self.session(user_id)
        if s.current_room_id is None:
            room = find_room_of(self.repo.rooms() if rooms is None else rooms, user_id)
            if room is not None:
                s.enter(room.id, spectating=room.player(user_id) is None)
        return s.current_room_id

    # --------- queries ---------
    def visible_rooms(self, user: User) -> List[Room]:
        rooms = self.repo.rooms()
        if user.is_super_admin:
            return rooms
        return [r for r in rooms if r.game_status == GameStatus.WAITING or r.player(user.id) is not None]

    # --------- seat changes ---------
    async def create_room(self, user: User, name: str, is_private: bool = False, code: str = "",
                          min_bet: int = room_state.DEFAULT_MIN_BET) -> Room:
        name = (name or "").strip()
        code = (code or "").strip()
        if not name:
            raise ValidationFailed("Enter a room name")
        if is_private and not code:
            raise ValidationFailed("A private room needs a code")
        if min_bet < 1:
            raise ValidationFailed("Minimum bet must be at least 1")
        await self.leave_room(user)
        room = room_state.new_room(user.id, user.username, name, is_private, code, min_bet)
        self.repo.add_room(room)
        self.session(user.id).enter(room.id)
        logger.info("User %s created room %s (%s)", user.username, room.name, room.id)
        return room

    async def join_room(self, user: User, room_id: str, code: Optional[str] = None) -> Room:
        room = self.repo.room(room_id)
        if room is None:
            raise RoomNotFound(room_id)
        if room.player(user.id) is not None:
            self.session(user.id).enter(room.id)
            return room
        if len(room.players) >= room.max_players:
            raise RoomFull("Room is full")
        if room.game_status != GameStatus.WAITING:
            raise ValidationFailed("Game already in progress")
        if room.is_private and code != room.code:
            raise WrongRoomCode(room_id)

        current = self.current_room_id(user.id)
        if current is not None and current != room_id:
            await self.leave_room(user)
            room = self.repo.room(room_id)
            if room is None:
                raise RoomNotFound(room_id)
        seated = room_state.seat_player(room, user.id, user.username)
        if not self.repo.put_room(seated):
            raise RoomNotFound(room_id)
        self.session(user.id).enter(room_id)
        logger.info("User %s joined room %s", user.username, room_id)
        return seated

    def enter_room(self, user: User, room_id: str) -> Room:
        room = self.repo.room(room_id)
        if room is None:
            raise RoomNotFound(room_id)
        if room.player(user.id) is not None:
            self.session(user.id).enter(room_id)
        elif room.is_spectator(user.id):
            self.session(user.id).enter(room_id, spectating=True)
        else:
            raise ValidationFailed("You are not in this room")
        return room

    async def spectate(self, user: User, room_id: str) -> Room:
        """Watch a room with every hand revealed. Super admins only."""
        if not user.is_super_admin:
            raise NotAllowed("Only super admins can spectate")
        current = self.current_room_id(user.id)
        if current is not None and current != room_id:
            await self.leave_room(user)
        room = self.repo.room(room_id)
        if room is None:
            raise RoomNotFound(room_id)
        if room.player(user.id) is not None:
            unseated = room_state.unseat(room, user.id)
            if unseated is None:
                raise ValidationFailed("Cannot spectate: you are the only player")
            room = unseated
        if not room.is_spectator(user.id):
            room = room.model_copy(deep=True)
            room.spectators.append(Spectator(user_id=user.id, username=user.username))
            room_state.touch(room)
        if not self.repo.put_room(room):
            raise RoomNotFound(room_id)
        self.session(user.id).enter(room_id, spectating=True)
        await self.service.after_seat_change(room)
        return room

    async def leave_room(self, user: User) -> Optional[Room]:
        room_id = self.current_room_id(user.id)
        self.session(user.id).evict()
        if room_id is None:
            return None
        room = self.repo.room(room_id)
        if room is None:
            return None
        updated = room_state.unseat(room, user.id)
        if updated is None:
            self.repo.delete_room(room_id)
            self.service.forget(room_id)
            logger.info("Room %s deleted: last player %s left", room_id, user.username)
            return None
        if not self.repo.put_room(updated):
            return None
        return await self.service.after_seat_change(updated)

    async def logout(self, user: User):
        await self.leave_room(user)
        self.sessions.pop(user.id, None)

    # --------- maintenance ---------
    async def prune_inactive(self, now: Optional[float] = None) -> List[Room]:
        """Delete rooms idle past the timeout and send their occupants to the lobby."""
        now = now or time.time()
        rooms = self.repo.rooms()
        expired = [r for r in rooms if now - r.last_update >= self.room_timeout]
        if not expired:
            return []
        active = [r for r in rooms if now - r.last_update < self.room_timeout]
        self.repo.save_rooms(active)
        for r in expired:
            self.service.forget(r.id)
        logger.info("Pruned %d inactive rooms: %s", len(expired), [r.name for r in expired])

        lines = [
            "🧹 <b>Automatic room cleanup</b>",
            "",
            f"⏰ <b>{len(expired)}</b> inactive rooms deleted:",
            "",
        ]
        for r in expired:
            mins = int((now - r.last_update) // 60)
            lines.append(f"• <b>{r.name}</b> ({len(r.players)} players, {mins} min inactive)")
        lines += ["", f"📊 Active rooms left: <b>{len(active)}</b>"]
        await notify(self.notifier, self.repo.telegram_config(), "\n".join(lines), "cleanup")
        return expired

    def reconcile(self, user_id: str) -> ClientSession:
        """Poll: refresh the cached view and point the session at the room the store has the user in."""
        s = self.session(user_id)
        s.rooms = self.repo.rooms()
        s.users = self.repo.users()
        s.synced_at = time.time()
        if s.current_room_id is not None:
            room = next((r for r in s.rooms if r.id == s.current_room_id), None)
            if room is None or (room.player(user_id) is None and not room.is_spectator(user_id)):
                logger.info("Session %s evicted from room %s", user_id, s.current_room_id)
                s.evict()
            elif room.player(user_id) is not None:
                s.spectating = False
        self.current_room_id(user_id, s.rooms)
        return s

    def on_store_change(self, change: StoreChange):
        if change.key == ROOMS_KEY:
            try:
                rooms = [Room.model_validate(r) for r in change.value or []]
            except (ValidationError, TypeError):
                logger.warning("Ignoring malformed rooms change event")
                return
            ids = {r.id for r in rooms}
            for s in list(self.sessions.values()):
                s.rooms = rooms
                if s.current_room_id is not None and s.current_room_id not in ids:
                    logger.info("Session %s evicted: room %s no longer exists", s.user_id, s.current_room_id)
                    s.evict()
        elif change.key == USERS_KEY:
            try:
                users = [User.model_validate(u) for u in change.value or []]
            except (ValidationError, TypeError):
                logger.warning("Ignoring malformed users change event")
                return
            for s in list(self.sessions.values()):
                s.users = users
