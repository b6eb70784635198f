"""
Shared store: whole-collection blobs with last-writer-wins semantics.

Every collection (all rooms, all users, notifier settings) lives in one row
of ``store_blobs``. Nothing is locked; callers re-read right before they
mutate and write the whole collection back. ``GameRepository`` adds typed
access on top, and is the only thing the game code talks to.
"""
import dataclasses
import logging
from typing import Any, Callable, Dict, List, Optional

from pydantic import ValidationError
from sqlalchemy.orm import Session, sessionmaker

from .db import SessionLocal
from .models import StoreBlob
from .schemas import Room, User, TelegramConfig

logger = logging.getLogger(__name__)

USERS_KEY = "users"
ROOMS_KEY = "rooms"
TELEGRAM_KEY = "telegramConfig"


@dataclasses.dataclass(frozen=True)
class StoreChange:
    key: str
    value: Any


Listener = Callable[[StoreChange], None]


class SharedStore:
    def __init__(self, session_factory: sessionmaker = SessionLocal):
        self._session_factory = session_factory
        self._listeners: List[Listener] = []

    def load(self, key: str, fallback: Any = None) -> Any:
        with self._session_factory() as db:
            blob = db.get(StoreBlob, key)
            if blob is None or blob.value is None:
                return fallback
            return blob.value

    def save(self, key: str, value: Any) -> None:
        self.save_many({key: value})

    def save_many(self, values: Dict[str, Any]) -> None:
        """Write several collections in one transaction."""
        with self._session_factory() as db:
            for key, value in values.items():
                self._upsert(db, key, value)
            db.commit()
        for key, value in values.items():
            self._emit(StoreChange(key=key, value=value))

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)
        return unsubscribe

    @staticmethod
    def _upsert(db: Session, key: str, value: Any):
        blob = db.get(StoreBlob, key)
        if blob is None:
            db.add(StoreBlob(key=key, value=value))
        else:
            blob.value = value

    def _emit(self, change: StoreChange):
        for listener in list(self._listeners):
            try:
                listener(change)
            except Exception:
                logger.error("Store listener failed for %s", change.key, exc_info=True)


class GameRepository:
    """Typed rooms/users/config access over a SharedStore."""

    def __init__(self, store: SharedStore):
        self.store = store

    # --------- rooms ---------
    def rooms(self) -> List[Room]:
        return self._load_records(ROOMS_KEY, Room)

    def room(self, room_id: str) -> Optional[Room]:
        for r in self.rooms():
            if r.id == room_id:
                return r
        return None

    def put_room(self, room: Room) -> bool:
        """Replace a room by id. A room deleted meanwhile is not resurrected."""
        rooms = self.rooms()
        for idx, r in enumerate(rooms):
            if r.id == room.id:
                rooms[idx] = room
                self.save_rooms(rooms)
                return True
        logger.debug("Room %s vanished before write; dropping update", room.id)
        return False

    def add_room(self, room: Room) -> None:
        rooms = self.rooms()
        rooms.append(room)
        self.save_rooms(rooms)

    def delete_room(self, room_id: str) -> bool:
        rooms = self.rooms()
        kept = [r for r in rooms if r.id != room_id]
        if len(kept) == len(rooms):
            return False
        self.save_rooms(kept)
        return True

    def save_rooms(self, rooms: List[Room]) -> None:
        self.store.save(ROOMS_KEY, [r.to_blob() for r in rooms])

    # --------- users ---------
    def users(self) -> List[User]:
        return self._load_records(USERS_KEY, User)

    def user(self, user_id: str) -> Optional[User]:
        for u in self.users():
            if u.id == user_id:
                return u
        return None

    def put_user(self, user: User) -> None:
        users = self.users()
        for idx, u in enumerate(users):
            if u.id == user.id:
                users[idx] = user
                break
        else:
            users.append(user)
        self.save_users(users)

    def save_users(self, users: List[User]) -> None:
        self.store.save(USERS_KEY, [u.to_blob() for u in users])

    # --------- settlement ---------
    def commit_settlement(self, room: Room, users: List[User]) -> bool:
        """Write the ledger and the settled room together."""
        rooms = self.rooms()
        for idx, r in enumerate(rooms):
            if r.id == room.id:
                rooms[idx] = room
                break
        else:
            logger.warning("Room %s vanished before settlement; ledger left untouched", room.id)
            return False
        self.store.save_many({
            USERS_KEY: [u.to_blob() for u in users],
            ROOMS_KEY: [r.to_blob() for r in rooms],
        })
        return True

    # --------- notifier config ---------
    def telegram_config(self) -> TelegramConfig:
        raw = self.store.load(TELEGRAM_KEY, None)
        if not isinstance(raw, dict):
            return TelegramConfig()
        try:
            return TelegramConfig.model_validate(raw)
        except ValidationError:
            logger.warning("Malformed %s blob; using defaults", TELEGRAM_KEY)
            return TelegramConfig()

    def set_telegram_config(self, config: TelegramConfig) -> None:
        self.store.save(TELEGRAM_KEY, config.to_blob())

    def _load_records(self, key, model):
        raw = self.store.load(key, [])
        if not isinstance(raw, list):
            logger.warning("Malformed %s blob (%s); using empty collection", key, type(raw).__name__)
            return []
        try:
            return [model.model_validate(item) for item in raw]
        except ValidationError as e:
            logger.warning("Malformed %s blob; using empty collection: %s", key, e)
            return []
