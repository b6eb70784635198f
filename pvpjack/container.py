import dataclasses
import logging
import os
from typing import Optional

from sqlalchemy.orm import sessionmaker

from .db import Base, SessionLocal
from .games.lobby import LobbyCoordinator
from .games.service import GameService
from .ledger import Ledger
from .notifier import TelegramNotifier
from .security import hash_pw
from .store import SharedStore, GameRepository

logger = logging.getLogger(__name__)

SUPER_ADMIN_USERNAME = os.getenv("SUPER_ADMIN_USERNAME")
SUPER_ADMIN_PASSWORD = os.getenv("SUPER_ADMIN_PASSWORD")
SUPER_ADMIN_BALANCE = 999999


@dataclasses.dataclass
class Services:
    repo: GameRepository
    notifier: TelegramNotifier
    ledger: Ledger
    game: GameService
    lobby: LobbyCoordinator


def build_services(session_factory: Optional[sessionmaker] = None,
                   notifier: Optional[TelegramNotifier] = None, **game_options) -> Services:
    session_factory = session_factory or SessionLocal
    Base.metadata.create_all(bind=session_factory.kw["bind"])
    repo = GameRepository(SharedStore(session_factory))
    notifier = notifier or TelegramNotifier()
    game = GameService(repo, notifier, **game_options)
    return Services(
        repo=repo,
        notifier=notifier,
        ledger=Ledger(repo, notifier),
        game=game,
        lobby=LobbyCoordinator(repo, game, notifier),
    )


def ensure_super_admin(services: Services, username: Optional[str] = SUPER_ADMIN_USERNAME,
                       password: Optional[str] = SUPER_ADMIN_PASSWORD):
    if not username or not password:
        return None
    existing = services.ledger.find_login(username)
    if existing is None:
        logger.info("Bootstrapping super admin %s", username)
        return services.ledger.create_user(
            username=username, full_name="Super Admin", email="",
            password_hash=hash_pw(password), balance=SUPER_ADMIN_BALANCE, is_super_admin=True,
        )
    if not existing.is_super_admin:
        existing = existing.model_copy(update={"is_admin": True, "is_super_admin": True})
        services.repo.put_user(existing)
    return existing
