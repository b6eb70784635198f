import os

# settings are read at import time
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("JWT_SECRET", "test-secret")

import pytest
from sqlalchemy.orm import sessionmaker

from pvpjack.db import Base, make_engine
from pvpjack.games.lobby import LobbyCoordinator
from pvpjack.games.service import GameService
from pvpjack.ledger import Ledger
from pvpjack.store import SharedStore, GameRepository

from helpers import FakeNotifier


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def session_factory():
    engine = make_engine("sqlite://")
    Base.metadata.create_all(bind=engine)
    yield sessionmaker(bind=engine, autoflush=False, autocommit=False)
    engine.dispose()


@pytest.fixture
def store(session_factory):
    return SharedStore(session_factory)


@pytest.fixture
def repo(store):
    return GameRepository(store)


@pytest.fixture
def notifier():
    return FakeNotifier()


@pytest.fixture
def service(repo, notifier):
    return GameService(repo, notifier, advance_delay=0, deal_delay=0)


@pytest.fixture
def lobby(repo, service, notifier):
    coordinator = LobbyCoordinator(repo, service, notifier, room_timeout=3600)
    yield coordinator
    coordinator.close()


@pytest.fixture
def ledger(repo, notifier):
    return Ledger(repo, notifier)
