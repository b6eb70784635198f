import asyncio
import contextlib
import logging
import os
from pathlib import Path
from fastapi import FastAPI, Depends
from fastapi.middleware.cors import CORSMiddleware

def _load_env_from_file():
    # Load pvpjack/.env into process env for local/dev. In production,
    # real environment variables take precedence and are already set.
    try:
        env_path = Path(__file__).with_name('.env')
        if env_path.exists():
            for raw in env_path.read_text(encoding='utf-8').splitlines():
                line = raw.strip()
                if not line or line.startswith('#') or '=' not in line:
                    continue
                k, v = line.split('=', 1)
                key = k.strip()
                val = v.strip().strip('"').strip("'")
                # Do not override existing real envs
                os.environ.setdefault(key, val)
    except OSError:
        # absence or unreadable .env should not crash the app
        pass

# before the imports below: they read settings at import time
_load_env_from_file()

from .auth import router as auth_router
from .container import Services, build_services, ensure_super_admin
from .games.blackjack import router as blackjack_router
from .security import current_user, to_user_out
from .wallet import router as wallet_router

logger = logging.getLogger(__name__)

PRUNE_INTERVAL_SECONDS = float(os.getenv("PRUNE_INTERVAL_SECONDS", "60"))


async def prune_loop(services: Services, interval: float = PRUNE_INTERVAL_SECONDS):
    while True:
        await asyncio.sleep(interval)
        try:
            await services.lobby.prune_inactive()
        except Exception:
            logger.error("Room pruning failed", exc_info=True)


def create_app(services: Services = None, prune_interval: float = PRUNE_INTERVAL_SECONDS) -> FastAPI:
    services = services or build_services()

    @contextlib.asynccontextmanager
    async def lifespan(app: FastAPI):
        ensure_super_admin(services)
        task = asyncio.create_task(prune_loop(services, prune_interval)) if prune_interval > 0 else None
        try:
            yield
        finally:
            if task is not None:
                task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await task
            services.lobby.close()

    app = FastAPI(title="PvP Blackjack API", lifespan=lifespan)
    app.state.services = services

    origins = [os.getenv("CLIENT_ORIGIN", "http://localhost:5173")]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/healthz")
    def healthz(): return {"ok": True}

    @app.get("/me")
    def me(user=Depends(current_user)):
        return to_user_out(user)

    app.include_router(auth_router)
    app.include_router(wallet_router)
    app.include_router(blackjack_router)
    return app


app = create_app()
