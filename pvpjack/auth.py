# pvpjack/auth.py
import logging
import os
from fastapi import APIRouter, Depends, Request, Response
from .exceptions import PvpJackError, InvalidCredentials
from .schemas import RegisterIn, LoginIn, UserOut
from .security import (
    get_services, hash_pw, verify_pw, make_jwt, set_session_cookie, clear_session_cookie,
    session_user_id, to_user_out, http_error,
)

logger = logging.getLogger(__name__)

STARTING_BALANCE = int(os.getenv("STARTING_BALANCE", "1000"))

router = APIRouter(prefix="/auth", tags=["auth"])

@router.post("/register", response_model=UserOut)
async def register(payload: RegisterIn, response: Response, services=Depends(get_services)):
    # username and email must be unique, case-insensitively
    try:
        user = services.ledger.create_user(
            username=payload.username.strip(),
            full_name=payload.full_name.strip(),
            email=str(payload.email).strip(),
            password_hash=hash_pw(payload.password),
            balance=STARTING_BALANCE,
        )
    except PvpJackError as e:
        raise http_error(e)
    await services.ledger.announce_registration(user)

    set_session_cookie(response, make_jwt(user.id))
    return to_user_out(user)

@router.post("/login", response_model=UserOut)
def login(payload: LoginIn, response: Response, services=Depends(get_services)):
    user = services.ledger.find_login(payload.identifier)
    if not user or not verify_pw(payload.password, user.password_hash):
        raise http_error(InvalidCredentials("Invalid credentials"))

    logger.info("User %s logged in", user.username)
    set_session_cookie(response, make_jwt(user.id))
    return to_user_out(user)

@router.post("/logout")
async def logout(request: Request, response: Response, services=Depends(get_services)):
    uid = session_user_id(request)
    user = services.repo.user(uid) if uid else None
    if user is not None:
        await services.lobby.logout(user)
    clear_session_cookie(response)
    return {"ok": True}
