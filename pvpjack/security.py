import os, datetime as dt
from jose import jwt, JWTError
from fastapi import HTTPException, Request, Response, Depends
from passlib.hash import bcrypt
from .exceptions import PvpJackError, ValidationFailed, InvalidCredentials, NotAllowed, RoomNotFound, UserNotFound
from .schemas import User, UserOut

JWT_SECRET = os.getenv("JWT_SECRET", "dev-secret-change-me")
JWT_ALG = "HS256"
COOKIE_NAME = "session"
# In local dev over HTTP, secure cookies won't persist; make this configurable.
SECURE_COOKIES = os.getenv("SECURE_COOKIES", "0").lower() in ("1", "true", "yes", "on")

def get_services(request: Request):
    # built once per app in create_app(); tests pass their own
    return request.app.state.services

def hash_pw(pw: str) -> str:
    return bcrypt.hash(pw)

def verify_pw(pw: str, h: str) -> bool:
    if not h:
        return False
    return bcrypt.verify(pw, h)

def make_jwt(user_id: str) -> str:
    now = dt.datetime.now(dt.timezone.utc)
    payload = {"sub": str(user_id), "iat": int(now.timestamp()), "exp": int((now + dt.timedelta(days=7)).timestamp())}
    return jwt.encode(payload, JWT_SECRET, algorithm=JWT_ALG)

def read_jwt(token: str) -> str:
    data = jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALG])
    return str(data["sub"])

def set_session_cookie(resp: Response, token: str):
    # NOTE: secure=True prevents cookies on http://localhost; toggle via SECURE_COOKIES env.
    resp.set_cookie(
        key=COOKIE_NAME,
        value=token,
        httponly=True,
        secure=SECURE_COOKIES,
        samesite="lax",
        max_age=7*24*3600,
        path="/",
    )

def clear_session_cookie(resp: Response):
    resp.delete_cookie(COOKIE_NAME, path="/")

def session_user_id(request: Request):
    token = request.cookies.get(COOKIE_NAME)
    if not token:
        return None
    try:
        return read_jwt(token)
    except (JWTError, KeyError):
        return None

def current_user(request: Request, services=Depends(get_services)) -> User:
    token = request.cookies.get(COOKIE_NAME)
    if not token:
        raise HTTPException(status_code=401, detail="Not authenticated")
    try:
        uid = read_jwt(token)
    except (JWTError, KeyError):
        raise HTTPException(status_code=401, detail="Invalid token")
    # re-read from the store on every request
    user = services.repo.user(uid)
    if not user:
        raise HTTPException(status_code=401, detail="Missing user")
    return user

def super_admin(user: User = Depends(current_user)) -> User:
    if not user.is_super_admin:
        raise HTTPException(status_code=403, detail="Super admin only")
    return user

def to_user_out(user: User) -> UserOut:
    return UserOut(
        id=user.id, username=user.username, full_name=user.full_name, email=user.email or None,
        balance=user.balance, is_admin=user.is_admin, is_super_admin=user.is_super_admin,
    )

def http_error(e: PvpJackError) -> HTTPException:
    if isinstance(e, InvalidCredentials):
        return HTTPException(status_code=401, detail=str(e))
    if isinstance(e, ValidationFailed):
        return HTTPException(status_code=400, detail=str(e))
    if isinstance(e, NotAllowed):
        return HTTPException(status_code=403, detail=str(e))
    if isinstance(e, (RoomNotFound, UserNotFound)):
        return HTTPException(status_code=404, detail=str(e))
    return HTTPException(status_code=409, detail=str(e))
