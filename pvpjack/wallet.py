from typing import List
from fastapi import APIRouter, Depends
from .exceptions import PvpJackError
from .schemas import User, UserOut, BalanceActionIn, TelegramConfig, TelegramConfigIn, NotifyOut
from .security import current_user, super_admin, get_services, to_user_out, http_error

router = APIRouter(prefix="/wallet", tags=["wallet"])

def _notify_out(result) -> NotifyOut:
    return NotifyOut(ok=result.ok, error=result.error, bot_name=result.bot_name)

@router.get("/balance")
def balance(user: User = Depends(current_user)):
    return {"balance": user.balance}

# --------- super admin ---------
@router.get("/admin/users", response_model=List[UserOut])
def search_users(q: str = "", admin: User = Depends(super_admin), services=Depends(get_services)):
    return [to_user_out(u) for u in services.ledger.search(admin, q)]

@router.post("/admin/balance", response_model=UserOut)
async def balance_action(body: BalanceActionIn, admin: User = Depends(super_admin), services=Depends(get_services)):
    try:
        user = await services.ledger.adjust(admin, body.user_id, body.action, body.amount, body.note)
    except PvpJackError as e:
        raise http_error(e)
    return to_user_out(user)

@router.post("/admin/report/{user_id}", response_model=NotifyOut)
async def report_user(user_id: str, admin: User = Depends(super_admin), services=Depends(get_services)):
    try:
        result = await services.ledger.report_user(admin, user_id)
    except PvpJackError as e:
        raise http_error(e)
    return _notify_out(result)

@router.post("/admin/report", response_model=NotifyOut)
async def report_all(admin: User = Depends(super_admin), services=Depends(get_services)):
    return _notify_out(await services.ledger.report_all(admin))

@router.post("/admin/withdraw-report/{user_id}", response_model=NotifyOut)
async def withdraw_report(user_id: str, admin: User = Depends(super_admin), services=Depends(get_services)):
    try:
        result = await services.ledger.withdraw_report(admin, user_id)
    except PvpJackError as e:
        raise http_error(e)
    return _notify_out(result)

@router.get("/admin/telegram", response_model=TelegramConfigIn)
def get_telegram(admin: User = Depends(super_admin), services=Depends(get_services)):
    cfg = services.repo.telegram_config()
    return TelegramConfigIn(bot_token=cfg.bot_token, chat_id=cfg.chat_id)

@router.put("/admin/telegram", response_model=TelegramConfigIn)
def set_telegram(body: TelegramConfigIn, admin: User = Depends(super_admin), services=Depends(get_services)):
    cfg = TelegramConfig(bot_token=body.bot_token.strip(), chat_id=body.chat_id.strip())
    services.repo.set_telegram_config(cfg)
    return TelegramConfigIn(bot_token=cfg.bot_token, chat_id=cfg.chat_id)

@router.post("/admin/telegram/test", response_model=NotifyOut)
async def test_telegram(admin: User = Depends(super_admin), services=Depends(get_services)):
    return _notify_out(await services.notifier.test_connection(services.repo.telegram_config()))
