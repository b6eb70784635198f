"""
Administrative balance operations.

Round results are applied by the settlement engine; everything else that
touches a balance goes through here, and only for super admins.
"""
import datetime as dt
import logging
import time
import uuid
from typing import List, Optional, Tuple

from .exceptions import DuplicateAccount, NotAllowed, UserNotFound, ValidationFailed
from .notifier import TelegramNotifier, notify
from .schemas import User
from .store import GameRepository

logger = logging.getLogger(__name__)

BALANCE_ACTIONS = ("set", "add", "subtract", "reset", "withdraw")


def apply_balance_action(balance: int, action: str, amount: int = 0) -> Tuple[int, str]:
    """Return ``(new_balance, label)`` or raise ValidationFailed."""
    if action == "set":
        if amount < 0:
            raise ValidationFailed("Balance cannot be negative")
        return amount, f"Balance set: {amount} coin"
    if action == "add":
        if amount <= 0:
            raise ValidationFailed("Amount to add must be greater than 0")
        return balance + amount, f"Bonus added: +{amount} coin"
    if action == "subtract":
        if amount <= 0:
            raise ValidationFailed("Amount to subtract must be greater than 0")
        return max(0, balance - amount), f"Coins removed: -{amount} coin"
    if action == "reset":
        return 0, "Balance reset"
    if action == "withdraw":
        return 0, f"Withdrawal: {balance} coin withdrawn"
    raise ValidationFailed(f"Unknown balance action: {action}")


def _stamp() -> str:
    return dt.datetime.now().strftime("%Y-%m-%d %H:%M:%S")


def _who(user: User) -> List[str]:
    return [
        f"👤 <b>Player:</b> {user.full_name}",
        f"🏷 <b>User:</b> @{user.username}",
        f"📧 <b>Email:</b> {user.email}",
    ]


class Ledger:
    def __init__(self, repo: GameRepository, notifier: TelegramNotifier):
        self.repo = repo
        self.notifier = notifier

    # --------- accounts ---------
    def create_user(self, username: str, full_name: str, email: str, password_hash: str,
                    balance: int, is_super_admin: bool = False) -> User:
        users = self.repo.users()
        if any(u.username.lower() == username.lower() for u in users):
            raise DuplicateAccount("Username already exists")
        if email and any(u.email.lower() == email.lower() for u in users):
            raise DuplicateAccount("Email already exists")
        user = User(
            id=("superadmin_" if is_super_admin else "") + uuid.uuid4().hex,
            username=username,
            full_name=full_name,
            email=email,
            password_hash=password_hash,
            balance=balance,
            is_admin=is_super_admin,
            is_super_admin=is_super_admin,
            created_at=time.time(),
        )
        users.append(user)
        self.repo.save_users(users)
        logger.info("Registered user %s (%s)", user.username, user.id)
        return user

    def find_login(self, identifier: str) -> Optional[User]:
        ident = identifier.strip().lower()
        for u in self.repo.users():
            if u.username.lower() == ident or (u.email and u.email.lower() == ident):
                return u
        return None

    async def announce_registration(self, user: User):
        lines = [
            "🆕 <b>New registration!</b>",
            "",
            *_who(user),
            f"💰 <b>Starting balance:</b> {user.balance} coin",
            f"📅 <b>Date:</b> {_stamp()}",
        ]
        await notify(self.notifier, self.repo.telegram_config(), "\n".join(lines), "register")

    # --------- admin ---------
    @staticmethod
    def require_super_admin(user: User):
        if not user.is_super_admin:
            raise NotAllowed("Super admin only")

    def search(self, admin: User, query: str = "") -> List[User]:
        self.require_super_admin(admin)
        q = query.strip().lower()
        out = []
        for u in self.repo.users():
            if u.is_super_admin:
                continue
            if not q or q in u.username.lower() or q in u.full_name.lower() or q in u.email.lower():
                out.append(u)
        return out

    async def adjust(self, admin: User, user_id: str, action: str, amount: int = 0,
                     note: Optional[str] = None) -> User:
        self.require_super_admin(admin)
        # re-read right before mutating
        target = self.repo.user(user_id)
        if target is None:
            raise UserNotFound(user_id)
        new_balance, label = apply_balance_action(target.balance, action, amount)
        previous = target.balance
        updated = target.model_copy(update={"balance": new_balance})
        self.repo.put_user(updated)
        logger.info("Admin %s: %s -> %s (%s)", admin.username, target.username, new_balance, label)

        lines = [
            "🔧 <b>Admin action - balance change</b>",
            "",
            *_who(target),
            "",
            f"📋 <b>Action:</b> {label}",
            f"💰 <b>Previous balance:</b> {previous:,} coin",
            f"💵 <b>New balance:</b> {new_balance:,} coin",
        ]
        if note and note.strip():
            lines.append(f"📝 <b>Note:</b> {note.strip()}")
        lines += ["", f"📅 {_stamp()}"]
        await notify(self.notifier, self.repo.telegram_config(), "\n".join(lines), "admin")
        return updated

    async def report_user(self, admin: User, user_id: str):
        self.require_super_admin(admin)
        user = self.repo.user(user_id)
        if user is None:
            raise UserNotFound(user_id)
        lines = [
            "📊 <b>Player balance</b>",
            "",
            *_who(user),
            f"💰 <b>Current balance:</b> {user.balance:,} coin",
            f"📅 <b>Member since:</b> {dt.datetime.fromtimestamp(user.created_at).strftime('%Y-%m-%d %H:%M:%S')}",
            "",
            f"📅 Query: {_stamp()}",
        ]
        return await self.notifier.send(self.repo.telegram_config(), "\n".join(lines))

    async def report_all(self, admin: User):
        self.require_super_admin(admin)
        players = [u for u in self.repo.users() if not u.is_super_admin]
        lines = [
            "📊 <b>ALL PLAYER BALANCES</b>",
            "",
            f"👥 <b>Players:</b> {len(players)}",
            f"💰 <b>Total coins:</b> {sum(u.balance for u in players):,}",
            "",
            "━━━━━━━━━━━━━━━━━━",
        ]
        for u in players:
            lines.append(f"👤 <b>{u.full_name}</b> (@{u.username})")
            lines.append(f"   💰 {u.balance:,} coin | 📧 {u.email}")
        lines += ["", "━━━━━━━━━━━━━━━━━━", f"📅 Report: {_stamp()}"]
        return await self.notifier.send(self.repo.telegram_config(), "\n".join(lines))

    async def withdraw_report(self, admin: User, user_id: str):
        """Informational only; the balance is zeroed by a ``withdraw`` adjustment."""
        self.require_super_admin(admin)
        user = self.repo.user(user_id)
        if user is None:
            raise UserNotFound(user_id)
        lines = [
            "💸 <b>WITHDRAWAL REQUEST</b>",
            "",
            *_who(user),
            "",
            f"💰 <b>Amount:</b> {user.balance:,} coin",
            "💵 <b>Balance after withdrawal:</b> 0 coin",
            "",
            f"📅 {_stamp()}",
        ]
        return await self.notifier.send(self.repo.telegram_config(), "\n".join(lines))
