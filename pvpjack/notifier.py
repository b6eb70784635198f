"""
Best-effort Telegram notifications.

Nothing in the game waits on delivery: callers log a failed result and move
on. An empty bot token or chat id short-circuits without a network call.
"""
import asyncio
import dataclasses
import datetime as dt
import logging
from typing import Optional

import aiohttp

from .schemas import TelegramConfig

logger = logging.getLogger(__name__)

TELEGRAM_API = "https://api.telegram.org"


@dataclasses.dataclass
class NotifyResult:
    ok: bool
    error: Optional[str] = None
    bot_name: Optional[str] = None


class TelegramNotifier:
    def __init__(self, api_base: str = TELEGRAM_API, timeout: float = 10.0):
        self.api_base = api_base.rstrip("/")
        self.timeout = aiohttp.ClientTimeout(total=timeout)

    def _url(self, token: str, method: str) -> str:
        return f"{self.api_base}/bot{token}/{method}"

    async def send(self, config: TelegramConfig, message: str) -> NotifyResult:
        if not config.bot_token or not config.chat_id:
            return NotifyResult(ok=False, error="Bot token or chat id is not configured")
        payload = {"chat_id": config.chat_id, "text": message, "parse_mode": "HTML"}
        try:
            async with aiohttp.ClientSession(timeout=self.timeout) as session:
                async with session.post(self._url(config.bot_token, "sendMessage"), json=payload) as resp:
                    data = await self._json(resp)
                    if resp.status >= 400:
                        return NotifyResult(ok=False, error=data.get("description") or f"HTTP {resp.status}")
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            return NotifyResult(ok=False, error=f"Connection error: {e}")
        if data.get("ok"):
            return NotifyResult(ok=True)
        return NotifyResult(ok=False, error=data.get("description") or "Unknown error")

    async def test_connection(self, config: TelegramConfig) -> NotifyResult:
        """Check the token with getMe, then send a test message to the chat."""
        if not config.bot_token:
            return NotifyResult(ok=False, error="Bot token is not configured")
        try:
            async with aiohttp.ClientSession(timeout=self.timeout) as session:
                async with session.get(self._url(config.bot_token, "getMe")) as resp:
                    me = await self._json(resp)
                    if resp.status >= 400 or not me.get("ok"):
                        return NotifyResult(
                            ok=False,
                            error="Invalid bot token: " + (me.get("description") or f"HTTP {resp.status}"),
                        )
                result = me.get("result") or {}
                bot_name = result.get("first_name") or result.get("username") or "Bot"
                if not config.chat_id:
                    return NotifyResult(ok=False, bot_name=bot_name,
                                        error="Chat id is not configured; bot verified but cannot send")
                text = "\n".join([
                    "✅ Connection test succeeded!",
                    "",
                    f"🤖 Bot: {bot_name}",
                    f"💬 Chat ID: {config.chat_id}",
                    f"📅 {dt.datetime.now().strftime('%Y-%m-%d %H:%M:%S')}",
                ])
                payload = {"chat_id": config.chat_id, "text": text}
                async with session.post(self._url(config.bot_token, "sendMessage"), json=payload) as resp:
                    data = await self._json(resp)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            return NotifyResult(ok=False, error=f"Connection error: {e}")
        if data.get("ok"):
            return NotifyResult(ok=True, bot_name=bot_name)
        hint = data.get("description") or "Unknown error"
        if "chat not found" in hint:
            hint += " -- add the bot to the chat and check the chat id."
        if "bot was blocked" in hint:
            hint += " -- the bot was blocked; add it again."
        return NotifyResult(ok=False, bot_name=bot_name, error=hint)

    @staticmethod
    async def _json(resp) -> dict:
        try:
            data = await resp.json(content_type=None)
        except ValueError:
            return {}
        return data if isinstance(data, dict) else {}


async def notify(notifier: TelegramNotifier, config: TelegramConfig, message: str, context: str) -> NotifyResult:
    """Send and log a failure; never raises."""
    result = await notifier.send(config, message)
    if not result.ok:
        logger.warning("[%s] notification not delivered: %s", context, result.error)
    return result
