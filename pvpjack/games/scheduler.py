import asyncio
import logging
from typing import Awaitable, Callable, Dict, Tuple

logger = logging.getLogger(__name__)

Callback = Callable[[str], Awaitable[None]]


class TransitionScheduler:
    """Delayed automatic transitions (auto-deal, auto-advance), one per room and kind.

    A timer carries the room fingerprint it was scheduled for; the callback
    receives it and must compare against fresh state before acting.
    Rescheduling the same kind with a new fingerprint replaces the old timer.
    """

    def __init__(self):
        self._tasks: Dict[Tuple[str, str], Tuple[str, asyncio.Task]] = {}

    def schedule(self, room_id: str, kind: str, fingerprint: str, delay: float, callback: Callback):
        key = (room_id, kind)
        existing = self._tasks.get(key)
        if existing is not None:
            fp, task = existing
            if fp == fingerprint and not task.done():
                return task
            task.cancel()
        task = asyncio.get_running_loop().create_task(self._run(key, fingerprint, delay, callback))
        self._tasks[key] = (fingerprint, task)
        return task

    def cancel(self, room_id: str):
        for key in [k for k in self._tasks if k[0] == room_id]:
            _, task = self._tasks.pop(key)
            task.cancel()

    def pending(self, room_id: str) -> int:
        return sum(1 for (rid, _), (_, t) in self._tasks.items() if rid == room_id and not t.done())

    async def _run(self, key, fingerprint: str, delay: float, callback: Callback):
        try:
            await asyncio.sleep(delay)
            await callback(fingerprint)
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.error("Scheduled %s for room %s failed", key[1], key[0], exc_info=True)
        finally:
            current = self._tasks.get(key)
            if current is not None and current[1] is asyncio.current_task():
                del self._tasks[key]
