"""Per-command, per-user cooldown tracking.

An entry exists only while its window is open. Opening a window also
schedules a one-shot expiry callback on the running event loop; the
callback removes the entry (and the command's sub-map once it is empty)
unless a later window has already replaced it.

All mutation happens synchronously between awaits on the single event
loop, so interleaved dispatches never observe a half-updated map.
"""

import asyncio
import time
from typing import Callable, Dict, List, Optional, Tuple

import structlog

logger = structlog.get_logger("switchboard.gate")


class CooldownTracker:
    """Expiring ``(command, user) -> expiry`` store.

    Args:
        clock: Monotonic time source in seconds. Tests inject a fake.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._windows: Dict[str, Dict[str, float]] = {}
        self._timers: Dict[Tuple[str, str], asyncio.TimerHandle] = {}

    def check(
        self, command: str, user_id: str, window_seconds: Optional[float]
    ) -> bool:
        """Return True and open a window if ``user_id`` may run ``command``.

        A denied attempt leaves the open window untouched. A zero or
        missing window always allows and stores nothing.
        """
        if not window_seconds or window_seconds <= 0:
            return True

        now = self._clock()
        users = self._windows.get(command)
        if users is not None:
            expires_at = users.get(user_id)
            if expires_at is not None and now < expires_at:
                return False

        expires_at = now + window_seconds
        self._windows.setdefault(command, {})[user_id] = expires_at
        self._schedule_expiry(command, user_id, expires_at, window_seconds)
        return True

    def remaining(self, command: str, user_id: str) -> float:
        """Seconds left in the open window, to one decimal; 0.0 if none."""
        expires_at = self._windows.get(command, {}).get(user_id)
        if expires_at is None:
            return 0.0
        return round(max(0.0, expires_at - self._clock()), 1)

    def _schedule_expiry(
        self, command: str, user_id: str, expires_at: float, delay: float
    ) -> None:
        key = (command, user_id)
        stale = self._timers.pop(key, None)
        if stale is not None:
            stale.cancel()
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # No loop (sync callers): the next check() replaces the stale entry.
            return
        self._timers[key] = loop.call_later(
            delay, self._expire, command, user_id, expires_at
        )

    def _expire(self, command: str, user_id: str, expires_at: float) -> None:
        """Remove the entry if it is still the one this timer was set for."""
        users = self._windows.get(command)
        if users is None or users.get(user_id) != expires_at:
            return
        self._timers.pop((command, user_id), None)
        del users[user_id]
        if not users:
            del self._windows[command]
        logger.debug("cooldown_expired", command=command, user="..." + user_id[-4:])

    def active_count(self) -> int:
        """Number of stored (command, user) entries."""
        return sum(len(users) for users in self._windows.values())

    def commands(self) -> List[str]:
        """Commands that currently hold at least one entry."""
        return sorted(self._windows)

    def clear(self) -> None:
        """Drop every entry and cancel pending expiry callbacks (for shutdown)."""
        for timer in self._timers.values():
            timer.cancel()
        self._timers.clear()
        self._windows.clear()
