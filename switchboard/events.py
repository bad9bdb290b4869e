"""Named event fan-out for transport events.

Listeners are bound either for every occurrence (``on``) or for the
next occurrence only (``once``). A once-listener is unbound before it
runs, so it fires at most one time even if the event is emitted again
while it is still awaiting.
"""

import asyncio
from typing import Any, Callable, Dict, List, Tuple

import structlog

logger = structlog.get_logger("switchboard.events")

Listener = Callable[..., Any]


class EventBus:
    """Routes emitted events to their bound listeners."""

    def __init__(self):
        self._listeners: Dict[str, List[Tuple[Listener, bool]]] = {}

    def on(self, name: str, listener: Listener) -> None:
        """Call ``listener`` on every ``name`` event until shutdown."""
        self._listeners.setdefault(name, []).append((listener, False))

    def once(self, name: str, listener: Listener) -> None:
        """Call ``listener`` on the next ``name`` event only."""
        self._listeners.setdefault(name, []).append((listener, True))

    def listener_count(self, name: str) -> int:
        return len(self._listeners.get(name, []))

    async def emit(self, name: str, *args: Any) -> int:
        """Run every listener bound to ``name``; return how many ran.

        Listener failures are logged and do not stop the others.
        """
        bound = self._listeners.get(name)
        if not bound:
            return 0
        current = list(bound)
        remaining = [entry for entry in bound if not entry[1]]
        if remaining:
            self._listeners[name] = remaining
        else:
            del self._listeners[name]

        for listener, once in current:
            try:
                result = listener(*args)
                if asyncio.iscoroutine(result):
                    await result
            except Exception as e:
                logger.error(
                    "event_listener_failed",
                    event=name,
                    once=once,
                    error=str(e),
                    error_type=type(e).__name__,
                    exc_info=True,
                )
        return len(current)
