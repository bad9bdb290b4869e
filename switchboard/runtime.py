"""Runtime context shared by the loader, gate, dispatcher and handlers.

The runtime replaces a global client object: it is built once at
startup and passed explicitly to everything that needs the registries,
the cooldown tracker, configuration or the transport. Handlers receive
it as their first argument.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Optional

from .commands.base import HandlerRegistry, SlashRegistry
from .cooldowns import CooldownTracker
from .events import EventBus

if TYPE_CHECKING:
    from .config import Config
    from .dispatcher import Dispatcher
    from .gate import PrerequisiteGate
    from .transport import Gateway, Registrar, Transport


@dataclass
class Runtime:
    """Dependency container for the dispatch core.

    ``gate`` and ``dispatcher`` are built on first access so tests can
    swap any collaborator before they are wired together.
    """

    config: "Config"
    transport: "Transport"
    gateway: "Gateway"
    registrar: Optional["Registrar"] = None
    registry: HandlerRegistry = field(default_factory=HandlerRegistry)
    slash_registry: SlashRegistry = field(default_factory=SlashRegistry)
    cooldowns: CooldownTracker = field(default_factory=CooldownTracker)
    events: EventBus = field(default_factory=EventBus)
    ready: bool = False
    _gate: Optional["PrerequisiteGate"] = field(default=None, repr=False)
    _dispatcher: Optional["Dispatcher"] = field(default=None, repr=False)

    @property
    def gate(self) -> "PrerequisiteGate":
        if self._gate is None:
            from .gate import PrerequisiteGate
            self._gate = PrerequisiteGate(self.config, self.cooldowns, self.transport)
        return self._gate

    @property
    def dispatcher(self) -> "Dispatcher":
        if self._dispatcher is None:
            from .dispatcher import Dispatcher
            self._dispatcher = Dispatcher(self)
        return self._dispatcher

    def is_owner(self, user_id: str) -> bool:
        return self.config.is_owner(user_id)

    def shutdown(self) -> None:
        """Cancel pending cooldown expiries."""
        self.cooldowns.clear()
