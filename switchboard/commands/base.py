"""Descriptors and registries for the command handler framework.

Handler modules describe themselves with one of the descriptor models
below. The loader validates each descriptor and folds it into a
registry; after loading, the registries are only read.

Key classes:
    CommandSettings: Owner/beta/disabled flags and cooldown window.
    PrefixCommand: Message-style command descriptor (``!ping``).
    SlashCommand: Request/response command descriptor (``/ping``).
    EventHandler: Transport event listener descriptor.
    HandlerRegistry: Prefix commands by name, alias and canonical key.
    SlashRegistry: Slash commands by exact name.
"""

from __future__ import annotations

from typing import Any, Callable, Dict, FrozenSet, Iterator, List, Optional

import structlog
from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..exceptions import LoadValidationError
from ..matching import normalize, suggest

logger = structlog.get_logger("switchboard.loader")


def _as_token_set(value: Any) -> FrozenSet[str]:
    """Accept a single permission token or any iterable of tokens."""
    if value is None:
        return frozenset()
    if isinstance(value, str):
        return frozenset({value}) if value else frozenset()
    return frozenset(str(v) for v in value)


class CommandSettings(BaseModel):
    """Gate flags attached to a command.

    The legacy camelCase keys (``isOwner``, ``isBeta``,
    ``isDisabled``) are accepted as aliases.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    owner_only: bool = Field(default=False, alias="isOwner")
    beta_only: bool = Field(default=False, alias="isBeta")
    disabled: bool = Field(default=False, alias="isDisabled")
    cooldown: Optional[float] = Field(default=None, ge=0)


class _CommandBase(BaseModel):
    model_config = ConfigDict(
        frozen=True,
        populate_by_name=True,
        extra="ignore",
        arbitrary_types_allowed=True,
    )

    category: str = ""
    path: Optional[str] = None
    settings: CommandSettings = Field(default_factory=CommandSettings)
    user_perms: FrozenSet[str] = Field(default_factory=frozenset, alias="userPerms")
    bot_perms: FrozenSet[str] = Field(default_factory=frozenset, alias="botPerms")

    @field_validator("user_perms", "bot_perms", mode="before")
    @classmethod
    def _coerce_perms(cls, value: Any) -> FrozenSet[str]:
        return _as_token_set(value)

    @field_validator("settings", mode="before")
    @classmethod
    def _default_settings(cls, value: Any) -> Any:
        return CommandSettings() if value is None else value

    @property
    def requires_owner(self) -> bool:
        """Owner-only by flag, or by living in the ``owner`` category."""
        return self.settings.owner_only or self.category.lower() == "owner"


class PrefixCommand(_CommandBase):
    """Message-style command invoked as ``<prefix><name> [args...]``.

    ``run`` is called as ``run(runtime, message, args)`` and may be a
    plain function or a coroutine function.
    """

    name: str = Field(..., min_length=1)
    description: str = ""
    aliases: List[str] = Field(default_factory=list)
    run: Callable[..., Any]

    @field_validator("aliases", mode="before")
    @classmethod
    def _string_aliases(cls, value: Any) -> List[str]:
        if value is None:
            return []
        if isinstance(value, str):
            return [value] if value else []
        if not isinstance(value, (list, tuple)):
            raise ValueError("aliases must be a list of strings")
        return [a for a in value if isinstance(a, str) and a]

    @property
    def cooldown(self) -> Optional[float]:
        return self.settings.cooldown


class SlashCommandData(BaseModel):
    """The part of a slash command that is sent to the registration API."""

    model_config = ConfigDict(frozen=True, extra="allow")

    name: str = Field(..., min_length=1)
    description: str = Field(..., min_length=1)
    options: List[Dict[str, Any]] = Field(default_factory=list)


class SlashCommand(_CommandBase):
    """Request/response command, called as ``run(runtime, interaction)``."""

    data: SlashCommandData
    run: Callable[..., Any]
    # Older handlers put the cooldown next to ``data`` instead of in settings.
    cooldown_seconds: Optional[float] = Field(default=None, ge=0, alias="cooldown")

    @property
    def name(self) -> str:
        return self.data.name

    @property
    def cooldown(self) -> Optional[float]:
        if self.settings.cooldown is not None:
            return self.settings.cooldown
        return self.cooldown_seconds


class EventHandler(BaseModel):
    """Listener for a named transport event.

    ``once=True`` binds the listener to the next occurrence only.
    """

    model_config = ConfigDict(frozen=True, extra="ignore", arbitrary_types_allowed=True)

    name: str = Field(..., min_length=1)
    once: bool = False
    execute: Callable[..., Any]
    path: Optional[str] = None


class HandlerRegistry:
    """Prefix commands keyed by name, alias and canonical key.

    Two commands never share a canonical key: registering a name whose
    key is already taken replaces the older command (last writer wins,
    logged). Aliases that would collide with a name or with another
    command's alias are skipped, so every stored alias points at a
    registered command.
    """

    def __init__(self):
        self._commands: Dict[str, PrefixCommand] = {}
        self._aliases: Dict[str, str] = {}
        self._name_keys: Dict[str, str] = {}
        self._alias_keys: Dict[str, str] = {}

    def register(self, command: PrefixCommand) -> None:
        """Add ``command``, replacing any command with the same canonical name."""
        key = normalize(command.name)
        if not key:
            raise LoadValidationError(
                "command name has no matchable characters",
                path=command.path,
                command=command.name,
            )

        previous = self._name_keys.get(key)
        if previous is not None:
            logger.warning(
                "command_name_collision",
                command=command.name,
                replaced=previous,
                path=command.path,
            )
            self._remove(previous)

        shadowed = self._alias_keys.get(key)
        if shadowed is not None:
            logger.warning(
                "command_alias_shadowed",
                command=command.name,
                alias_owner=shadowed,
            )
            self._drop_alias_key(key)

        self._commands[command.name] = command
        self._name_keys[key] = command.name

        for alias in command.aliases:
            alias_key = normalize(alias)
            if not alias_key or self._name_keys.get(alias_key) == command.name:
                continue
            owner = self._name_keys.get(alias_key) or self._alias_keys.get(alias_key)
            if owner is not None and owner != command.name:
                logger.warning(
                    "command_alias_conflict",
                    alias=alias,
                    command=command.name,
                    taken_by=owner,
                )
                continue
            self._aliases[alias] = command.name
            self._alias_keys[alias_key] = command.name

    def _remove(self, name: str) -> None:
        command = self._commands.pop(name, None)
        if command is None:
            return
        self._name_keys.pop(normalize(name), None)
        for alias in [a for a, owner in self._aliases.items() if owner == name]:
            del self._aliases[alias]
        for alias_key in [k for k, owner in self._alias_keys.items() if owner == name]:
            del self._alias_keys[alias_key]

    def _drop_alias_key(self, alias_key: str) -> None:
        self._alias_keys.pop(alias_key, None)
        for alias in [a for a in self._aliases if normalize(a) == alias_key]:
            del self._aliases[alias]

    def get(self, name: str) -> Optional[PrefixCommand]:
        """Look up a command by its exact registered name."""
        return self._commands.get(name)

    def resolve(self, token: str) -> Optional[PrefixCommand]:
        """Find the command whose name, then alias, canonicalizes like ``token``."""
        key = normalize(token)
        if not key:
            return None
        name = self._name_keys.get(key) or self._alias_keys.get(key)
        if name is None:
            return None
        return self._commands.get(name)

    def suggest(
        self, token: str, threshold: float, *, include_owner: bool = False
    ) -> Optional[str]:
        """Closest visible command name for a "did you mean" hint."""
        candidates = sorted(
            name for name, cmd in self._commands.items()
            if include_owner or not cmd.requires_owner
        )
        return suggest(token, candidates, threshold)

    @property
    def aliases(self) -> Dict[str, str]:
        """Copy of the alias -> command name mapping."""
        return dict(self._aliases)

    @property
    def names(self) -> frozenset:
        """All registered command names."""
        return frozenset(self._commands.keys())

    def by_category(self) -> Dict[str, List[str]]:
        grouped: Dict[str, List[str]] = {}
        for name, command in sorted(self._commands.items()):
            grouped.setdefault(command.category or "uncategorized", []).append(name)
        return grouped

    def __contains__(self, name: object) -> bool:
        return name in self._commands

    def __iter__(self) -> Iterator[PrefixCommand]:
        return iter(list(self._commands.values()))

    def __len__(self) -> int:
        return len(self._commands)


class SlashRegistry:
    """Slash commands keyed by exact name. No aliases, no normalization."""

    def __init__(self):
        self._commands: Dict[str, SlashCommand] = {}

    def register(self, command: SlashCommand) -> None:
        if command.name in self._commands:
            logger.warning(
                "slash_command_collision",
                command=command.name,
                path=command.path,
                replaced_path=self._commands[command.name].path,
            )
        self._commands[command.name] = command

    def get(self, name: str) -> Optional[SlashCommand]:
        return self._commands.get(name)

    def payloads(self) -> List[Dict[str, Any]]:
        """Registration bodies for every command, sorted by name."""
        return [
            self._commands[name].data.model_dump()
            for name in sorted(self._commands)
        ]

    @property
    def names(self) -> frozenset:
        return frozenset(self._commands.keys())

    def __contains__(self, name: object) -> bool:
        return name in self._commands

    def __len__(self) -> int:
        return len(self._commands)
