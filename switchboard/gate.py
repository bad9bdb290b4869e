"""Prerequisite gate: the ordered checks a command must pass before it runs.

Checks run in a fixed order and stop at the first denial:

    1. owner-only        (skipped for owners)
    2. disabled          (skipped for owners)
    3. beta-only         (skipped for owners and beta users)
    4. user capabilities (only inside a scope)
    5. bot capabilities  (only inside a scope)
    6. cooldown

A denial is an ordinary result, not an exception. The gate never
retries and never replies; the dispatcher turns the verdict into a
notice.
"""

from dataclasses import dataclass
from enum import Enum
from typing import FrozenSet, Optional

import structlog

logger = structlog.get_logger("switchboard.gate")


class DenialReason(str, Enum):
    """Why the gate refused to run a command."""
    UNAUTHORIZED = "unauthorized"
    TEMPORARILY_DISABLED = "temporarily_disabled"
    BETA_ONLY = "beta_only"
    INSUFFICIENT_USER_PERMISSION = "insufficient_user_permission"
    INSUFFICIENT_BOT_PERMISSION = "insufficient_bot_permission"
    RATE_LIMITED = "rate_limited"


@dataclass(frozen=True)
class Verdict:
    """Outcome of ``PrerequisiteGate.authorize``.

    Attributes:
        allowed: True when every check passed.
        reason: First failing check, None when allowed.
        remaining: Seconds left on the cooldown (RATE_LIMITED only).
        missing: Capability tokens the user or bot lacks.
    """
    allowed: bool
    reason: Optional[DenialReason] = None
    remaining: float = 0.0
    missing: FrozenSet[str] = frozenset()

    @classmethod
    def allow(cls) -> "Verdict":
        return cls(allowed=True)

    @classmethod
    def deny(
        cls,
        reason: DenialReason,
        *,
        remaining: float = 0.0,
        missing: FrozenSet[str] = frozenset(),
    ) -> "Verdict":
        return cls(allowed=False, reason=reason, remaining=remaining, missing=missing)


class PrerequisiteGate:
    """Runs the ordered authorization and rate-limit checks.

    Args:
        config: Config providing the beta allow-list.
        cooldowns: CooldownTracker shared by every dispatch.
        transport: Transport used to look up scoped capabilities.
    """

    def __init__(self, config, cooldowns, transport):
        self._config = config
        self._cooldowns = cooldowns
        self._transport = transport

    async def authorize(
        self,
        command,
        actor_id: str,
        *,
        elevated: bool,
        scope: Optional[str] = None,
        cooldown_key: Optional[str] = None,
    ) -> Verdict:
        """Check whether ``actor_id`` may run ``command`` right now.

        Args:
            command: PrefixCommand or SlashCommand descriptor.
            actor_id: Id of the user invoking the command.
            elevated: True for owners; skips checks 1-3.
            scope: Shared-space id, None in private conversations.
            cooldown_key: Name the cooldown is tracked under
                (defaults to the command name).
        """
        verdict = await self._run_checks(
            command, actor_id, elevated, scope, cooldown_key or command.name
        )
        if not verdict.allowed:
            logger.info(
                "gate_denied",
                command=command.name,
                user="..." + str(actor_id)[-4:],
                reason=verdict.reason.value,
                remaining=verdict.remaining or None,
                missing=sorted(verdict.missing) or None,
            )
        return verdict

    async def _run_checks(
        self, command, actor_id: str, elevated: bool,
        scope: Optional[str], cooldown_key: str,
    ) -> Verdict:
        settings = command.settings

        if command.requires_owner and not elevated:
            return Verdict.deny(DenialReason.UNAUTHORIZED)

        if settings.disabled and not elevated:
            return Verdict.deny(DenialReason.TEMPORARILY_DISABLED)

        if settings.beta_only and not elevated and not self._config.is_beta_user(actor_id):
            return Verdict.deny(DenialReason.BETA_ONLY)

        if scope is not None and command.user_perms:
            granted = await self._transport.scoped_capabilities_of(actor_id, scope)
            missing = command.user_perms - frozenset(granted)
            if missing:
                return Verdict.deny(
                    DenialReason.INSUFFICIENT_USER_PERMISSION, missing=missing
                )

        if scope is not None and command.bot_perms:
            granted = await self._transport.bot_capabilities(scope)
            missing = command.bot_perms - frozenset(granted)
            if missing:
                return Verdict.deny(
                    DenialReason.INSUFFICIENT_BOT_PERMISSION, missing=missing
                )

        if not self._cooldowns.check(cooldown_key, str(actor_id), command.cooldown):
            return Verdict.deny(
                DenialReason.RATE_LIMITED,
                remaining=self._cooldowns.remaining(cooldown_key, str(actor_id)),
            )

        return Verdict.allow()
