"""Dispatcher: turns incoming messages and interactions into command runs.

For every event the dispatcher filters out what is not a command,
resolves the command, runs the prerequisite gate and invokes the
handler. Failures are contained per event: a handler that raises is
logged with its traceback and answered with an error notice, and the
caller (the transport's event loop) never sees the exception.

Key classes:
    Dispatcher: Message and interaction entry points.
    ResolvedInvocation: Per-event resolution result.
    DispatchOutcome: What happened to an event (for logs and tests).
"""

import asyncio
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, List, Optional

import structlog

from . import notices
from .exceptions import HandlerExecutionError
from .transport import TEXT_CHANNEL, Interaction, Message

logger = structlog.get_logger("switchboard.dispatch")


class DispatchOutcome(str, Enum):
    IGNORED = "ignored"
    NOT_FOUND = "not_found"
    DENIED = "denied"
    EXECUTED = "executed"
    FAILED = "failed"


@dataclass
class ResolvedInvocation:
    """A command resolved for one event; lives for one dispatch cycle."""
    handler: Any
    raw_args: List[str] = field(default_factory=list)
    actor_id: str = ""
    is_elevated: bool = False


async def _call(fn, *args):
    result = fn(*args)
    if asyncio.iscoroutine(result):
        result = await result
    return result


class Dispatcher:
    """Routes events through resolution, the gate and the handler.

    Args:
        runtime: Runtime holding registries, gate, config and transport.
    """

    def __init__(self, runtime):
        self.runtime = runtime
        self.config = runtime.config
        self._prefix_re = re.compile(
            rf"^({re.escape(self.config.prefix)})\s*", re.IGNORECASE
        )

    # ------------------------------------------------------------------
    # Message-style commands
    # ------------------------------------------------------------------

    def parse(self, content: str) -> Optional[List[str]]:
        """Split ``<prefix>name args...`` into tokens; None without a prefix.

        The command token is lower-cased; arguments keep their case.
        """
        match = self._prefix_re.match(content)
        if not match:
            return None
        tokens = content[match.end():].split()
        if not tokens:
            return []
        tokens[0] = tokens[0].lower()
        return tokens

    async def on_message(self, message: Message) -> DispatchOutcome:
        """Handle one incoming message. Never raises."""
        if not message or not message.content:
            return DispatchOutcome.IGNORED
        if message.author_is_bot or message.channel_type != TEXT_CHANNEL:
            return DispatchOutcome.IGNORED

        tokens = self.parse(message.content)
        if not tokens:
            return DispatchOutcome.IGNORED
        command_name, args = tokens[0], tokens[1:]

        elevated = self.runtime.is_owner(message.author_id)
        try:
            command = self.runtime.registry.resolve(command_name)
            if command is None:
                await self._reply_not_found(message, command_name, elevated)
                return DispatchOutcome.NOT_FOUND

            invocation = ResolvedInvocation(
                handler=command,
                raw_args=args,
                actor_id=message.author_id,
                is_elevated=elevated,
            )
            verdict = await self.runtime.gate.authorize(
                command,
                message.author_id,
                elevated=elevated,
                scope=message.scope,
            )
            if not verdict.allowed:
                await self._send(message, notices.denial(self.config.colors, verdict))
                return DispatchOutcome.DENIED

            return await self._execute(
                invocation, message, (self.runtime, message, args)
            )
        except Exception as e:
            logger.error(
                "message_processing_error",
                command=command_name,
                error=str(e),
                error_type=type(e).__name__,
                exc_info=True,
            )
            await self._send(message, notices.system_error(self.config.colors))
            return DispatchOutcome.FAILED

    async def _reply_not_found(
        self, message: Message, command_name: str, elevated: bool
    ) -> None:
        suggestion = self.runtime.registry.suggest(
            command_name,
            self.config.suggestion_threshold,
            include_owner=elevated,
        )
        logger.info(
            "command_not_found",
            command=command_name,
            suggestion=suggestion,
            user="..." + str(message.author_id)[-4:],
        )
        await self._send(
            message,
            notices.not_found(
                self.config.colors, command_name, self.config.prefix, suggestion
            ),
        )

    # ------------------------------------------------------------------
    # Request/response commands
    # ------------------------------------------------------------------

    async def on_interaction(self, interaction: Interaction) -> DispatchOutcome:
        """Handle one slash-command interaction. Never raises.

        Lookup is by exact name only: no prefix, aliases or suggestions.
        """
        if not interaction or not interaction.is_command:
            return DispatchOutcome.IGNORED

        command = self.runtime.slash_registry.get(interaction.command_name)
        if command is None:
            logger.debug("slash_command_unknown", command=interaction.command_name)
            return DispatchOutcome.IGNORED

        elevated = self.runtime.is_owner(interaction.user_id)
        try:
            verdict = await self.runtime.gate.authorize(
                command,
                interaction.user_id,
                elevated=elevated,
                scope=interaction.scope,
                cooldown_key=interaction.command_name,
            )
            if not verdict.allowed:
                await self._send(
                    interaction,
                    notices.denial(self.config.colors, verdict),
                    ephemeral=True,
                )
                return DispatchOutcome.DENIED

            invocation = ResolvedInvocation(
                handler=command,
                actor_id=interaction.user_id,
                is_elevated=elevated,
            )
            return await self._execute(
                invocation, interaction, (self.runtime, interaction), ephemeral=True
            )
        except Exception as e:
            logger.error(
                "interaction_processing_error",
                command=interaction.command_name,
                error=str(e),
                error_type=type(e).__name__,
                exc_info=True,
            )
            await self._send(
                interaction, notices.system_error(self.config.colors), ephemeral=True
            )
            return DispatchOutcome.FAILED

    # ------------------------------------------------------------------
    # Shared
    # ------------------------------------------------------------------

    async def _execute(
        self, invocation: ResolvedInvocation, target, args: tuple,
        ephemeral: bool = False,
    ) -> DispatchOutcome:
        command = invocation.handler
        logger.info(
            "command_invoked",
            command=command.name,
            user="..." + str(invocation.actor_id)[-4:],
            args=len(invocation.raw_args),
            elevated=invocation.is_elevated,
        )
        try:
            await _call(command.run, *args)
        except Exception as e:
            failure = HandlerExecutionError(
                str(e) or type(e).__name__,
                command=command.name,
                error_type=type(e).__name__,
            )
            logger.error(
                "command_execution_failed",
                command=command.name,
                path=command.path,
                error=str(failure),
                category=failure.category.value,
                exc_info=True,
            )
            detail = None
            if invocation.is_elevated or self.config.verbose_errors:
                detail = failure.message
            await self._send(
                target,
                notices.execution_error(self.config.colors, detail),
                ephemeral=ephemeral,
            )
            return DispatchOutcome.FAILED
        return DispatchOutcome.EXECUTED

    async def _send(self, target, notice, ephemeral: bool = False) -> None:
        """Reply to ``target``; a failed reply is logged, not raised.

        An interaction that was already answered gets its answer edited.
        """
        edit = isinstance(target, Interaction) and target.replied
        try:
            await self.runtime.transport.send_reply(
                target, notice, ephemeral=ephemeral, edit=edit
            )
        except Exception as e:
            logger.warning(
                "reply_failed",
                title=notice.title,
                edit=edit,
                error=str(e),
                error_type=type(e).__name__,
            )
