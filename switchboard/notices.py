"""Structured reply notices.

A ``Notice`` is the transport-neutral reply the dispatcher hands to
``Transport.send_reply``; transports render it however they like
(embeds, plain text). The factories below build the standard notices
from the configured color theme.
"""

from typing import Dict, List, Optional, Tuple

from pydantic import BaseModel, Field

from .gate import DenialReason, Verdict


class Notice(BaseModel):
    """A titled reply with optional fields and footer."""

    title: str
    description: str = ""
    color: str = ""
    fields: List[Tuple[str, str]] = Field(default_factory=list)
    footer: str = ""

    def render(self) -> str:
        """Plain-text rendering for console-style transports."""
        lines = [self.title]
        if self.description:
            lines.append(self.description)
        for name, value in self.fields:
            lines.append(f"{name}: {value}")
        if self.footer:
            lines.append(f"-- {self.footer}")
        return "\n".join(lines)


_UNITS = (("day", 86400), ("hour", 3600), ("minute", 60), ("second", 1))


def humanize_seconds(seconds: float) -> str:
    """Long-form duration in the largest whole unit ("4 seconds", "2 minutes")."""
    seconds = max(0.0, seconds)
    for unit, size in _UNITS:
        if seconds >= size or unit == "second":
            amount = round(seconds / size)
            if unit == "second" and amount == 0:
                return f"{int(seconds * 1000)} ms"
            return f"{amount} {unit}" + ("" if amount == 1 else "s")


def not_found(colors: Dict[str, str], command: str, prefix: str,
              suggestion: Optional[str] = None) -> Notice:
    description = (
        f"No command named `{command}` was found. Please check the command "
        f"name or type `{prefix}help` for help."
    )
    if suggestion:
        description += f"\nDid you mean `{prefix}{suggestion}`?"
    return Notice(title="🚫 Command Not Found", description=description,
                  color=colors["red"])


def cooldown(colors: Dict[str, str], remaining: float) -> Notice:
    return Notice(
        title="⏳ Command Cooldown Active",
        description=(
            f"Please wait {humanize_seconds(remaining)} before using this "
            "command again."
        ),
        color=colors["red"],
        footer="Command cooldown is applied to prevent spam on the server.",
    )


def execution_error(colors: Dict[str, str], detail: Optional[str] = None) -> Notice:
    notice = Notice(
        title="❌ Command Execution Error",
        description="An unexpected error occurred while processing the command.",
        color=colors["red"],
        footer="Please report this error to the administrator.",
    )
    if detail:
        notice.fields.append(("Error Detail", detail))
    return notice


def system_error(colors: Dict[str, str]) -> Notice:
    return Notice(
        title="❌ System Error",
        description=(
            "A system error has occurred. Please try again later. If the "
            "problem persists, contact the administrator."
        ),
        color=colors["red"],
    )


def pong(colors: Dict[str, str], latency_ms: float) -> Notice:
    return Notice(
        title="🏓 Pong!",
        description=f"API Latency: **{round(latency_ms)}ms**",
        color=colors["blue"],
    )


_DENIALS = {
    DenialReason.UNAUTHORIZED: (
        "🚫 Unauthorized Access",
        "This command is only available to bot owners.",
    ),
    DenialReason.TEMPORARILY_DISABLED: (
        "🔒 Command Temporarily Disabled",
        "This command is currently unavailable for maintenance or update. "
        "Please try again later.",
    ),
    DenialReason.BETA_ONLY: (
        "🔒 Beta Feature",
        "This command is only available to beta users!",
    ),
    DenialReason.INSUFFICIENT_USER_PERMISSION: (
        "🔐 Insufficient User Permission",
        "You need `{perms}` authorization to use this command.",
    ),
    DenialReason.INSUFFICIENT_BOT_PERMISSION: (
        "⚠️ Bot Permission Error",
        "I need `{perms}` authorization to run this command.",
    ),
}


def denial(colors: Dict[str, str], verdict: Verdict) -> Notice:
    """Notice explaining a gate denial to the user."""
    if verdict.reason is DenialReason.RATE_LIMITED:
        return cooldown(colors, verdict.remaining)
    title, template = _DENIALS[verdict.reason]
    return Notice(
        title=title,
        description=template.format(perms=", ".join(sorted(verdict.missing))),
        color=colors["red"],
        footer="If the problem persists please contact the administrator",
    )
