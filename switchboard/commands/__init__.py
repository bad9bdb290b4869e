"""Command handler framework for switchboard.

Provides the descriptor models handler modules export and the
registries the loader fills and the dispatcher reads.
"""

from .base import (
    CommandSettings,
    EventHandler,
    HandlerRegistry,
    PrefixCommand,
    SlashCommand,
    SlashCommandData,
    SlashRegistry,
)

__all__ = [
    "CommandSettings",
    "EventHandler",
    "HandlerRegistry",
    "PrefixCommand",
    "SlashCommand",
    "SlashCommandData",
    "SlashRegistry",
]
