"""Runs once when the transport session is up."""

import structlog

from switchboard.commands import EventHandler

logger = structlog.get_logger("switchboard.events")


def execute(runtime, identity="switchboard"):
    runtime.ready = True
    logger.info(
        "bot_ready",
        identity=identity,
        prefix_commands=len(runtime.registry),
        slash_commands=len(runtime.slash_registry),
    )


event = EventHandler(name="ready", once=True, execute=execute)
