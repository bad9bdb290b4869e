"""Helpers for fire-and-forget asyncio tasks."""

import asyncio

import structlog

logger = structlog.get_logger("switchboard.bot")


def log_task_exception(task: asyncio.Task):
    """Log exceptions from fire-and-forget tasks instead of silently swallowing them."""
    if task.cancelled():
        return
    exc = task.exception()
    if exc:
        logger.error("background_task_failed", error=str(exc), exc_type=type(exc).__name__)
