"""Main entry point for switchboard.

Initializes logging in two phases (defaults then config-driven), builds
the Runtime around a console transport, loads every handler, emits
``ready`` and then feeds console lines into ``message_create`` until
SIGTERM/SIGINT or end of input.

Key functions:
    main: Async entry point.
    run: Synchronous wrapper for the ``switchboard`` console script.
"""

import asyncio
import signal
from typing import Set

import structlog

from . import __version__
from .logging_config import setup_logging
from .task_utils import log_task_exception


async def pump_console(runtime, transport, in_flight: Set[asyncio.Task]) -> None:
    """Emit one ``message_create`` per console line until input ends.

    Dispatch tasks are tracked in ``in_flight`` until they finish; at end
    of input the pump waits for the ones still running.
    """
    while True:
        message = await transport.read_message()
        if message is None:
            break
        t = asyncio.create_task(runtime.events.emit("message_create", message))
        in_flight.add(t)
        t.add_done_callback(in_flight.discard)
        t.add_done_callback(log_task_exception)
    await drain(in_flight)


async def drain(in_flight: Set[asyncio.Task]) -> None:
    """Wait for pending dispatch tasks; their failures are already logged."""
    pending = list(in_flight)
    if pending:
        await asyncio.gather(*pending, return_exceptions=True)


async def main():
    """Main async entry point."""
    # Phase 1: defaults, cache_logger_on_first_use=False
    setup_logging()
    logger = structlog.get_logger("switchboard")

    logger.info("switchboard_starting", version=__version__)

    # Import here to ensure logging is configured first
    from .config import get_config
    from .loader import RegistryLoader
    from .runtime import Runtime
    from .transport import ConsoleTransport, RestRegistrar

    config = get_config()
    config.validate()

    # Phase 2: reconfigure with real config, cache_logger_on_first_use=True
    setup_logging(config)

    transport = ConsoleTransport(user_id=config.console_user_id)
    runtime = Runtime(
        config=config,
        transport=transport,
        gateway=transport,
        registrar=RestRegistrar(config),
    )
    await RegistryLoader(runtime).load_all()
    await runtime.events.emit("ready", "console")

    loop = asyncio.get_running_loop()
    shutdown_event = asyncio.Event()

    def handle_shutdown(sig):
        logger.info("shutdown_signal_received", signal=sig.name)
        shutdown_event.set()

    for sig in (signal.SIGTERM, signal.SIGINT):
        try:
            loop.add_signal_handler(sig, handle_shutdown, sig)
        except NotImplementedError:
            # Windows: add_signal_handler not supported.
            if sig == signal.SIGINT:
                signal.signal(
                    signal.SIGINT,
                    lambda s, f: handle_shutdown(signal.SIGINT),
                )

    in_flight: Set[asyncio.Task] = set()
    pump_task = asyncio.create_task(pump_console(runtime, transport, in_flight))
    shutdown_task = asyncio.create_task(shutdown_event.wait())
    try:
        await asyncio.wait(
            {pump_task, shutdown_task}, return_when=asyncio.FIRST_COMPLETED
        )
    finally:
        for task in (pump_task, shutdown_task):
            task.cancel()
        await drain(in_flight)
        runtime.shutdown()
        logger.info("switchboard_stopped")


def run():
    """Synchronous entry point for the ``switchboard`` console script."""
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    run()
