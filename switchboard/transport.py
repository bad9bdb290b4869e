"""Transport boundary: the narrow interface switchboard needs from a chat client.

The chat session itself (connecting, receiving raw events, rendering
replies) lives outside this package. The dispatcher and gate only talk
to the ``Transport``, ``Gateway`` and ``Registrar`` protocols below.

Also provides two concrete implementations:
    RestRegistrar: Bulk slash-command registration over HTTP (aiohttp).
    ConsoleTransport: Local stdin/stdout transport used by ``main``.
"""

import asyncio
import sys
from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, List, Optional, Protocol

import aiohttp

from .exceptions import RegistrationError
from .notices import Notice

TEXT_CHANNEL = 0


@dataclass
class Message:
    """An incoming chat message.

    Attributes:
        content: Raw message text.
        author_id: Sender id.
        author_is_bot: True for messages sent by bots (including us).
        channel_id: Where the message was posted; replies go here.
        channel_type: Transport channel kind; only TEXT_CHANNEL dispatches.
        scope: Shared-space id capability grants are evaluated in, or
            None in a direct/private conversation.
    """
    content: str
    author_id: str
    author_is_bot: bool = False
    channel_id: str = ""
    channel_type: int = TEXT_CHANNEL
    scope: Optional[str] = None


@dataclass
class Interaction:
    """An incoming request/response interaction (slash command).

    ``replied`` is set by the transport once the interaction has been
    answered; later replies edit that answer instead of sending a new one.
    """
    command_name: str
    user_id: str
    channel_id: str = ""
    scope: Optional[str] = None
    options: Dict[str, Any] = field(default_factory=dict)
    is_command: bool = True
    replied: bool = False


class Transport(Protocol):
    """Operations the dispatch core needs from the chat client."""

    async def send_reply(
        self, target: Any, notice: Notice, *,
        ephemeral: bool = False, edit: bool = False,
    ) -> None: ...

    async def scoped_capabilities_of(
        self, actor_id: str, scope: str
    ) -> FrozenSet[str]: ...

    async def bot_capabilities(self, scope: str) -> FrozenSet[str]: ...


class Gateway(Protocol):
    def current_latency_ms(self) -> float: ...


class Registrar(Protocol):
    async def bulk_register(self, payloads: List[Dict[str, Any]]) -> int: ...


class RestRegistrar:
    """Registers slash commands with one bulk PUT request.

    The token and application id are read from config only when a
    registration is attempted, so local dispatch never needs them.
    """

    def __init__(self, config, timeout: float = 15.0):
        self._config = config
        self._timeout = timeout

    async def bulk_register(self, payloads: List[Dict[str, Any]]) -> int:
        token = self._config.bot_token
        app_id = self._config.application_id
        url = f"{self._config.api_base_url}/applications/{app_id}/commands"
        headers = {"Authorization": f"Bot {token}"}
        try:
            async with aiohttp.ClientSession() as session:
                async with session.put(
                    url,
                    json=payloads,
                    headers=headers,
                    timeout=aiohttp.ClientTimeout(total=self._timeout),
                ) as resp:
                    if resp.status not in (200, 201):
                        body = await resp.text()
                        raise RegistrationError(
                            "bulk registration rejected",
                            status=resp.status,
                            body=body[:200],
                        )
                    registered = await resp.json()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise RegistrationError(
                f"bulk registration failed: {e}", error_type=type(e).__name__
            ) from e
        if isinstance(registered, list):
            return len(registered)
        return len(payloads)


class ConsoleTransport:
    """Reads console lines as text-channel messages and prints notices.

    Every line is attributed to ``user_id`` in a private context (no
    scope), so capability checks are skipped for console input.
    """

    def __init__(self, user_id: str = "console"):
        self.user_id = user_id
        self._reader: Optional[asyncio.StreamReader] = None

    async def send_reply(
        self, target: Any, notice: Notice, *,
        ephemeral: bool = False, edit: bool = False,
    ) -> None:
        print(notice.render(), flush=True)
        if isinstance(target, Interaction):
            target.replied = True

    async def scoped_capabilities_of(
        self, actor_id: str, scope: str
    ) -> FrozenSet[str]:
        return frozenset()

    async def bot_capabilities(self, scope: str) -> FrozenSet[str]:
        return frozenset()

    def current_latency_ms(self) -> float:
        return 0.0

    async def read_message(self) -> Optional[Message]:
        """Next console line as a Message, or None at end of input."""
        if self._reader is None:
            loop = asyncio.get_running_loop()
            self._reader = asyncio.StreamReader()
            await loop.connect_read_pipe(
                lambda: asyncio.StreamReaderProtocol(self._reader), sys.stdin
            )
        line = await self._reader.readline()
        if not line:
            return None
        return Message(
            content=line.decode("utf-8", errors="replace").rstrip("\r\n"),
            author_id=self.user_id,
            channel_id="console",
        )
