"""End-to-end tests for message and interaction dispatch."""

import asyncio

import pytest

from switchboard import notices
from switchboard.commands import PrefixCommand, SlashCommand
from switchboard.config import Config
from switchboard.cooldowns import CooldownTracker
from switchboard.dispatcher import DispatchOutcome
from switchboard.runtime import Runtime
from switchboard.transport import Interaction, Message

OWNER = "100"
USER = "300"
GUILD_TEXT = 0
DM = 1


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


class FakeTransport:
    """Records replies; capabilities are fixed per instance."""

    def __init__(self, user_caps=(), bot_caps=(), fail_replies=False):
        self.replies = []
        self.edits = []
        self.user_caps = frozenset(user_caps)
        self.bot_caps = frozenset(bot_caps)
        self.fail_replies = fail_replies

    async def send_reply(self, target, notice, *, ephemeral=False, edit=False):
        if self.fail_replies:
            raise ConnectionError("channel gone")
        self.replies.append((target, notice, ephemeral))
        self.edits.append(edit)
        if isinstance(target, Interaction):
            target.replied = True

    async def scoped_capabilities_of(self, actor_id, scope):
        return self.user_caps

    async def bot_capabilities(self, scope):
        return self.bot_caps

    def current_latency_ms(self):
        return 42.0


def _make_runtime(tmp_path, settings=None, **transport_kwargs):
    base = {"prefix": "!", "owners": [OWNER]}
    base.update(settings or {})
    clock = FakeClock()
    transport = FakeTransport(**transport_kwargs)
    runtime = Runtime(
        config=Config(config_dir=tmp_path, settings=base),
        transport=transport,
        gateway=transport,
        cooldowns=CooldownTracker(clock=clock),
    )
    return runtime, transport, clock


def _recording_command(name="ping", calls=None, **kwargs):
    calls = calls if calls is not None else []

    async def run(runtime, message, args):
        calls.append(list(args))

    return PrefixCommand(name=name, run=run, **kwargs), calls


def _msg(content, author=USER, **kwargs):
    return Message(content=content, author_id=author, **kwargs)


class TestMessageFiltering:
    """Events that are not commands are ignored without a reply."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("message", [
        Message(content="", author_id=USER),
        Message(content="!ping", author_id=USER, author_is_bot=True),
        Message(content="!ping", author_id=USER, channel_type=DM),
        Message(content="ping", author_id=USER),
        Message(content="!", author_id=USER),
        Message(content="!   ", author_id=USER),
    ])
    async def test_ignored(self, tmp_path, message):
        runtime, transport, _ = _make_runtime(tmp_path)
        command, calls = _recording_command()
        runtime.registry.register(command)

        outcome = await runtime.dispatcher.on_message(message)
        assert outcome is DispatchOutcome.IGNORED
        assert calls == []
        assert transport.replies == []


class TestMessageDispatch:
    """Tests for resolution, gating and execution of prefix commands."""

    @pytest.mark.asyncio
    async def test_runs_with_empty_args(self, tmp_path):
        runtime, transport, _ = _make_runtime(tmp_path)
        command, calls = _recording_command()
        runtime.registry.register(command)

        outcome = await runtime.dispatcher.on_message(_msg("!ping"))
        assert outcome is DispatchOutcome.EXECUTED
        assert calls == [[]]
        assert transport.replies == []

    @pytest.mark.asyncio
    async def test_args_split_on_whitespace(self, tmp_path):
        runtime, _, _ = _make_runtime(tmp_path)
        command, calls = _recording_command()
        runtime.registry.register(command)

        await runtime.dispatcher.on_message(_msg("! PING  Foo   bar"))
        assert calls == [["Foo", "bar"]]

    @pytest.mark.asyncio
    async def test_prefix_case_insensitive(self, tmp_path):
        runtime, _, _ = _make_runtime(tmp_path, settings={"prefix": "sb!"})
        command, calls = _recording_command()
        runtime.registry.register(command)

        outcome = await runtime.dispatcher.on_message(_msg("SB!ping"))
        assert outcome is DispatchOutcome.EXECUTED
        assert calls == [[]]

    @pytest.mark.asyncio
    async def test_alias_and_digit_spelling(self, tmp_path):
        runtime, _, _ = _make_runtime(tmp_path)
        command, calls = _recording_command(name="ban", aliases=["kickban"])
        runtime.registry.register(command)

        assert await runtime.dispatcher.on_message(_msg("!b1n")) is DispatchOutcome.EXECUTED
        assert await runtime.dispatcher.on_message(_msg("!KickBan x")) is DispatchOutcome.EXECUTED
        assert calls == [[], ["x"]]

    @pytest.mark.asyncio
    async def test_sync_handler(self, tmp_path):
        runtime, _, _ = _make_runtime(tmp_path)
        calls = []
        runtime.registry.register(
            PrefixCommand(name="echo", run=lambda rt, msg, args: calls.append(args))
        )
        assert await runtime.dispatcher.on_message(_msg("!echo hi")) is DispatchOutcome.EXECUTED
        assert calls == [["hi"]]

    @pytest.mark.asyncio
    async def test_not_found_with_suggestion(self, tmp_path):
        runtime, transport, _ = _make_runtime(tmp_path)
        command, calls = _recording_command()
        runtime.registry.register(command)

        outcome = await runtime.dispatcher.on_message(_msg("!png"))
        assert outcome is DispatchOutcome.NOT_FOUND
        assert calls == []
        assert len(transport.replies) == 1
        notice = transport.replies[0][1]
        assert notice.title == "🚫 Command Not Found"
        assert "Did you mean `!ping`?" in notice.description

    @pytest.mark.asyncio
    async def test_not_found_without_suggestion(self, tmp_path):
        runtime, transport, _ = _make_runtime(tmp_path)
        runtime.registry.register(_recording_command()[0])

        await runtime.dispatcher.on_message(_msg("!weather"))
        notice = transport.replies[0][1]
        assert "Did you mean" not in notice.description

    @pytest.mark.asyncio
    async def test_owner_only_denied(self, tmp_path):
        runtime, transport, _ = _make_runtime(tmp_path)
        command, calls = _recording_command(name="shutdown", settings={"isOwner": True})
        runtime.registry.register(command)

        outcome = await runtime.dispatcher.on_message(_msg("!shutdown"))
        assert outcome is DispatchOutcome.DENIED
        assert calls == []
        assert transport.replies[0][1].title == "🚫 Unauthorized Access"

        assert await runtime.dispatcher.on_message(_msg("!shutdown", author=OWNER)) \
            is DispatchOutcome.EXECUTED

    @pytest.mark.asyncio
    async def test_missing_permission_notice_lists_tokens(self, tmp_path):
        runtime, transport, _ = _make_runtime(tmp_path)
        command, calls = _recording_command(name="ban", userPerms=["BanMembers"])
        runtime.registry.register(command)

        outcome = await runtime.dispatcher.on_message(_msg("!ban", scope="guild-1"))
        assert outcome is DispatchOutcome.DENIED
        notice = transport.replies[0][1]
        assert notice.title == "🔐 Insufficient User Permission"
        assert "BanMembers" in notice.description

    @pytest.mark.asyncio
    async def test_cooldown_denial(self, tmp_path):
        runtime, transport, clock = _make_runtime(tmp_path)
        command, calls = _recording_command(settings={"cooldown": 5})
        runtime.registry.register(command)

        assert await runtime.dispatcher.on_message(_msg("!ping")) is DispatchOutcome.EXECUTED
        clock.now = 1.0
        assert await runtime.dispatcher.on_message(_msg("!ping")) is DispatchOutcome.DENIED
        assert calls == [[]]
        notice = transport.replies[0][1]
        assert notice.title == "⏳ Command Cooldown Active"
        assert "4 seconds" in notice.description
        runtime.shutdown()

    @pytest.mark.asyncio
    async def test_concurrent_dispatches_share_cooldown(self, tmp_path):
        runtime, _, _ = _make_runtime(tmp_path)
        command, calls = _recording_command(settings={"cooldown": 5})
        runtime.registry.register(command)

        outcomes = await asyncio.gather(
            runtime.dispatcher.on_message(_msg("!ping")),
            runtime.dispatcher.on_message(_msg("!ping")),
        )
        assert sorted(o.value for o in outcomes) == ["denied", "executed"]
        assert len(calls) == 1
        runtime.shutdown()

    @pytest.mark.asyncio
    async def test_reply_failure_contained(self, tmp_path):
        runtime, _, _ = _make_runtime(tmp_path, fail_replies=True)
        runtime.registry.register(_recording_command()[0])
        assert await runtime.dispatcher.on_message(_msg("!pong")) is DispatchOutcome.NOT_FOUND


class TestHandlerFailure:
    """A raising handler yields an error notice; detail is redacted by default."""

    def _failing(self):
        async def run(runtime, message, args):
            raise RuntimeError("boom")
        return PrefixCommand(name="explode", run=run)

    @pytest.mark.asyncio
    async def test_detail_hidden_from_regular_user(self, tmp_path):
        runtime, transport, _ = _make_runtime(tmp_path)
        runtime.registry.register(self._failing())

        outcome = await runtime.dispatcher.on_message(_msg("!explode"))
        assert outcome is DispatchOutcome.FAILED
        notice = transport.replies[0][1]
        assert notice.title == "❌ Command Execution Error"
        assert notice.fields == []
        assert "boom" not in notice.render()

    @pytest.mark.asyncio
    async def test_detail_shown_to_owner(self, tmp_path):
        runtime, transport, _ = _make_runtime(tmp_path)
        runtime.registry.register(self._failing())

        await runtime.dispatcher.on_message(_msg("!explode", author=OWNER))
        assert transport.replies[0][1].fields == [("Error Detail", "boom")]

    @pytest.mark.asyncio
    async def test_verbose_errors_setting(self, tmp_path):
        runtime, transport, _ = _make_runtime(tmp_path, settings={"errors": {"verbose": True}})
        runtime.registry.register(self._failing())

        await runtime.dispatcher.on_message(_msg("!explode"))
        assert transport.replies[0][1].fields == [("Error Detail", "boom")]

    @pytest.mark.asyncio
    async def test_later_dispatch_unaffected(self, tmp_path):
        runtime, _, _ = _make_runtime(tmp_path)
        runtime.registry.register(self._failing())
        command, calls = _recording_command()
        runtime.registry.register(command)

        await runtime.dispatcher.on_message(_msg("!explode"))
        assert await runtime.dispatcher.on_message(_msg("!ping")) is DispatchOutcome.EXECUTED
        assert calls == [[]]


class TestInteractionDispatch:
    """Tests for slash-command interactions."""

    def _slash(self, calls, **kwargs):
        async def run(runtime, interaction):
            calls.append(interaction.options)
        return SlashCommand(data={"name": "ping", "description": "Pong"}, run=run, **kwargs)

    @pytest.mark.asyncio
    async def test_exact_name_runs(self, tmp_path):
        runtime, _, _ = _make_runtime(tmp_path)
        calls = []
        runtime.slash_registry.register(self._slash(calls))

        interaction = Interaction(command_name="ping", user_id=USER, options={"x": 1})
        assert await runtime.dispatcher.on_interaction(interaction) is DispatchOutcome.EXECUTED
        assert calls == [{"x": 1}]

    @pytest.mark.asyncio
    async def test_unknown_or_non_command_ignored(self, tmp_path):
        runtime, transport, _ = _make_runtime(tmp_path)
        calls = []
        runtime.slash_registry.register(self._slash(calls))

        for interaction in (
            Interaction(command_name="PING", user_id=USER),
            Interaction(command_name="pong", user_id=USER),
            Interaction(command_name="ping", user_id=USER, is_command=False),
        ):
            assert await runtime.dispatcher.on_interaction(interaction) is DispatchOutcome.IGNORED
        assert calls == []
        assert transport.replies == []

    @pytest.mark.asyncio
    async def test_denial_is_ephemeral(self, tmp_path):
        runtime, transport, clock = _make_runtime(tmp_path)
        calls = []
        runtime.slash_registry.register(self._slash(calls, cooldown=5))

        interaction = Interaction(command_name="ping", user_id=USER)
        assert await runtime.dispatcher.on_interaction(interaction) is DispatchOutcome.EXECUTED
        clock.now = 2.0
        assert await runtime.dispatcher.on_interaction(interaction) is DispatchOutcome.DENIED
        target, notice, ephemeral = transport.replies[0]
        assert ephemeral is True
        assert "3 seconds" in notice.description
        runtime.shutdown()

    @pytest.mark.asyncio
    async def test_failure_is_ephemeral(self, tmp_path):
        runtime, transport, _ = _make_runtime(tmp_path)

        def run(runtime, interaction):
            raise ValueError("bad option")

        runtime.slash_registry.register(
            SlashCommand(data={"name": "ping", "description": "Pong"}, run=run)
        )
        outcome = await runtime.dispatcher.on_interaction(
            Interaction(command_name="ping", user_id=USER)
        )
        assert outcome is DispatchOutcome.FAILED
        assert transport.replies[0][2] is True

    @pytest.mark.asyncio
    async def test_failure_after_answer_edits_reply(self, tmp_path):
        runtime, transport, _ = _make_runtime(tmp_path)

        async def run(runtime, interaction):
            await runtime.transport.send_reply(
                interaction, notices.pong(runtime.config.colors, 1.0), ephemeral=True
            )
            raise RuntimeError("after reply")

        runtime.slash_registry.register(
            SlashCommand(data={"name": "ping", "description": "Pong"}, run=run)
        )
        interaction = Interaction(command_name="ping", user_id=USER)
        outcome = await runtime.dispatcher.on_interaction(interaction)

        assert outcome is DispatchOutcome.FAILED
        assert interaction.replied is True
        assert transport.edits == [False, True]
        assert transport.replies[1][1].title == "❌ Command Execution Error"

    @pytest.mark.asyncio
    async def test_failure_before_answer_sends_new_reply(self, tmp_path):
        runtime, transport, _ = _make_runtime(tmp_path)

        def run(runtime, interaction):
            raise ValueError("bad option")

        runtime.slash_registry.register(
            SlashCommand(data={"name": "ping", "description": "Pong"}, run=run)
        )
        await runtime.dispatcher.on_interaction(
            Interaction(command_name="ping", user_id=USER)
        )
        assert transport.edits == [False]

    @pytest.mark.asyncio
    async def test_message_replies_never_edit(self, tmp_path):
        runtime, transport, _ = _make_runtime(tmp_path)
        runtime.registry.register(_recording_command()[0])

        await runtime.dispatcher.on_message(_msg("!pong"))
        assert transport.edits == [False]
