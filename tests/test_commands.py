"""Tests for CommandRegistry and CommandDispatcher."""

from types import SimpleNamespace

import pytest

from discord_term.core.commands import (
    CommandDispatcher,
    CommandRegistry,
    CommandResult,
    CommandStatus,
    OK,
)
from discord_term.core.errors import UsageError
from discord_term.core.options import AppOptions


class FakeApp:
    """Just enough of SessionController for the dispatcher."""

    def __init__(self, prefix="/"):
        self.options = AppOptions(command_prefix=prefix)
        self.tags = SimpleNamespace(substitute=lambda line: line.strip())
        self.system_lines = []
        self.message = SimpleNamespace(system=self.system_lines.append)
        self.sent = []

    async def send_message(self, text):
        self.sent.append(text)
        return OK


@pytest.fixture
def app():
    return FakeApp()


@pytest.fixture
def registry():
    calls = []
    reg = CommandRegistry()
    reg.calls = calls
    reg.register("help", lambda args, app: calls.append(("help", args)))
    reg.register("edit", lambda args, app: calls.append(("edit", args)), min_args=2, usage="<msgId> <text>")
    reg.register("encrypt", lambda args, app: calls.append(("encrypt", args)), min_args=1, usage="<password>")
    return reg


class TestRegistry:
    def test_duplicate_name_rejected(self, registry):
        with pytest.raises(ValueError):
            registry.register("help", lambda args, app: None)

    @pytest.mark.parametrize("name", ["", "two words"])
    def test_invalid_name_rejected(self, registry, name):
        with pytest.raises(ValueError):
            registry.register(name, lambda args, app: None)

    def test_decorator_registers(self, registry):
        @registry.command("ping", summary="pong")
        def _ping(args, app):
            pass

        assert registry.get("ping").summary == "pong"
        assert "ping" in registry
        assert registry.names()[-1] == "ping"

    def test_first_match_uses_registration_order(self, registry):
        registry.register("helpme", lambda args, app: None)
        assert registry.first_match("he") == "help"
        assert registry.first_match("e") == "edit"
        assert registry.first_match("zz") is None


class TestInvoke:
    async def test_arity_failure_is_usage_error_without_calling(self, registry, app):
        result = await registry.invoke("edit", ["123"], app)
        assert result.status is CommandStatus.USAGE_ERROR
        assert result.detail == "Usage: /edit <msgId> <text>"
        assert registry.calls == []

    async def test_unknown_command(self, registry, app):
        result = await registry.invoke("nope", [], app)
        assert result == CommandResult(CommandStatus.UNKNOWN_COMMAND, "Unknown command: nope")

    async def test_handler_exception_becomes_failure(self, registry, app):
        def _boom(args, app):
            raise RuntimeError("kaboom")

        registry.register("boom", _boom)
        result = await registry.invoke("boom", [], app)
        assert result.status is CommandStatus.FAILURE
        assert "kaboom" in result.detail

    async def test_handler_usage_error(self, registry, app):
        def _picky(args, app):
            raise UsageError("Pick something")

        registry.register("picky", _picky)
        result = await registry.invoke("picky", [], app)
        assert result == CommandResult(CommandStatus.USAGE_ERROR, "Pick something")

    async def test_coroutine_handlers_are_awaited(self, registry, app):
        seen = []

        async def _later(args, app):
            seen.append(args)

        registry.register("later", _later)
        assert (await registry.invoke("later", ["x"], app)).ok
        assert seen == [["x"]]


class TestDispatch:
    async def test_command_line(self, registry, app):
        result = await CommandDispatcher(registry, app).dispatch("/encrypt  s3cret ")
        assert result is OK
        assert registry.calls == [("encrypt", ["s3cret"])]
        assert app.sent == []

    async def test_plain_text_is_sent(self, registry, app):
        await CommandDispatcher(registry, app).dispatch("hello world")
        assert app.sent == ["hello world"]

    async def test_empty_line_is_noop(self, registry, app):
        result = await CommandDispatcher(registry, app).dispatch("   ")
        assert result.status is CommandStatus.NOOP
        assert app.sent == [] and app.system_lines == []

    async def test_failures_are_reported_as_system_lines(self, registry, app):
        await CommandDispatcher(registry, app).dispatch("/edit 1")
        await CommandDispatcher(registry, app).dispatch("/nope")
        assert app.system_lines == ["Usage: /edit <msgId> <text>", "Unknown command: nope"]

    async def test_custom_prefix(self, registry):
        app = FakeApp(prefix="!")
        dispatcher = CommandDispatcher(registry, app)
        await dispatcher.dispatch("!help")
        await dispatcher.dispatch("/help")
        assert registry.calls == [("help", [])]
        assert app.sent == ["/help"]


class TestComplete:
    def test_completes_first_registered_match(self, registry, app):
        assert CommandDispatcher(registry, app).complete("/he") == "/help "

    @pytest.mark.parametrize("raw", ["/h", "he", "/help me", "/zz"])
    def test_no_completion(self, registry, app, raw):
        assert CommandDispatcher(registry, app).complete(raw) is None
