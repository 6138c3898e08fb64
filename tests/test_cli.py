"""
Tests for the rcon command line client.

Tests cover:
- Argument defaults
- Batch execution and printing of non-empty responses
- Interactive stdin handoff
- Error reporting and exit status
"""
import io
import sys

import pytest
from structlog.testing import capture_logs
from unittest.mock import AsyncMock, MagicMock, patch

from rcon_cli.main import build_parser, execute, main, read_batch, read_interactive
from rcon_core.config import Settings
from rcon_core.exceptions import AuthenticationFailed, ProtocolViolation
from rcon_core.models import Game


def make_client(responses):
    client = MagicMock()
    client.send_command = AsyncMock(side_effect=responses)
    client.close = AsyncMock()
    return client


@pytest.fixture(autouse=True)
def captured_logs():
    with patch("rcon_cli.main.setup_logging"), capture_logs() as logs:
        yield logs


class TestParser:
    """Tests for build_parser()."""

    def test_defaults(self):
        args = build_parser().parse_args(["-p", "secret"])

        assert args.host == "127.0.0.1"
        assert args.port is None
        assert args.game == Game.SOURCE.value
        assert args.commands == []

    def test_batch_arguments(self):
        args = build_parser().parse_args(
            ["-H", "10.0.0.5", "-P", "25575", "-p", "secret", "-g", "minecraft", "list", "say hi"]
        )

        assert (args.host, args.port, args.game) == ("10.0.0.5", 25575, "minecraft")
        assert args.commands == ["list", "say hi"]

    def test_password_required(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["status"])


class TestExecute:
    """Tests for execute() and the command sources."""

    @pytest.mark.asyncio
    async def test_prints_only_non_empty_responses(self, capsys):
        client = make_client(["players: 0", "", "done"])

        await execute(client, read_batch(["status", "sv_restart 1", "echo done"]))

        assert capsys.readouterr().out == "players: 0\ndone\n"
        assert [c.args[0] for c in client.send_command.await_args_list] == [
            "status",
            "sv_restart 1",
            "echo done",
        ]

    @pytest.mark.asyncio
    async def test_interactive_reads_stdin_lines(self, monkeypatch):
        """Test that stdin lines are handed over in order, skipping blank ones."""
        monkeypatch.setattr(sys, "stdin", io.StringIO("status\n\n  \nlist\r\n"))

        commands = [command async for command in read_interactive(queue_size=1)]

        assert commands == ["status", "list"]


class TestMain:
    """Tests for main()."""

    @pytest.mark.asyncio
    async def test_batch_run(self, capsys):
        client = make_client(["hostname: test"])
        with patch("rcon_cli.main.open_client", new=AsyncMock(return_value=client)) as mock_open:
            code = await main(["-p", "secret", "-g", "minecraft", "status"], Settings())

        assert code == 0
        assert capsys.readouterr().out == "hostname: test\n"
        assert mock_open.await_args.args[:4] == ("127.0.0.1", None, "secret", Game.MINECRAFT)
        client.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_command_error_aborts_run(self, capsys, captured_logs):
        """Test that the first failing command stops the batch with status 1."""
        client = make_client([ProtocolViolation("Server sent unexpected response packet"), "unreached"])
        with patch("rcon_cli.main.open_client", new=AsyncMock(return_value=client)):
            code = await main(["-p", "secret", "status", "list"], Settings())

        captured = capsys.readouterr()
        assert code == 1
        assert "unexpected response packet" in captured.err
        assert client.send_command.await_count == 1
        client.close.assert_awaited_once()
        assert [entry["event"] for entry in captured_logs if entry["log_level"] == "error"] == ["command_failed"]

    @pytest.mark.asyncio
    async def test_connect_error(self, capsys):
        with patch(
            "rcon_cli.main.open_client",
            new=AsyncMock(side_effect=AuthenticationFailed("Authentication failed, bad password?")),
        ):
            code = await main(["-p", "wrong", "status"], Settings())

        assert code == 1
        assert "bad password" in capsys.readouterr().err

    @pytest.mark.asyncio
    async def test_factorio_without_port(self, capsys):
        """Test that a missing Factorio port is reported without touching the network."""
        code = await main(["-p", "secret", "-g", "factorio", "/time"], Settings())

        assert code == 1
        assert "port must be given" in capsys.readouterr().err

    @pytest.mark.asyncio
    async def test_logging_uses_given_settings(self, tmp_path):
        """Test that the settings passed to main() also configure logging."""
        settings = Settings(log_dir=tmp_path, log_level="INFO")
        client = make_client(["ok"])
        with patch("rcon_cli.main.setup_logging") as mock_setup, patch(
            "rcon_cli.main.open_client", new=AsyncMock(return_value=client)
        ):
            code = await main(["-p", "secret", "status"], settings)

        assert code == 0
        mock_setup.assert_called_once_with("rcon", None, settings)
