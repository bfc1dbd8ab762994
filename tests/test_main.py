"""
Tests for the console loop and the click entry point.
"""

import pytest
from click.testing import CliRunner

from leave_assistant.agent import FAREWELL, GREETING, TRANSPORT_FAILURE_REPLY
from leave_assistant.main import main, run_chat


class ScriptedConsole:
    """Console double feeding prepared user lines."""

    def __init__(self, *lines):
        self.lines = list(lines)
        self.agent_lines = []

    def print_agent(self, text):
        self.agent_lines.append(text)

    def read_user(self):
        return self.lines.pop(0) if self.lines else ""


@pytest.fixture
def runner():
    """Create a Click test runner."""
    return CliRunner()


@pytest.fixture
def patch_client(monkeypatch, make_client):
    """Make the entry point use a scripted endpoint."""

    def install(*outcomes):
        client, fake = make_client(*outcomes)
        monkeypatch.setattr("leave_assistant.main.build_client", lambda model=None: client)
        return fake

    return install


class TestRunChat:
    def test_greets_answers_and_says_goodbye(self, make_orchestrator, make_response):
        orchestrator, _ = make_orchestrator(make_response("I help with leave."))
        console = ScriptedConsole("What do you do?", "exit")

        result = run_chat(orchestrator, console)

        assert console.agent_lines == [GREETING, "I help with leave.", FAREWELL]
        assert result.ended is True
        assert result.transport_failed is False

    def test_empty_line_ends_chat(self, make_orchestrator):
        orchestrator, fake = make_orchestrator()
        console = ScriptedConsole("")

        run_chat(orchestrator, console)

        assert console.agent_lines == [GREETING, FAREWELL]
        assert fake.calls == []

    def test_transport_failure_is_shown(self, make_orchestrator):
        orchestrator, _ = make_orchestrator(ConnectionError("down"), ConnectionError("down"))
        console = ScriptedConsole("Hello", "never read")

        result = run_chat(orchestrator, console)

        assert console.agent_lines == [GREETING, TRANSPORT_FAILURE_REPLY]
        assert result.transport_failed is True
        assert console.lines == ["never read"]


class TestMainCommand:
    def test_chat_session(self, runner, patch_client, make_response, leave_balances_file):
        fake = patch_client(
            make_response(
                finish_reason="function_call",
                function_call=("get_day_of_week", '{"givenDate": "2024-01-01"}'),
            ),
            make_response("2024-01-01 was a Monday."),
        )

        result = runner.invoke(
            main,
            ["--leave-balances", str(leave_balances_file)],
            input="What day was 2024-01-01?\nexit\n",
        )

        assert result.exit_code == 0
        assert "Agent : Hello! How can I help you?" in result.output
        assert "User : " in result.output
        assert "Agent : 2024-01-01 was a Monday." in result.output
        assert "Agent : Thank you!" in result.output
        assert len(fake.calls) == 2

    def test_end_of_input_exits_cleanly(self, runner, patch_client, make_response):
        patch_client(make_response("Hi!"))

        result = runner.invoke(main, [], input="Hello\n")

        assert result.exit_code == 0
        assert "Agent : Hi!" in result.output
        assert result.output.rstrip().endswith("Agent : Thank you!")

    def test_transport_failure_exit_code(self, runner, patch_client):
        patch_client(ConnectionError("down"), ConnectionError("down"))

        result = runner.invoke(main, [], input="Hello\n")

        assert result.exit_code == 1
        assert TRANSPORT_FAILURE_REPLY in result.output

    def test_invalid_log_level(self, runner):
        result = runner.invoke(main, ["--log-level", "LOUD"])

        assert result.exit_code == 2
