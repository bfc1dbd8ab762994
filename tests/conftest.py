"""
Pytest configuration and fixtures.
Shared fakes for the completion endpoint and leave data.
"""

import json
from datetime import datetime
from types import SimpleNamespace

import pytest

from leave_assistant.agent import ChatOrchestrator
from leave_assistant.functions import FunctionRegistry
from leave_assistant.llm_client import ChatCompletionClient

LEAVE_BALANCES = {
    "employeeId": "E001",
    "leaveBalances": {
        "PaidLeaves": 15,
        "MedicalLeave": 8,
        "PaternityLeave": 10,
        "MaternityLeave": 0,
    },
}


class FakeCompletion:
    """Stands in for litellm.completion, replaying scripted responses in order."""

    def __init__(self, *outcomes):
        self.outcomes = list(outcomes)
        self.calls = []

    def __call__(self, **kwargs):
        # Copy messages: the history list keeps growing after the call.
        kwargs["messages"] = list(kwargs["messages"])
        self.calls.append(kwargs)
        if not self.outcomes:
            raise AssertionError("Unexpected completion call")
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome


def _make_response(content=None, finish_reason="stop", function_call=None):
    call = None
    if function_call is not None:
        name, arguments = function_call
        call = SimpleNamespace(name=name, arguments=arguments)
    message = SimpleNamespace(role="assistant", content=content, function_call=call)
    return SimpleNamespace(choices=[SimpleNamespace(finish_reason=finish_reason, message=message)])


@pytest.fixture
def make_response():
    """Build a completion response shaped like litellm's ModelResponse."""
    return _make_response


@pytest.fixture
def fixed_now():
    """Monday, 2024-01-01 09:30 local time."""
    return datetime(2024, 1, 1, 9, 30)


@pytest.fixture
def leave_balances_file(tmp_path):
    """Write a leave balances file and return its path."""
    path = tmp_path / "leave_balances.json"
    path.write_text(json.dumps(LEAVE_BALANCES, indent=2), encoding="utf-8")
    return path


@pytest.fixture
def registry(leave_balances_file, fixed_now):
    """Function registry reading the temp leave file with a fixed clock."""
    return FunctionRegistry(leave_balances_file, clock=lambda: fixed_now)


@pytest.fixture
def make_client():
    """Create a ChatCompletionClient backed by a FakeCompletion."""

    def factory(*outcomes, max_retries=1):
        fake = FakeCompletion(*outcomes)
        client = ChatCompletionClient(
            model="azure/test-deployment",
            api_key="test-key",
            api_base="https://example.openai.azure.com",
            api_version="2024-02-01",
            max_retries=max_retries,
            retry_backoff=0,
            completion=fake,
        )
        return client, fake

    return factory


@pytest.fixture
def make_orchestrator(make_client, registry):
    """Create an orchestrator whose endpoint replays the given outcomes."""

    def factory(*outcomes, max_retries=1, max_function_rounds=3):
        client, fake = make_client(*outcomes, max_retries=max_retries)
        orchestrator = ChatOrchestrator(
            client=client, registry=registry, max_function_rounds=max_function_rounds
        )
        return orchestrator, fake

    return factory
