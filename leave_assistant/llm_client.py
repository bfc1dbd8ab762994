"""
Chat-completion client built on litellm with tenacity retry.

Translates between the project's message types and the litellm call, and
turns every transport problem into a single TransportFailureError once the
retry policy is exhausted.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any

import litellm
import tenacity
from litellm.exceptions import (
    APIConnectionError,
    InternalServerError,
    RateLimitError,
    ServiceUnavailableError,
    Timeout,
)

from leave_assistant.config import Settings
from leave_assistant.conversation_state import FunctionCallRequest, Message, Role
from leave_assistant.observability import trace_span

logger = logging.getLogger(__name__)

_RETRYABLE_ERRORS = (
    APIConnectionError,
    InternalServerError,
    RateLimitError,
    ServiceUnavailableError,
    Timeout,
    ConnectionError,
    TimeoutError,
)


class TransportFailureError(RuntimeError):
    """Raised when the completion endpoint cannot produce a usable response."""


class FinishReason(str, Enum):
    STOP = "stop"
    LENGTH = "length"
    FUNCTION_CALL = "function_call"
    TOOL_CALLS = "tool_calls"
    CONTENT_FILTER = "content_filter"
    OTHER = "other"

    @classmethod
    def parse(cls, value: str | None) -> FinishReason:
        try:
            return cls(value)
        except ValueError:
            return cls.OTHER


@dataclass(frozen=True)
class ModelReply:
    """First choice of a completion response."""

    finish_reason: FinishReason
    message: Message

    @property
    def requests_function_call(self) -> bool:
        return (
            self.finish_reason == FinishReason.FUNCTION_CALL
            and self.message.function_call is not None
        )


def _is_retryable(exc: BaseException) -> bool:
    """Connection errors, timeouts, rate limits and 5xx are retried; nothing else."""
    return isinstance(exc, _RETRYABLE_ERRORS)


def _parse_reply(response: Any) -> ModelReply:
    choices = getattr(response, "choices", None)
    if not choices:
        raise TransportFailureError("Completion response contained no choices")

    choice = choices[0]
    raw_message = choice.message
    raw_call = getattr(raw_message, "function_call", None)

    function_call = None
    if raw_call is not None:
        function_call = FunctionCallRequest(
            name=raw_call.name, arguments=raw_call.arguments or ""
        )

    finish_reason = FinishReason.parse(getattr(choice, "finish_reason", None))
    if function_call is not None and finish_reason != FinishReason.FUNCTION_CALL:
        # Some providers report "stop" alongside a function call.
        logger.debug(f"Normalising finish_reason={finish_reason.value} to function_call")
        finish_reason = FinishReason.FUNCTION_CALL
    elif finish_reason == FinishReason.TOOL_CALLS:
        # Only legacy functions are advertised; tool calls cannot be answered.
        logger.warning(
            "Model replied with tool_calls, which are not supported; "
            "treating the reply as plain text"
        )

    message = Message(
        role=Role.ASSISTANT,
        content=getattr(raw_message, "content", None),
        function_call=function_call,
    )
    return ModelReply(finish_reason=finish_reason, message=message)


class ChatCompletionClient:
    """
    Sync chat-completion client.

    Usage::

        client = ChatCompletionClient.from_settings(settings)
        reply = client.complete(state.to_api(), functions=registry.specs())
        print(reply.message.content)
    """

    def __init__(
        self,
        model: str,
        api_key: str | None = None,
        api_base: str | None = None,
        api_version: str | None = None,
        timeout: float = 60.0,
        max_retries: int = 1,
        retry_backoff: float = 1.0,
        completion: Callable[..., Any] = litellm.completion,
    ):
        """
        Args:
            model: litellm model identifier, e.g. "azure/<deployment-name>"
            api_key: Key for the endpoint. None leaves it to litellm's env lookup.
            api_base: Endpoint URL
            api_version: API version (Azure)
            timeout: Per-request timeout in seconds
            max_retries: Extra attempts after the first failed one
            retry_backoff: Multiplier for exponential backoff between attempts
            completion: Callable with the litellm.completion signature
        """
        self.model = model
        self.api_key = api_key
        self.api_base = api_base
        self.api_version = api_version
        self.timeout = timeout
        self.max_retries = max_retries
        self.retry_backoff = retry_backoff
        self._completion = completion

    @classmethod
    def from_settings(cls, settings: Settings, **overrides: Any) -> ChatCompletionClient:
        params: dict[str, Any] = {
            "model": settings.llm_model,
            "api_key": settings.llm_api_key,
            "api_base": settings.llm_api_base,
            "api_version": settings.llm_api_version,
            "timeout": settings.llm_timeout,
            "max_retries": settings.llm_max_retries,
            "retry_backoff": settings.llm_retry_backoff,
        }
        params.update(overrides)
        return cls(**params)

    def complete(
        self,
        messages: list[dict[str, Any]],
        functions: list[dict[str, Any]] | None = None,
        function_call: str | None = None,
    ) -> ModelReply:
        """
        Request one completion, retrying transient failures.

        Args:
            messages: Conversation history in API format
            functions: Function schemas the model may call
            function_call: "none" forces a text answer, "auto" or None lets the model choose

        Raises:
            TransportFailureError: When every attempt failed or the response is unusable
        """
        retryer = tenacity.Retrying(
            retry=tenacity.retry_if_exception(_is_retryable),
            wait=tenacity.wait_exponential(multiplier=self.retry_backoff, max=30),
            stop=tenacity.stop_after_attempt(self.max_retries + 1),
            before_sleep=tenacity.before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )

        with trace_span("llm_completion", model=self.model, messages=len(messages)):
            try:
                response = retryer(self._do_complete, messages, functions, function_call)
            except Exception as e:
                logger.error(f"Chat completion failed: {e}")
                raise TransportFailureError(f"Chat completion failed: {e}") from e

            return _parse_reply(response)

    def _do_complete(
        self,
        messages: list[dict[str, Any]],
        functions: list[dict[str, Any]] | None,
        function_call: str | None,
    ) -> Any:
        """Execute a single completion request (no retry)."""
        kwargs: dict[str, Any] = {
            "model": self.model,
            "messages": messages,
            "timeout": self.timeout,
            # tenacity in complete() is the only retry layer
            "max_retries": 0,
        }
        if functions:
            kwargs["functions"] = functions
            if function_call is not None:
                kwargs["function_call"] = function_call
        for key in ("api_key", "api_base", "api_version"):
            value = getattr(self, key)
            if value is not None:
                kwargs[key] = value

        return self._completion(**kwargs)
