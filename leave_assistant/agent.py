"""
Chat orchestrator: one user turn in, one assistant reply out.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum

from leave_assistant.config import settings
from leave_assistant.conversation_state import ConversationState
from leave_assistant.functions import (
    FunctionRegistry,
    MalformedArgumentsError,
    UnknownFunctionError,
)
from leave_assistant.llm_client import ChatCompletionClient, ModelReply, TransportFailureError

logger = logging.getLogger(__name__)


AGENT_INSTRUCTION = (
    "You are an AI Assistant to help answer use questions. "
    "Only use the functions to answer questions. "
    "Do not use other functions and model data for responding to questions"
)
GREETING = "Hello! How can I help you?"
FAREWELL = "Thank you!"
TRANSPORT_FAILURE_REPLY = "Sorry, I could not reach the assistant service. Please try again later."
EXIT_COMMAND = "exit"


class ChatState(Enum):
    AWAITING_USER_INPUT = "awaiting_user_input"
    MODEL_REQUESTED = "model_requested"
    FUNCTION_REQUESTED = "function_requested"
    FUNCTION_EXECUTED = "function_executed"
    RESPONSE_PRINTED = "response_printed"
    ENDED = "ended"


@dataclass
class TurnResult:
    """Outcome of one orchestrator step."""

    reply: str
    ended: bool = False
    transport_failed: bool = False
    function_calls: list[str] = field(default_factory=list)


def is_exit_command(user_input: str | None) -> bool:
    """Empty input or "exit" (any case, surrounding whitespace ignored) ends the chat."""
    text = (user_input or "").strip()
    return not text or text.lower() == EXIT_COMMAND


class ChatOrchestrator:
    """
    Drives the conversation against the completion endpoint.

    The orchestrator owns no conversation history of its own: callers get a
    ConversationState from start() and pass it back into every step(), so the
    state machine can be exercised without a live endpoint.

    Args:
        client: Completion client used for every model request
        registry: Local functions the model may call
        max_function_rounds: Function calls allowed per user turn. The last
            re-submission forbids further calls so the model answers in text.
    """

    def __init__(
        self,
        client: ChatCompletionClient,
        registry: FunctionRegistry,
        max_function_rounds: int | None = None,
    ):
        self.client = client
        self.registry = registry
        self.max_function_rounds = max_function_rounds or settings.max_function_rounds
        self.state = ChatState.AWAITING_USER_INPUT

    def start(self) -> ConversationState:
        """Open a new conversation with the system prompt and greeting."""
        self.state = ChatState.AWAITING_USER_INPUT
        return ConversationState.start(AGENT_INSTRUCTION, GREETING)

    def step(self, conversation: ConversationState, user_input: str | None) -> TurnResult:
        """
        Process one line of user input.

        Returns the text to show the user. When the input ends the chat, or the
        endpoint stays unreachable after retries, ``ended`` is set and nothing
        more should be sent.
        """
        if self.state == ChatState.ENDED:
            return TurnResult(reply=FAREWELL, ended=True)

        if is_exit_command(user_input):
            logger.info("Exit requested, ending conversation")
            self.state = ChatState.ENDED
            return TurnResult(reply=FAREWELL, ended=True)

        self.state = ChatState.AWAITING_USER_INPUT
        conversation.add_user(user_input)
        function_calls: list[str] = []

        try:
            reply = self._request_model(conversation)
            while (
                reply.requests_function_call and len(function_calls) < self.max_function_rounds
            ):
                self.state = ChatState.FUNCTION_REQUESTED
                function_calls.append(self._execute_function_call(conversation, reply))
                self.state = ChatState.FUNCTION_EXECUTED

                allow_more = len(function_calls) < self.max_function_rounds
                reply = self._request_model(conversation, allow_functions=allow_more)

        except TransportFailureError as e:
            logger.error(f"Ending conversation after transport failure: {e}")
            self.state = ChatState.ENDED
            return TurnResult(
                reply=TRANSPORT_FAILURE_REPLY,
                ended=True,
                transport_failed=True,
                function_calls=function_calls,
            )

        message = conversation.add_assistant(reply.message.content)
        self.state = ChatState.RESPONSE_PRINTED
        logger.info(
            f"Assistant reply generated: {len(message.content or '')} characters, "
            f"function_calls={function_calls}"
        )
        return TurnResult(reply=message.content or "", function_calls=function_calls)

    def _request_model(
        self, conversation: ConversationState, allow_functions: bool = True
    ) -> ModelReply:
        conversation.ensure_ready_for_model()
        self.state = ChatState.MODEL_REQUESTED
        return self.client.complete(
            conversation.to_api(),
            functions=self.registry.specs(),
            function_call=None if allow_functions else "none",
        )

    def _execute_function_call(self, conversation: ConversationState, reply: ModelReply) -> str:
        """Record the model's function call, run it, and record the result."""
        call = reply.message.function_call
        conversation.add_assistant(reply.message.content, function_call=call)
        logger.info(f"Model requested function {call.name} with arguments {call.arguments!r}")

        try:
            result = self.registry.dispatch(call.name, call.arguments)
        except (MalformedArgumentsError, UnknownFunctionError) as e:
            logger.warning(f"Function call rejected: {e}")
            result = str(e)

        conversation.add_function_result(call.name, result)
        return call.name
