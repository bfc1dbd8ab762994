"""
Conversation history sent to the model on every request.

Messages are frozen once created and the history only grows. Two ordering
rules are enforced here because the completion endpoint rejects requests
that break them:
- the history opens with exactly one system message
- an assistant function call is answered by one function message before
  the model is called again
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict


class ConversationStateError(RuntimeError):
    """Raised when an append or a model call would break history ordering."""


class Role(str, Enum):
    SYSTEM = "system"
    ASSISTANT = "assistant"
    USER = "user"
    FUNCTION = "function"


class FunctionCallRequest(BaseModel):
    """A model-issued request to run a local function."""

    model_config = ConfigDict(frozen=True)

    name: str
    arguments: str = ""


class Message(BaseModel):
    """One chat message."""

    model_config = ConfigDict(frozen=True)

    role: Role
    content: str | None = None
    name: str | None = None
    function_call: FunctionCallRequest | None = None

    def to_api(self) -> dict[str, Any]:
        """Serialize to the chat-completion message format."""
        data: dict[str, Any] = {"role": self.role.value, "content": self.content}
        if self.name is not None:
            data["name"] = self.name
        if self.function_call is not None:
            data["function_call"] = self.function_call.model_dump()
        return data


@dataclass
class ConversationState:
    messages: list[Message] = field(default_factory=list)

    @classmethod
    def start(cls, system_prompt: str, greeting: str | None = None) -> "ConversationState":
        """Create a history holding the system prompt and an optional assistant greeting."""
        state = cls()
        state.append(Message(role=Role.SYSTEM, content=system_prompt))
        if greeting is not None:
            state.add_assistant(greeting)
        return state

    def append(self, message: Message) -> Message:
        if message.role == Role.SYSTEM:
            if self.messages:
                raise ConversationStateError("System message is only allowed first")
        elif not self.messages:
            raise ConversationStateError("Conversation must start with a system message")

        if message.role == Role.FUNCTION:
            pending = self.pending_function_call
            if pending is None:
                raise ConversationStateError("Function result without a pending function call")
            if message.name != pending.name:
                raise ConversationStateError(
                    f"Function result for {message.name} does not answer {pending.name}"
                )

        self.messages.append(message)
        return message

    def add_user(self, content: str) -> Message:
        return self.append(Message(role=Role.USER, content=content))

    def add_assistant(
        self, content: str | None, function_call: FunctionCallRequest | None = None
    ) -> Message:
        return self.append(
            Message(role=Role.ASSISTANT, content=content, function_call=function_call)
        )

    def add_function_result(self, name: str, content: str) -> Message:
        return self.append(Message(role=Role.FUNCTION, name=name, content=content))

    @property
    def pending_function_call(self) -> FunctionCallRequest | None:
        """The last message's function call, if it has not been answered yet."""
        if not self.messages:
            return None
        last = self.messages[-1]
        if last.role == Role.ASSISTANT and last.function_call is not None:
            return last.function_call
        return None

    def ensure_ready_for_model(self) -> None:
        """Raise if the history cannot be sent to the model as it stands."""
        if not self.messages or self.messages[0].role != Role.SYSTEM:
            raise ConversationStateError("Conversation must start with a system message")
        pending = self.pending_function_call
        if pending is not None:
            raise ConversationStateError(
                f"Function call {pending.name} has not been answered"
            )

    def to_api(self) -> list[dict[str, Any]]:
        return [message.to_api() for message in self.messages]

    def __len__(self) -> int:
        return len(self.messages)

    def __iter__(self):
        return iter(self.messages)
