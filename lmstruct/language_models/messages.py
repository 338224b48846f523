"""
Generic data structures for language model interactions.

Messages are immutable. A conversation is a tuple of messages, and it
is continued by building a new tuple (see
lmstruct.completion.conversation).
"""

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator


class FunctionCall(BaseModel):
    """A call to a function requested by the model.

    The arguments are either already decoded, or the JSON string
    returned by the provider.
    """

    name: str
    arguments: Any = None

    model_config = ConfigDict(frozen=True)


class Message(BaseModel):
    """Represents a message in a chat conversation."""

    role: Literal['system', 'user', 'assistant']
    content: str | None = None
    function_call: FunctionCall | None = None

    model_config = ConfigDict(frozen=True)

    @model_validator(mode='after')
    def _content_or_call(self) -> 'Message':
        if self.function_call is not None and self.role != 'assistant':
            raise ValueError("Only assistant messages may call functions")
        return self


class Usage(BaseModel):
    """Token usage reported by the provider."""

    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0

    model_config = ConfigDict(frozen=True)


class FunctionDescriptor(BaseModel):
    """A function (tool) offered to the model, with its JSON schema."""

    name: str
    description: str
    parameters: dict[str, Any] = Field(default_factory=dict)

    model_config = ConfigDict(frozen=True)


class RawResponse(BaseModel):
    """The response of a provider, before validation."""

    content: str | None = None
    function_call: FunctionCall | None = None
    usage: Usage | None = None

    model_config = ConfigDict(frozen=True)

    def to_message(self) -> Message:
        """The assistant turn corresponding to this response."""
        return Message(
            role='assistant',
            content=self.content,
            function_call=self.function_call,
        )
