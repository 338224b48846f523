"""
The response of a completion request, and the continuation of the
conversation it records.

A Response carries the whole conversation up to and including the
turn of the model. To follow up, a new conversation is built from it
with continue_conversation, and sent again (see respond in
lmstruct.completion.orchestrator). Nothing is mutated along the way.

Example:
    ```python
    response = request(model, "Name three startups")
    conversation = continue_conversation(
        response.messages, "Now describe the second one"
    )
    follow_up = chat(model, conversation)
    ```
"""

from collections.abc import Sequence
from typing import Any

from pydantic import BaseModel, ConfigDict

from lmstruct.language_models.messages import (
    FunctionCall,
    Message,
    Usage,
)


class Response(BaseModel):
    """
    The validated response of the model.

    Attributes:
        content: the text of the response, if any
        function_call: the function call of the response, if any
        usage: the token usage reported by the provider
        data: the validated structured output (an instance of the
            schema), or the text of the response if no schema was
            given
        messages: the conversation, ending with the model's turn
    """

    content: str | None = None
    function_call: FunctionCall | None = None
    usage: Usage | None = None
    data: Any = None
    messages: tuple[Message, ...] = ()

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    @property
    def name(self) -> str | None:
        """The name of the called function."""
        return self.function_call.name if self.function_call else None

    @property
    def arguments(self) -> Any:
        """The arguments of the function call, as returned."""
        return self.function_call.arguments if self.function_call else None


def continue_conversation(
    conversation: Sequence[Message], turn: Message | str
) -> tuple[Message, ...]:
    """
    Append a turn to a conversation.

    Args:
        conversation: the messages exchanged so far
        turn: the new message. A string is taken as a user message

    Returns:
        a new conversation
    """
    if isinstance(turn, str):
        turn = Message(role='user', content=turn)
    return tuple(conversation) + (turn,)
