"""
Options of a structured completion request.
"""

from collections.abc import Callable
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from lmstruct.config.config import (
    Settings,
    DEFAULT_RETRIES,
    DEFAULT_RETRY_INTERVAL,
    DEFAULT_TIMEOUT,
    DEFAULT_MINIMUM_RESPONSE_TOKENS,
)
from lmstruct.language_models.messages import Message
from lmstruct.language_models.schema import (
    FUNCTION_NAME,
    FUNCTION_DESCRIPTION,
)


class RequestOptions(BaseModel):
    """
    Options of a completion request.

    Attributes:
        schema: the schema of the structured output, a pydantic model
            class or a type accepted by pydantic's TypeAdapter. If
            None, the text of the response is returned as data
        auto_heal: send a corrective message when the response does
            not contain a valid structured output
        auto_slice: shorten the latest user turn when the prompt does
            not fit the context window
        retries: number of retries after a transient provider error
        retry_interval: seconds before the first retry, doubled at
            each retry
        timeout: seconds to wait for the model (None, no limit)
        minimum_response_tokens: tokens reserved for the response
        message_history: messages preceding the prompt
        system_message: a system message heading the conversation, or
            a function returning it
        function_name: name of the function the model is asked to call
        function_description: description of that function
        on_token: callback receiving the text of streamed responses

    The schema is stored in the `schema_` field, since `schema` is
    taken by pydantic.
    """

    schema_: Any = Field(default=None, alias="schema")
    auto_heal: bool = True
    auto_slice: bool = False
    retries: int = Field(default=DEFAULT_RETRIES, ge=0)
    retry_interval: float = Field(default=DEFAULT_RETRY_INTERVAL, ge=0.0)
    timeout: float | None = Field(default=DEFAULT_TIMEOUT, gt=0.0)
    minimum_response_tokens: int = Field(
        default=DEFAULT_MINIMUM_RESPONSE_TOKENS, ge=0
    )
    message_history: tuple[Message, ...] = ()
    system_message: str | Callable[[], str] | None = None
    function_name: str = FUNCTION_NAME
    function_description: str = FUNCTION_DESCRIPTION
    on_token: Callable[[str], None] | None = None

    model_config = ConfigDict(
        frozen=True,
        arbitrary_types_allowed=True,
        populate_by_name=True,
    )

    @classmethod
    def from_settings(
        cls, settings: Settings | None = None, **kwargs: Any
    ) -> 'RequestOptions':
        """
        Build the options from the request section of the
        configuration. Keyword arguments override the configuration.

        Args:
            settings: the settings (read from config.toml if None)
        """
        request = (settings or Settings()).request
        values: dict[str, Any] = {
            'auto_heal': request.auto_heal,
            'auto_slice': request.auto_slice,
            'retries': request.retries,
            'retry_interval': request.retry_interval,
            'timeout': request.timeout,
            'minimum_response_tokens': request.minimum_response_tokens,
        }
        values.update(kwargs)
        return cls(**values)
