"""
Abstract base class for the completion models.

The completion pipeline depends only on this interface. A model:

    - exposes its settings (context size, streaming, and whether it
        supports native function calls)
    - sends a list of messages and returns a RawResponse
    - estimates the tokens of a prompt

Provider errors that may be resolved by resending the request must be
raised as TransientProviderError. The LangChain adapter in
lmstruct.language_models.langchain implements this interface for the
chat models supported by LangChain.
"""

from abc import ABC, abstractmethod
from collections.abc import Callable, Sequence

from pydantic import BaseModel, ConfigDict

from lmstruct.config.config import LanguageModelSettings, DEFAULT_ENCODING
from .messages import FunctionDescriptor, Message, RawResponse
from .tokens import Encoder, TokenEstimator


class ModelRequestOptions(BaseModel):
    """
    Options of a single call to the model.

    Attributes:
        functions: the functions offered to the model
        call_function: the name of the function the model must call
        on_token: a callback receiving the text fragments of a streamed
            response
    """

    functions: list[FunctionDescriptor] | None = None
    call_function: str | None = None
    on_token: Callable[[str], None] | None = None

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)


class CompletionModel(ABC):
    """Abstract base class for completion models."""

    def __init__(
        self,
        settings: LanguageModelSettings,
        encoder: Encoder | None = None,
        encoding_name: str = DEFAULT_ENCODING,
    ):
        self.settings = settings
        self.token_estimator = TokenEstimator(encoder, encoding_name)

    @property
    def supports_functions(self) -> bool:
        """The model accepts function descriptors and forced calls."""
        return self.settings.function_calling

    @abstractmethod
    async def achat_completion(
        self,
        messages: Sequence[Message],
        options: ModelRequestOptions | None = None,
    ) -> RawResponse:
        """
        Send the conversation to the model and return its response.

        Args:
            messages: The conversation history.
            options: the functions to offer and the function to call.

        Returns:
            The model's response (text content or a function call).

        Raises:
            TransientProviderError: when the request may be resent
            MalformedResponseError: when the response has neither
                content nor function call
        """
        pass

    async def atext_completion(
        self,
        prompt: str,
        options: ModelRequestOptions | None = None,
        system_message: str | None = None,
        message_history: Sequence[Message] | None = None,
    ) -> RawResponse:
        """
        Send a single prompt to the model, optionally preceded by a
        system message and a conversation history.
        """
        messages: list[Message] = []
        if system_message:
            messages.append(Message(role='system', content=system_message))
        messages.extend(message_history or [])
        messages.append(Message(role='user', content=prompt))
        return await self.achat_completion(messages, options)

    def get_tokens_from_prompt(
        self,
        texts: Sequence[str],
        functions: Sequence[FunctionDescriptor] | None = None,
    ) -> int:
        """Estimate the number of tokens of a prompt."""
        return self.token_estimator.estimate(texts, functions)
