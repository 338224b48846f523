"""
LangChain adapter implementation of the CompletionModel interface.

The adapter converts the messages of the package to LangChain messages,
offers the function descriptor to the model as a tool (forcing the call
when requested), and converts the LangChain response back. Provider
exceptions signalling rate limits, timeouts, connection problems or
server errors are re-raised as TransientProviderError, so that the
completion pipeline may retry them.
"""

import json
from collections.abc import Sequence
from typing import Any

from langchain_core.language_models.chat_models import BaseChatModel
from langchain_core.messages import (
    AIMessage,
    BaseMessage,
    HumanMessage,
    SystemMessage,
)

from lmstruct.config.config import (
    LanguageModelSettings,
    Settings,
    DEFAULT_ENCODING,
)
from lmstruct.errors import MalformedResponseError, TransientProviderError
from lmstruct.utils.logging import LoggerBase, get_logger
from ..base import CompletionModel, ModelRequestOptions
from ..messages import (
    FunctionCall,
    FunctionDescriptor,
    Message,
    RawResponse,
    Usage,
)
from ..tokens import Encoder
from .models import create_model_from_settings

logger = get_logger(__name__)

# error class names of the provider SDKs (openai, anthropic, httpx)
# that signal a transient condition
_TRANSIENT_ERROR_NAMES = (
    "Timeout",
    "TimeoutError",
    "ConnectionError",
    "RateLimitError",
    "InternalServerError",
)


def is_transient_error(error: BaseException) -> bool:
    """Classify a provider exception as transient (worth retrying)."""
    status = getattr(error, "status_code", None)
    if status is None:
        status = getattr(getattr(error, "response", None), "status_code", None)
    if isinstance(status, int):
        return status in (408, 429) or status >= 500
    if isinstance(error, (TimeoutError, ConnectionError)):
        return True
    return type(error).__name__.endswith(_TRANSIENT_ERROR_NAMES)


def _text(content: Any) -> str:
    # content is a string or a list of content blocks
    if isinstance(content, str):
        return content
    parts: list[str] = []
    for block in content or []:
        if isinstance(block, str):
            parts.append(block)
        elif isinstance(block, dict) and block.get("type") == "text":
            parts.append(str(block.get("text", "")))
    return "".join(parts)


def _tool(function: FunctionDescriptor) -> dict[str, Any]:
    return {
        "type": "function",
        "function": {
            "name": function.name,
            "description": function.description,
            "parameters": function.parameters,
        },
    }


class LangChainCompletionModel(CompletionModel):
    """Adapter for LangChain chat models."""

    def __init__(
        self,
        settings: LanguageModelSettings,
        model: BaseChatModel | None = None,
        encoder: Encoder | None = None,
        encoding_name: str = DEFAULT_ENCODING,
        logger: LoggerBase = logger,
    ):
        super().__init__(settings, encoder, encoding_name)
        self.model = model or create_model_from_settings(settings)
        self.logger = logger

    @classmethod
    def from_settings(
        cls, settings: Settings | None = None
    ) -> 'LangChainCompletionModel':
        """
        Create the model from the configuration: the model section
        gives the language model, the request section the encoding
        used to count tokens.

        Args:
            settings: the settings (read from config.toml if None)
        """
        settings = settings or Settings()
        return cls(settings.model, encoding_name=settings.request.encoding)

    def _convert_messages(
        self, messages: Sequence[Message]
    ) -> list[BaseMessage]:
        """Convert generic messages to LangChain messages."""
        lc_messages: list[BaseMessage] = []
        for msg in messages:
            if msg.role == 'system':
                lc_messages.append(SystemMessage(content=msg.content or ""))
            elif msg.role == 'user':
                lc_messages.append(HumanMessage(content=msg.content or ""))
            elif msg.function_call is not None:
                # Earlier calls are replayed as text, since providers
                # require a tool result after each tool call
                arguments = msg.function_call.arguments
                if not isinstance(arguments, str):
                    arguments = json.dumps(arguments)
                lc_messages.append(AIMessage(content=arguments))
            else:
                lc_messages.append(AIMessage(content=msg.content or ""))
        return lc_messages

    def _convert_response(self, response: BaseMessage) -> RawResponse:
        """Convert LangChain response to a raw response."""
        content = _text(response.content) or None

        function_call: FunctionCall | None = None
        tool_calls = getattr(response, "tool_calls", None) or []
        if tool_calls:
            call = tool_calls[0]
            function_call = FunctionCall(
                name=call["name"], arguments=call["args"]
            )

        usage: Usage | None = None
        metadata = getattr(response, "usage_metadata", None)
        if metadata:
            usage = Usage(
                prompt_tokens=metadata.get("input_tokens", 0),
                completion_tokens=metadata.get("output_tokens", 0),
                total_tokens=metadata.get("total_tokens", 0),
            )

        if content is None and function_call is None:
            raise MalformedResponseError("Completion response malformed")
        return RawResponse(
            content=content, function_call=function_call, usage=usage
        )

    async def achat_completion(
        self,
        messages: Sequence[Message],
        options: ModelRequestOptions | None = None,
    ) -> RawResponse:
        options = options or ModelRequestOptions()
        lc_messages = self._convert_messages(messages)

        runnable: Any = self.model
        if options.functions and self.supports_functions:
            kwargs: dict[str, Any] = {}
            if options.call_function:
                kwargs["tool_choice"] = options.call_function
            runnable = self.model.bind_tools(
                [_tool(f) for f in options.functions], **kwargs
            )

        try:
            if self.settings.stream:
                response: Any = None
                async for chunk in runnable.astream(lc_messages):
                    text = _text(chunk.content)
                    if text and options.on_token is not None:
                        options.on_token(text)
                    response = chunk if response is None else response + chunk
                if response is None:
                    raise MalformedResponseError("Empty response stream")
            else:
                response = await runnable.ainvoke(lc_messages)
        except MalformedResponseError:
            raise
        except Exception as e:
            if getattr(e, "status_code", None) == 401:
                self.logger.error(
                    "Authorization error, is the API key of the provider "
                    "set correctly?"
                )
                raise
            if is_transient_error(e):
                raise TransientProviderError(
                    f"{type(e).__name__}: {e}",
                    getattr(e, "status_code", None),
                ) from e
            raise

        return self._convert_response(response)
