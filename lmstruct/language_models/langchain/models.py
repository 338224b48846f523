"""
This module creates the Langchain chat model objects wrapping the
message exchange with the provider API. The model objects are created
from a LanguageModelSettings object, given programmatically or loaded
from config.toml, and are memoized.

Examples:

```python
from lmstruct.config.config import LanguageModelSettings, Settings
from lmstruct.language_models.langchain.models import (
    create_model_from_settings,
)

settings = LanguageModelSettings(model="OpenAI/gpt-4o", temperature=0.7)
model = create_model_from_settings(settings)

# Load settings from config.toml.
model = create_model_from_settings(Settings().model)
```

Note:
    Support for new model sources should be added here by extending
    the match ... case statement in _create_model_instance.

    The provider packages (langchain-openai, langchain-anthropic, ...)
    are imported when a model of the corresponding source is created,
    so that only the packages of the models in use must be installed.
"""

from functools import lru_cache
from itertools import count, repeat
from typing import Any

from langchain_core.language_models.chat_models import BaseChatModel

from lmstruct.config.config import LanguageModelSettings, ModelSource


def _create_model_instance(model: LanguageModelSettings) -> BaseChatModel:
    """
    Factory function to create Langchain models while checking
    permissible sources.
    """
    model_source: ModelSource = model.get_model_source()
    model_name: str = model.get_model_name()
    kwargs: dict[str, Any]
    match model_source:
        case "Anthropic":
            try:
                from langchain_anthropic.chat_models import ChatAnthropic
            except ImportError as e:
                raise ImportError(
                    "Anthropic models require the "
                    "'langchain-anthropic' package. "
                    "Install it with: pip install langchain-anthropic"
                ) from e

            kwargs = {
                "model_name": model_name,
                "temperature": model.temperature,
                "max_tokens_to_sample": model.max_tokens or 1024,
                # retries are managed by the completion pipeline
                "max_retries": 0,
            }
            kwargs.update(model.provider_params)
            return ChatAnthropic(**kwargs)

        case "Gemini":
            try:
                from langchain_google_genai import ChatGoogleGenerativeAI
            except ImportError as e:
                raise ImportError(
                    "Gemini models require the "
                    "'langchain-google-genai' package. "
                    "Install it with: pip install langchain-google-genai"
                ) from e

            kwargs = {
                "model": model_name,
                "temperature": model.temperature,
                "max_retries": 0,
            }
            if model.max_tokens is not None:
                kwargs["max_output_tokens"] = model.max_tokens
            kwargs.update(model.provider_params)
            return ChatGoogleGenerativeAI(**kwargs)

        case "Mistral":
            try:
                from langchain_mistralai.chat_models import ChatMistralAI
            except ImportError as e:
                raise ImportError(
                    "Mistral models require the 'langchain-mistralai'"
                    " package. Install it with: pip install "
                    "langchain-mistralai"
                ) from e

            kwargs = {
                "model_name": model_name,
                "temperature": model.temperature,
                "max_retries": 0,
            }
            if model.max_tokens is not None:
                kwargs["max_tokens"] = model.max_tokens
            kwargs.update(model.provider_params)
            return ChatMistralAI(**kwargs)

        case "OpenAI":
            try:
                from langchain_openai.chat_models import ChatOpenAI
            except ImportError as e:
                raise ImportError(
                    "OpenAI models require the 'langchain-openai'"
                    " package. Install it with: pip install "
                    "langchain-openai"
                ) from e

            kwargs = {
                "model": model_name,
                "temperature": model.temperature,
                "max_retries": 0,
                "use_responses_api": False,
                "stream_usage": True,
            }
            if model.max_tokens is not None:
                kwargs["max_tokens"] = model.max_tokens
            kwargs.update(model.provider_params)
            return ChatOpenAI(**kwargs)

        case "Debug":
            from langchain_core.language_models.fake_chat_models import (
                GenericFakeChatModel,
            )

            if "message" in model.provider_params:
                return GenericFakeChatModel(
                    name="Langchain fake messages",
                    messages=repeat(str(model.provider_params["message"])),
                )
            return GenericFakeChatModel(
                name="Langchain fake chat",
                messages=(f"Message {n}" for n in count(1)),
            )

        case _:
            raise ValueError(
                f"Unreachable code reached: invalid source {model_source}"
            )


@lru_cache(maxsize=None)
def _cached_model_instance(settings: LanguageModelSettings) -> BaseChatModel:
    return _create_model_instance(settings)


def create_model_from_settings(
    settings: LanguageModelSettings,
) -> BaseChatModel:
    """
    Create langchain model from a LanguageModelSettings object. The
    model is memoized: equal settings return the same object. Debug
    models are not memoized, since each holds its own message
    sequence.

    Args:
        settings: a LanguageModelSettings object containing model
            configuration.

    Returns:
        a Langchain model object.

    Raises:
        ImportError: if the provider package is not installed
    """
    if settings.get_model_source() == "Debug":
        return _create_model_instance(settings)
    return _cached_model_instance(settings)
