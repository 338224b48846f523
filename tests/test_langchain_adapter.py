"""Test the LangChain completion model"""

# pyright: basic

import logging
import os
import unittest
from unittest import mock
from typing import Any

from langchain_core.language_models.fake_chat_models import (
    GenericFakeChatModel,
)
from langchain_core.messages import AIMessage
from pydantic import BaseModel, Field

from lmstruct.config.config import LanguageModelSettings, Settings
from lmstruct.errors import MalformedResponseError, TransientProviderError
from lmstruct.language_models.base import ModelRequestOptions
from lmstruct.language_models.langchain import (
    LangChainCompletionModel,
    is_transient_error,
)
from lmstruct.language_models.messages import FunctionCall, Message
from lmstruct.language_models.schema import build_function
from lmstruct.completion import RequestOptions, arequest
from lmstruct.utils.logging import LoglistLogger


class ToolFakeChatModel(GenericFakeChatModel):
    """Fake chat model recording the tools bound to it"""

    bound: list[Any] = Field(default_factory=list)

    def bind_tools(self, tools, *, tool_choice=None, **kwargs):
        self.bound.append((tools, tool_choice))
        return self


class FailingChatModel(GenericFakeChatModel):
    """Fake chat model raising an exception"""

    error: Any = None

    def _generate(self, messages, stop=None, run_manager=None, **kwargs):
        raise self.error


class ProviderError(Exception):
    def __init__(self, message, status_code):
        super().__init__(message)
        self.status_code = status_code


class RateLimitError(Exception):
    pass


class Startup(BaseModel):
    name: str
    description: str


SETTINGS = LanguageModelSettings(model="Debug/test")
STREAM_SETTINGS = LanguageModelSettings(model="Debug/test", stream=True)


def tool_message(args):
    return AIMessage(
        content="",
        tool_calls=[{'name': "print", 'args': args, 'id': "call_1"}],
        usage_metadata={
            'input_tokens': 10,
            'output_tokens': 5,
            'total_tokens': 15,
        },
    )


class TestTransientErrors(unittest.TestCase):

    def test_classification(self):
        self.assertTrue(is_transient_error(ProviderError("busy", 429)))
        self.assertTrue(is_transient_error(ProviderError("down", 503)))
        self.assertFalse(is_transient_error(ProviderError("bad", 400)))
        self.assertTrue(is_transient_error(TimeoutError()))
        self.assertTrue(is_transient_error(ConnectionError()))
        self.assertTrue(is_transient_error(RateLimitError()))
        self.assertFalse(is_transient_error(ValueError()))


class TestLangChainCompletionModel(unittest.IsolatedAsyncioTestCase):

    async def test_text(self):
        fake = ToolFakeChatModel(messages=iter(["Hello there"]))
        model = LangChainCompletionModel(SETTINGS, fake)
        response = await model.achat_completion(
            [Message(role='user', content="Hi")]
        )
        self.assertEqual(response.content, "Hello there")
        self.assertIsNone(response.function_call)
        self.assertEqual(fake.bound, [])

    async def test_function_call(self):
        fake = ToolFakeChatModel(
            messages=iter([tool_message({'name': "Acme"})])
        )
        model = LangChainCompletionModel(SETTINGS, fake)
        function = build_function(Startup)
        response = await model.achat_completion(
            [Message(role='user', content="Hi")],
            ModelRequestOptions(functions=[function], call_function="print"),
        )
        self.assertEqual(
            response.function_call,
            FunctionCall(name="print", arguments={'name': "Acme"}),
        )
        self.assertEqual(response.usage.total_tokens, 15)
        tools, tool_choice = fake.bound[0]
        self.assertEqual(tool_choice, "print")
        self.assertEqual(tools[0]['function']['name'], "print")
        self.assertEqual(
            tools[0]['function']['parameters'], function.parameters
        )

    async def test_no_functions_without_support(self):
        fake = ToolFakeChatModel(messages=iter(["{}"]))
        settings = LanguageModelSettings(
            model="Debug/test", function_calling=False
        )
        model = LangChainCompletionModel(settings, fake)
        await model.achat_completion(
            [Message(role='user', content="Hi")],
            ModelRequestOptions(functions=[build_function(Startup)]),
        )
        self.assertEqual(fake.bound, [])

    async def test_malformed(self):
        fake = ToolFakeChatModel(messages=iter([AIMessage(content="")]))
        model = LangChainCompletionModel(SETTINGS, fake)
        with self.assertRaises(MalformedResponseError):
            await model.achat_completion([Message(role='user', content="Hi")])

    async def test_stream(self):
        tokens = []
        fake = ToolFakeChatModel(messages=iter(["Hello brave new world"]))
        model = LangChainCompletionModel(STREAM_SETTINGS, fake)
        response = await model.achat_completion(
            [Message(role='user', content="Hi")],
            ModelRequestOptions(on_token=tokens.append),
        )
        self.assertEqual(response.content, "Hello brave new world")
        self.assertGreater(len(tokens), 1)
        self.assertEqual("".join(tokens), "Hello brave new world")

    async def test_transient_error(self):
        error = ProviderError("rate limited", 429)
        fake = FailingChatModel(messages=iter([]), error=error)
        model = LangChainCompletionModel(SETTINGS, fake)
        with self.assertRaises(TransientProviderError) as ctx:
            await model.achat_completion([Message(role='user', content="Hi")])
        self.assertEqual(ctx.exception.status_code, 429)
        self.assertIs(ctx.exception.__cause__, error)

    async def test_fatal_error(self):
        fake = FailingChatModel(
            messages=iter([]), error=ProviderError("bad request", 400)
        )
        model = LangChainCompletionModel(SETTINGS, fake)
        with self.assertRaises(ProviderError):
            await model.achat_completion([Message(role='user', content="Hi")])

    async def test_authorization_error(self):
        logger = LoglistLogger()
        fake = FailingChatModel(
            messages=iter([]), error=ProviderError("unauthorized", 401)
        )
        model = LangChainCompletionModel(SETTINGS, fake, logger=logger)
        with self.assertRaises(ProviderError):
            await model.achat_completion([Message(role='user', content="Hi")])
        self.assertEqual(logger.count_logs(logging.ERROR), 1)

    async def test_text_completion(self):
        fake = ToolFakeChatModel(messages=iter(["Fine"]))
        model = LangChainCompletionModel(SETTINGS, fake)
        response = await model.atext_completion(
            "How are you?", system_message="Be brief"
        )
        self.assertEqual(response.content, "Fine")
        self.assertEqual(response.to_message().role, 'assistant')

    def test_convert_messages(self):
        model = LangChainCompletionModel(SETTINGS, ToolFakeChatModel(
            messages=iter([])
        ))
        converted = model._convert_messages(
            [
                Message(role='system', content="Be brief"),
                Message(role='user', content="Hi"),
                Message(
                    role='assistant',
                    function_call=FunctionCall(
                        name="print", arguments={'a': 1}
                    ),
                ),
            ]
        )
        self.assertEqual(
            [m.type for m in converted], ["system", "human", "ai"]
        )
        self.assertEqual(converted[2].content, '{"a": 1}')


class TestFromSettings(unittest.TestCase):

    def test_encoding_from_settings(self):
        sets = Settings(
            model={'model': "Debug/encoding"},
            request={'encoding': "o200k_base"},
        )
        model = LangChainCompletionModel.from_settings(sets)
        self.assertEqual(model.token_estimator.encoding_name, "o200k_base")
        self.assertEqual(model.settings, sets.model)

    def test_encoding_from_environment(self):
        with mock.patch.dict(
            os.environ,
            {
                "LMSTRUCT_MODEL__MODEL": "Debug/environment",
                "LMSTRUCT_REQUEST__ENCODING": "o200k_base",
            },
        ):
            model = LangChainCompletionModel.from_settings()
        self.assertEqual(model.token_estimator.encoding_name, "o200k_base")
        self.assertEqual(model.settings.get_model_source(), "Debug")


class TestStructuredRequest(unittest.IsolatedAsyncioTestCase):

    async def test_request_with_tool_call(self):
        fake = ToolFakeChatModel(
            messages=iter(
                [tool_message({'name': "Acme", 'description': "Rockets"})]
            )
        )
        model = LangChainCompletionModel(SETTINGS, fake)
        response = await arequest(
            model, "Found a startup", RequestOptions(schema=Startup)
        )
        self.assertEqual(
            response.data, Startup(name="Acme", description="Rockets")
        )

    async def test_request_debug_model(self):
        settings = LanguageModelSettings(
            model="Debug/json",
            function_calling=False,
            provider_params={
                'message': 'Here: {"name": "Acme", "description": "Rockets",}'
            },
        )
        model = LangChainCompletionModel(settings)
        response = await arequest(
            model, "Found a startup", RequestOptions(schema=Startup)
        )
        self.assertEqual(response.data.name, "Acme")


if __name__ == "__main__":
    unittest.main()
