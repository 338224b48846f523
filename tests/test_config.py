"""Test configuration module"""

# pyright: basic

import os
import tempfile
import unittest
from pathlib import Path
from unittest import mock

from pydantic import ValidationError

from lmstruct.config.config import (
    Settings,
    LanguageModelSettings,
    RequestSettings,
    serialize_settings,
    export_settings,
    load_settings,
    create_default_config_file,
)
from lmstruct.completion import RequestOptions


class TestLanguageModelSettings(unittest.TestCase):

    def test_model_spec(self):
        sets = LanguageModelSettings(model="OpenAI  /gpt-4o ")
        self.assertEqual(sets.get_model_source(), "OpenAI")
        self.assertEqual(sets.get_model_name(), "gpt-4o")

    def test_invalid_source(self):
        with self.assertRaises(ValidationError):
            LanguageModelSettings(model="cohere/latest")

    def test_invalid_spec(self):
        for spec in ("", "gpt-4o", "OpenAI/gpt/4o", "OpenAI/gpt\n4o"):
            with self.assertRaises(ValidationError):
                LanguageModelSettings(model=spec)

    def test_invalid_temperature(self):
        with self.assertRaises(ValidationError):
            LanguageModelSettings(model="OpenAI/gpt-4o", temperature=3.0)

    def test_frozen(self):
        sets = LanguageModelSettings(model="OpenAI/gpt-4o")
        with self.assertRaises(ValidationError):
            sets.model = "Gemini/gemini-latest"

    def test_hashability(self):
        settings1 = LanguageModelSettings(
            model="OpenAI/gpt-4o-mini", provider_params={"top_p": 0.9}
        )
        settings2 = LanguageModelSettings(
            model="OpenAI/gpt-4o-mini", provider_params={"top_p": 0.9}
        )
        settings3 = LanguageModelSettings(
            model="OpenAI/gpt-4o-mini", provider_params={"top_p": 0.8}
        )
        self.assertEqual(hash(settings1), hash(settings2))
        self.assertNotEqual(hash(settings1), hash(settings3))

    def test_defaults(self):
        sets = LanguageModelSettings(model="Mistral/mistral-small-latest")
        self.assertIsNone(sets.context_size)
        self.assertTrue(sets.function_calling)
        self.assertFalse(sets.stream)


class TestRequestSettings(unittest.TestCase):

    def test_defaults(self):
        sets = RequestSettings()
        self.assertEqual(sets.retries, 3)
        self.assertEqual(sets.retry_interval, 30.0)
        self.assertEqual(sets.timeout, 60.0)
        self.assertEqual(sets.minimum_response_tokens, 200)
        self.assertTrue(sets.auto_heal)
        self.assertFalse(sets.auto_slice)

    def test_invalid(self):
        with self.assertRaises(ValidationError):
            RequestSettings(retries=-1)
        with self.assertRaises(ValidationError):
            RequestSettings(timeout=0)


class TestSettings(unittest.TestCase):

    def setUp(self):
        self.tempdir = tempfile.TemporaryDirectory()
        self.path = Path(self.tempdir.name) / "config.toml"

    def tearDown(self):
        self.tempdir.cleanup()

    def test_serialize(self):
        conf = serialize_settings(Settings())
        self.assertIn("[model]", conf)
        self.assertIn("[request]", conf)

    def test_given(self):
        sets = Settings(model={'model': "Anthropic/claude-sonnet-4-0"})
        self.assertEqual(sets.model.get_model_source(), "Anthropic")
        # unmentioned section still set
        self.assertEqual(sets.request.retries, RequestSettings().retries)

    def test_readwrite(self):
        sets = Settings(
            model={'model': "Gemini/gemini-latest", 'context_size': 1000},
            request={'retries': 5, 'auto_slice': True},
        )
        export_settings(sets, self.path)
        loaded = load_settings(self.path)
        self.assertEqual(loaded.model.get_model_source(), "Gemini")
        self.assertEqual(loaded.model.context_size, 1000)
        self.assertEqual(loaded.request.retries, 5)
        self.assertTrue(loaded.request.auto_slice)
        self.assertIsNone(loaded.model.max_tokens)

    def test_load_missing(self):
        with self.assertRaises(FileNotFoundError):
            load_settings(self.path)

    def test_load_invalid(self):
        self.path.write_text('[model]\nmodel = "cohere/latest"\n')
        with self.assertRaises(ValueError):
            load_settings(self.path)

    def test_default_config(self):
        create_default_config_file(self.path)
        default_sets = load_settings(self.path)
        export_settings(
            Settings(model={'model': "Mistral/mistral-large-latest"}),
            self.path,
        )
        create_default_config_file(self.path)
        sets = load_settings(self.path)
        self.assertEqual(sets.model, default_sets.model)
        self.assertEqual(sets.request, default_sets.request)

    def test_environment(self):
        with mock.patch.dict(
            os.environ, {"LMSTRUCT_REQUEST__RETRIES": "7"}
        ):
            self.path.write_text('[model]\nmodel = "OpenAI/gpt-4o"\n')
            sets = load_settings(self.path)
        self.assertEqual(sets.request.retries, 7)
        self.assertEqual(sets.model.get_model_name(), "gpt-4o")

    def test_request_options_from_settings(self):
        sets = Settings(request={'retries': 1, 'auto_heal': False})
        options = RequestOptions.from_settings(sets, retry_interval=0.5)
        self.assertEqual(options.retries, 1)
        self.assertFalse(options.auto_heal)
        self.assertEqual(options.retry_interval, 0.5)
        self.assertIsNone(options.schema_)


if __name__ == "__main__":
    unittest.main()
