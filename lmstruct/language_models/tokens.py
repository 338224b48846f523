"""
Estimate of the token cost of a prompt.

The estimate follows the chat format of the OpenAI models: each message
is framed by a few tokens, the reply is primed with a few tokens more,
and function descriptors are serialized into the prompt. It is used to
avoid sending a request that cannot fit the context window of the model.

The encoder is external (tiktoken by default). Any object with an
`encode(text) -> list` method may be used instead.

Example:
    ```python
    from lmstruct.language_models.tokens import TokenEstimator

    estimator = TokenEstimator()
    ntokens = estimator.estimate(["You are a helpful assistant",
                                  "Why is the sky blue?"])
    ```
"""

import json
from collections.abc import Sequence
from functools import lru_cache
from typing import Any, Protocol

from lmstruct.config.config import DEFAULT_ENCODING
from .messages import FunctionDescriptor

# every message follows <im_start>{role/name}\n{content}<im_end>\n
MESSAGE_OVERHEAD = 5
# every reply is primed with <im_start>assistant\n
REPLY_PRIMING = 2
FUNCTION_OVERHEAD = 5
# estimate of the tokens needed to prime the functions
FUNCTION_PRIMING = 20


class Encoder(Protocol):
    def encode(self, text: str) -> Sequence[Any]: ...


@lru_cache(maxsize=None)
def get_encoder(encoding_name: str = DEFAULT_ENCODING) -> Encoder:
    """Load a tiktoken encoding. Encodings are loaded once and shared."""
    import tiktoken

    return tiktoken.get_encoding(encoding_name)


class TokenEstimator:
    """Estimates the tokens taken up by messages and functions."""

    def __init__(
        self,
        encoder: Encoder | None = None,
        encoding_name: str = DEFAULT_ENCODING,
    ):
        self._encoder = encoder
        self.encoding_name = encoding_name

    @property
    def encoder(self) -> Encoder:
        if self._encoder is None:
            self._encoder = get_encoder(self.encoding_name)
        return self._encoder

    def count(self, text: str) -> int:
        return len(self.encoder.encode(text))

    def estimate(
        self,
        texts: Sequence[str],
        functions: Sequence[FunctionDescriptor] | None = None,
    ) -> int:
        """
        Estimate the tokens of a prompt.

        Args:
            texts: the content of the messages, in order
            functions: the function descriptors sent with the prompt

        Returns:
            the estimated number of tokens
        """
        ntokens = 0
        for text in texts:
            ntokens += MESSAGE_OVERHEAD + self.count(text)
        ntokens += REPLY_PRIMING

        if functions:
            for func in functions:
                ntokens += FUNCTION_OVERHEAD
                ntokens += self.count(
                    json.dumps(func.model_dump(), separators=(',', ':'))
                )
            ntokens += FUNCTION_PRIMING

        return ntokens
