"""
Exceptions raised by the structured completion pipeline.

All exceptions derive from CompletionError, so that callers may catch
the whole family at once. The subclasses distinguish the failure modes
that callers usually want to handle differently:

    - ConfigurationError: the request cannot be built (for example,
        the schema root is not an object). Never retried.
    - TransientProviderError: rate limits, timeouts, server errors.
        Retried with exponential backoff.
    - TokenError: the prompt does not fit the context window. Carries
        the number of tokens in excess, so that the prompt may be
        sliced by the caller (or automatically, see auto_slice).
    - ValidationFailedError: the model did not produce output
        conforming to the schema, even after healing.
    - MalformedResponseError: the provider returned neither text nor
        a function call.
"""

from typing import Any


class CompletionError(Exception):
    """Base class of all errors raised by the package."""


class ConfigurationError(CompletionError):
    """The request or the schema is invalid."""


class TransientProviderError(CompletionError):
    """A provider error that may go away if the request is resent."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class TokenError(CompletionError):
    """The prompt exceeds the token budget of the model."""

    def __init__(self, message: str, overflow_tokens: int):
        super().__init__(message)
        self.overflow_tokens = overflow_tokens


class ValidationFailedError(CompletionError):
    """
    The structured output could not be obtained.

    Attributes:
        issues: the validation issues of the last attempt (empty if
            the model did not produce a structured payload at all)
        response: the last response received from the model, if any
    """

    def __init__(
        self,
        message: str,
        issues: list[Any] | None = None,
        response: Any = None,
    ):
        super().__init__(message)
        self.issues = issues or []
        self.response = response


class MalformedResponseError(CompletionError):
    """The provider response has neither content nor function call."""
