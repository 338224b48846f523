# pyright: reportUnusedImport=false
# flake8: noqa

from .errors import (
    CompletionError,
    ConfigurationError,
    TransientProviderError,
    TokenError,
    ValidationFailedError,
    MalformedResponseError,
)
from .completion import (
    RequestOptions,
    Response,
    request,
    arequest,
    chat,
    achat,
    respond,
    arespond,
)
