# pyright: reportUnusedImport=false
# flake8: noqa

from .text_splitter import (
    RecursiveTextSplitter,
    NullTextSplitter,
    DEFAULT_SEPARATORS,
)
