"""Recursive splitting of text into overlapping chunks.

Text too large to be sent in a single prompt is split into chunks of
at most chunk_size characters. The text is split at the first separator
of a list that occurs in it (by default: paragraphs, lines, sentences,
words), and the pieces still too large are split again with the
following separators, down to single characters. The pieces are then
packed into chunks, each new chunk beginning with up to chunk_overlap
characters taken from the end of the previous one.

Separators remain attached to the preceding piece, and no whitespace
is removed: every chunk is a substring of the text. split_spans gives
the position of the chunks in the text.

Main classes:
    RecursiveTextSplitter: the recursive splitter
    NullTextSplitter: a splitter that does not split

Both are langchain text splitters, and may be used to split langchain
documents.

Example:
    ```python
    from lmstruct.text import RecursiveTextSplitter

    splitter = RecursiveTextSplitter(chunk_size=100, chunk_overlap=10)
    chunks = splitter.split_text(long_text)
    ```
"""

from collections import deque
from collections.abc import Sequence
from typing import Any

from langchain_text_splitters import TextSplitter

DEFAULT_SEPARATORS: tuple[str, ...] = (
    "\n\n",
    "\n",
    ". ",
    "? ",
    "! ",
    " ",
    "",
)

Span = tuple[int, int]


class NullTextSplitter(TextSplitter):
    """A langchain text splitter that does not split"""

    def split_text(self, text: str) -> list[str]:
        return [text]


class RecursiveTextSplitter(TextSplitter):
    """
    Split text recursively on a list of separators.

    Args:
        chunk_size: maximum length of a chunk in characters
        chunk_overlap: maximum number of characters shared by two
            consecutive chunks. Must be smaller than chunk_size
        separators: the separators, in order of preference. The empty
            string splits into single characters

    Raises:
        ValueError: for a chunk size smaller than 1, or an overlap
            that is negative or not smaller than the chunk size
    """

    def __init__(
        self,
        chunk_size: int = 1000,
        chunk_overlap: int = 200,
        separators: Sequence[str] | None = None,
        **kwargs: Any,
    ) -> None:
        if chunk_size < 1:
            raise ValueError(f"Chunk size must be positive, got {chunk_size}")
        if not 0 <= chunk_overlap < chunk_size:
            raise ValueError(
                f"Chunk overlap ({chunk_overlap}) must be non-negative "
                + f"and smaller than the chunk size ({chunk_size})"
            )
        super().__init__(
            chunk_size=chunk_size, chunk_overlap=chunk_overlap, **kwargs
        )
        self.chunk_size = chunk_size
        self.chunk_overlap = chunk_overlap
        self.separators: tuple[str, ...] = tuple(
            DEFAULT_SEPARATORS if separators is None else separators
        )

    def _pieces(self, text: str, start: int, end: int) -> list[Span]:
        return [(k, k + 1) for k in range(start, end)]

    def _fragments(
        self,
        text: str,
        start: int,
        end: int,
        separators: tuple[str, ...],
    ) -> list[Span]:
        """Split text[start:end] into pieces no longer than chunk_size."""
        separator = ""
        remaining: tuple[str, ...] = ()
        for i, sep in enumerate(separators):
            if sep == "" or text.find(sep, start, end) != -1:
                separator = sep
                remaining = separators[i + 1 :]
                break

        if separator == "":
            return self._pieces(text, start, end)

        pieces: list[Span] = []
        pos = start
        while pos < end:
            index = text.find(separator, pos, end)
            if index == -1:
                pieces.append((pos, end))
                break
            pieces.append((pos, index + len(separator)))
            pos = index + len(separator)

        fragments: list[Span] = []
        for s, e in pieces:
            if e - s <= self.chunk_size:
                fragments.append((s, e))
            elif remaining:
                fragments.extend(self._fragments(text, s, e, remaining))
            else:
                fragments.extend(self._pieces(text, s, e))
        return fragments

    def _merge(self, fragments: list[Span]) -> list[Span]:
        """Pack consecutive fragments into overlapping chunks."""
        spans: list[Span] = []
        current: deque[Span] = deque()
        total = 0
        for s, e in fragments:
            length = e - s
            if total + length > self.chunk_size and current:
                spans.append((current[0][0], current[-1][1]))
                # keep the tail of the chunk as overlap
                while total > self.chunk_overlap or (
                    total + length > self.chunk_size and total > 0
                ):
                    ps, pe = current.popleft()
                    total -= pe - ps
            current.append((s, e))
            total += length
        if current:
            spans.append((current[0][0], current[-1][1]))
        return spans

    def split_spans(self, text: str) -> list[Span]:
        """
        The start and end offsets of the chunks of a text.

        Consecutive chunks overlap when the end of a chunk comes after
        the start of the next one.
        """
        if len(text) <= self.chunk_size:
            return [(0, len(text))]
        return self._merge(
            self._fragments(text, 0, len(text), self.separators)
        )

    def split_text(self, text: str) -> list[str]:
        """Split a text into chunks."""
        return [text[s:e] for s, e in self.split_spans(text)]
