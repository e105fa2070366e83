"""Token-aligned micro-chunking with line provenance.

Text is encoded once, then cut into overlapping windows of ``window_tokens``
tokens advancing by ``stride_tokens``. Each window is decoded back to text
and its character span is mapped to 1-based line numbers so search hits can
be cited as ``path:start-end``.
"""

import logging
from dataclasses import dataclass
from functools import lru_cache
from typing import Protocol

import tiktoken

from filesearch.chunking.lines import build_line_start_index, find_line_number

logger = logging.getLogger(__name__)

DEFAULT_WINDOW_TOKENS = 16
DEFAULT_STRIDE_TOKENS = 8


class Tokenizer(Protocol):
    """Minimal encode/decode interface satisfied by ``tiktoken.Encoding``."""

    def encode(self, text: str) -> list[int]: ...

    def decode(self, tokens: list[int]) -> str: ...


class TiktokenTokenizer:
    """tiktoken encoding that treats special-token text as ordinary text.

    Synced files may legitimately contain strings such as ``<|endoftext|>``,
    which tiktoken rejects by default.
    """

    def __init__(self, encoding: tiktoken.Encoding) -> None:
        self.encoding = encoding

    def encode(self, text: str) -> list[int]:
        return self.encoding.encode(text, disallowed_special=())

    def decode(self, tokens: list[int]) -> str:
        return self.encoding.decode(tokens)


@lru_cache(maxsize=4)
def get_tokenizer(encoding_name: str = "cl100k_base") -> TiktokenTokenizer:
    """Get a cached tiktoken-backed tokenizer."""
    logger.info(f"Loading tiktoken encoding: {encoding_name}")
    return TiktokenTokenizer(tiktoken.get_encoding(encoding_name))


@dataclass(frozen=True)
class MicroChunk:
    """A token window of a source file."""

    index: int
    """Zero-based ordinal of this chunk within the file."""

    text: str
    """Decoded window text."""

    start_line: int
    """1-based line on which the window starts."""

    end_line: int
    """1-based line on which the window ends."""

    token_offset: int
    """Index of the first token of the window."""

    token_count: int
    """Number of tokens in the window (at most the window size)."""


class TokenChunker:
    """Splits text into overlapping token windows.

    Example:
        >>> chunker = TokenChunker(window_tokens=4, stride_tokens=2)
        >>> [c.token_count for c in chunker.chunk("a b c d e f")]
    """

    def __init__(
        self,
        tokenizer: Tokenizer | None = None,
        window_tokens: int = DEFAULT_WINDOW_TOKENS,
        stride_tokens: int = DEFAULT_STRIDE_TOKENS,
    ) -> None:
        if window_tokens < 1:
            raise ValueError(f"window_tokens must be positive, got {window_tokens}")
        if not 1 <= stride_tokens <= window_tokens:
            raise ValueError(
                f"stride_tokens must be within 1..{window_tokens}, got {stride_tokens}"
            )
        self._tokenizer = tokenizer
        self.window_tokens = window_tokens
        self.stride_tokens = stride_tokens

    @property
    def tokenizer(self) -> Tokenizer:
        if self._tokenizer is None:
            self._tokenizer = get_tokenizer()
        return self._tokenizer

    def chunk(self, text: str) -> list[MicroChunk]:
        """Chunk text into token-aligned windows.

        Args:
            text: Source text.

        Returns:
            Chunks in order. Empty or whitespace-only input yields no chunks.
        """
        if not text.strip():
            return []

        tokens = self.tokenizer.encode(text)
        if not tokens:
            return []

        windows = self._windows(len(tokens))
        char_offsets = self._char_offsets(tokens, windows, len(text))
        line_starts = build_line_start_index(text)

        chunks = []
        for index, (start, end) in enumerate(windows):
            chunks.append(
                MicroChunk(
                    index=index,
                    text=self.tokenizer.decode(tokens[start:end]),
                    start_line=find_line_number(line_starts, char_offsets[start]),
                    end_line=find_line_number(
                        line_starts, max(char_offsets[end] - 1, char_offsets[start])
                    ),
                    token_offset=start,
                    token_count=end - start,
                )
            )

        logger.debug(
            f"Chunked {len(tokens)} tokens into {len(chunks)} windows "
            f"(window={self.window_tokens}, stride={self.stride_tokens})"
        )
        return chunks

    def _windows(self, total: int) -> list[tuple[int, int]]:
        windows = []
        start = 0
        while start < total:
            end = min(start + self.window_tokens, total)
            windows.append((start, end))
            if end >= total:
                break
            start += self.stride_tokens
        return windows

    def _char_offsets(
        self, tokens: list[int], windows: list[tuple[int, int]], text_length: int
    ) -> dict[int, int]:
        """Character offset of every window boundary.

        Segments between consecutive boundaries are decoded once each, so the
        whole text is decoded a single time regardless of overlap.
        """
        boundaries = sorted({0, *(b for window in windows for b in window)})
        offsets = {0: 0}
        position = 0
        for prev, cur in zip(boundaries, boundaries[1:]):
            position += len(self.tokenizer.decode(tokens[prev:cur]))
            offsets[cur] = min(position, text_length)
        return offsets


def chunk_by_tokens(
    text: str,
    window_tokens: int = DEFAULT_WINDOW_TOKENS,
    stride_tokens: int = DEFAULT_STRIDE_TOKENS,
    tokenizer: Tokenizer | None = None,
) -> list[MicroChunk]:
    """Convenience wrapper around :class:`TokenChunker`."""
    chunker = TokenChunker(tokenizer, window_tokens=window_tokens, stride_tokens=stride_tokens)
    return chunker.chunk(text)
