"""Chunking strategies for synced files.

- Token: overlapping token windows with line provenance (default)
- Text: character windows that prefer line or sentence boundaries
"""

from filesearch.chunking.lines import build_line_start_index, find_line_number
from filesearch.chunking.text import DocumentChunk, chunk_text, estimate_chunk_count
from filesearch.chunking.tokens import (
    MicroChunk,
    TiktokenTokenizer,
    TokenChunker,
    Tokenizer,
    chunk_by_tokens,
    get_tokenizer,
)

__all__ = [
    "DocumentChunk",
    "MicroChunk",
    "TiktokenTokenizer",
    "TokenChunker",
    "Tokenizer",
    "build_line_start_index",
    "chunk_by_tokens",
    "chunk_text",
    "estimate_chunk_count",
    "find_line_number",
    "get_tokenizer",
]
