"""Character-window chunking for files indexed without token chunking."""

import math
from dataclasses import dataclass

from filesearch.chunking.lines import build_line_start_index, find_line_number


@dataclass(frozen=True)
class DocumentChunk:
    """A character window of a source file."""

    index: int
    text: str
    token_count: int
    start_line: int
    end_line: int


def estimate_chunk_count(text_length: int, max_characters: int, overlap_characters: int) -> int:
    """Number of windows a text of ``text_length`` characters splits into."""
    if text_length <= max_characters:
        return 1
    stride = max(max_characters - overlap_characters, 1)
    return math.ceil((text_length - max_characters) / stride) + 1


def chunk_text(
    text: str,
    max_characters: int = 1500,
    overlap_characters: int = 200,
    max_chunks: int = 0,
) -> list[DocumentChunk]:
    """Split text into overlapping character windows.

    Windows are shortened to end at the last line break or sentence end when
    one exists past their midpoint. When ``max_chunks`` is positive the window
    is widened so the estimated chunk count stays within it.

    Args:
        text: Source text.
        max_characters: Window size in characters.
        overlap_characters: Characters shared by consecutive windows.
        max_chunks: Upper bound on the number of chunks (0 for none).

    Returns:
        Chunks in order, with a ~4 characters per token estimate.
    """
    trimmed = text.strip()
    if not trimmed:
        return []

    max_characters = max(max_characters, 1)
    overlap_characters = max(overlap_characters, 0)

    if max_chunks > 0:
        estimated = estimate_chunk_count(len(trimmed), max_characters, overlap_characters)
        if estimated > max_chunks:
            min_window = math.ceil(
                (len(trimmed) + (max_chunks - 1) * overlap_characters) / max_chunks
            )
            max_characters = max(max_characters, min_window)

    if overlap_characters >= max_characters:
        overlap_characters = max_characters // 4

    # Line numbers refer to the untrimmed text.
    line_starts = build_line_start_index(text)
    base = len(text) - len(text.lstrip())
    chunks: list[DocumentChunk] = []
    position = 0

    while position < len(trimmed):
        slice_end = min(position + max_characters, len(trimmed))
        window = trimmed[position:slice_end]

        if slice_end < len(trimmed):
            cutoff = max(window.rfind("\n"), window.rfind(". "))
            if cutoff > max_characters * 0.5:
                window = window[: cutoff + 1]
                slice_end = position + cutoff + 1

        normalized = window.strip()
        if normalized:
            leading = len(window) - len(window.lstrip())
            start_char = base + position + leading
            end_char = start_char + len(normalized) - 1
            chunks.append(
                DocumentChunk(
                    index=len(chunks),
                    text=normalized,
                    token_count=round(len(normalized) / 4),
                    start_line=find_line_number(line_starts, start_char),
                    end_line=find_line_number(line_starts, end_char),
                )
            )

        if slice_end >= len(trimmed):
            break

        position = max(slice_end - overlap_characters, position + 1)

    return chunks
