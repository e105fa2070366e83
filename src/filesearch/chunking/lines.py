"""Character offset to line number mapping."""

from bisect import bisect_right


def build_line_start_index(text: str) -> list[int]:
    """Return the character offset at which every line of ``text`` starts."""
    line_starts = [0]
    for i, ch in enumerate(text):
        if ch == "\n":
            line_starts.append(i + 1)
    return line_starts


def find_line_number(line_starts: list[int], char_offset: int) -> int:
    """Map a character offset to its 1-based line number by binary search."""
    return max(bisect_right(line_starts, char_offset), 1)
