"""Validated cross-encoder output.

Cross-encoder libraries return scores in several shapes (a numpy array, a
list of floats, a list of ``{"label", "score"}`` mappings). A model that is
not a cross-encoder at all (e.g. an embedding model) returns something else
entirely. Output is parsed once into either ``RerankScores`` or
``UnexpectedShape`` so callers never duck-type it.
"""

from collections.abc import Mapping
from dataclasses import dataclass
from numbers import Real
from typing import Any

import numpy as np


@dataclass(frozen=True)
class RerankScores:
    """One relevance score per (query, document) pair, in input order."""

    scores: tuple[float, ...]


@dataclass(frozen=True)
class UnexpectedShape:
    """Model output that could not be read as one score per pair.

    Attributes:
        description: Human-readable summary of what was received.
    """

    description: str


RerankOutput = RerankScores | UnexpectedShape


def _as_score(item: Any) -> float | None:
    if isinstance(item, Mapping):
        item = item.get("score")
    if isinstance(item, bool) or not isinstance(item, (Real, np.number)):
        return None
    return float(item)


def parse_scores(output: Any, expected: int) -> RerankOutput:
    """Parse raw model output into scores.

    Args:
        output: Whatever the model's predict call returned.
        expected: Number of (query, document) pairs that were scored.

    Returns:
        ``RerankScores`` when the output holds exactly ``expected`` numeric
        scores (bare or under a ``"score"`` key), ``UnexpectedShape`` otherwise.
    """
    if isinstance(output, np.ndarray):
        if output.ndim != 1:
            return UnexpectedShape(f"array of shape {output.shape}")
        items: list[Any] = output.tolist()
    elif isinstance(output, (list, tuple)):
        items = list(output)
    else:
        return UnexpectedShape(type(output).__name__)

    if len(items) != expected:
        return UnexpectedShape(f"{len(items)} items for {expected} pairs")

    scores = []
    for item in items:
        score = _as_score(item)
        if score is None:
            return UnexpectedShape(f"item of type {type(item).__name__} without a score")
        scores.append(score)
    return RerankScores(tuple(scores))
