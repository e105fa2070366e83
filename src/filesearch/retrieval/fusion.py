"""Rank fusion and diversification over ranked hit lists.

- Reciprocal Rank Fusion: ``score(id) = sum(weight / (k + rank))`` over the
  lists containing ``id``, ranks 0-indexed. Absence from a list adds nothing.
- Maximal Marginal Relevance: greedy selection trading relevance against
  similarity to what has already been selected.

Ties on equal fused scores keep first-encounter order: ids are visited list
by list (dense before lexical) and the sort is stable.
"""

import logging
from collections.abc import Mapping, Sequence

import numpy as np

from filesearch.exceptions import FusionInvariantError
from filesearch.retrieval.types import RankedHit

logger = logging.getLogger(__name__)

RRF_K = 30
"""Default smoothing constant; lower values favour top-ranked items more."""

DENSE_WEIGHT = 1.5
LEXICAL_WEIGHT = 0.2

MMR_LAMBDA = 0.7
"""Default MMR trade-off; 1.0 is pure relevance, 0.0 pure diversity."""


def rrf_fusion(
    ranked_lists: Sequence[Sequence[str]],
    weights: Sequence[float],
    k: int = RRF_K,
) -> dict[str, float]:
    """Fuse ranked id lists with weighted Reciprocal Rank Fusion.

    Args:
        ranked_lists: Id lists, each ordered best first.
        weights: One weight per list.
        k: Smoothing constant, must be positive.

    Returns:
        Mapping of id to accumulated score, in first-encounter order.

    Raises:
        ValueError: If the number of weights does not match the lists or k < 1.
    """
    if len(ranked_lists) != len(weights):
        raise ValueError(f"Expected {len(ranked_lists)} weights, got {len(weights)}")
    if k < 1:
        raise ValueError(f"RRF k must be positive, got {k}")

    scores: dict[str, float] = {}
    for ids, weight in zip(ranked_lists, weights, strict=True):
        for rank, hit_id in enumerate(ids):
            scores[hit_id] = scores.get(hit_id, 0.0) + weight / (k + rank)
    return scores


def fuse_dense_lexical(
    dense: Sequence[RankedHit],
    lexical: Sequence[RankedHit],
    k: int = RRF_K,
    dense_weight: float = DENSE_WEIGHT,
    lexical_weight: float = LEXICAL_WEIGHT,
) -> dict[str, float]:
    """Fuse a dense and a lexical hit list by rank."""
    return rrf_fusion(
        [[hit.id for hit in dense], [hit.id for hit in lexical]],
        [dense_weight, lexical_weight],
        k=k,
    )


def sort_by_fused_score(
    fused: Mapping[str, float],
    hits: Mapping[str, RankedHit],
    top_k: int,
) -> list[RankedHit]:
    """Resolve the top fused ids to hits carrying the fused score.

    Args:
        fused: Id to fused score.
        hits: Id to a previously seen hit, for provenance.
        top_k: Maximum number of hits to return.

    Returns:
        Hits sorted by descending fused score.

    Raises:
        FusionInvariantError: If a selected id has no hit.
    """
    ranked = sorted(fused.items(), key=lambda item: item[1], reverse=True)[:top_k]
    results = []
    for hit_id, score in ranked:
        hit = hits.get(hit_id)
        if hit is None:
            raise FusionInvariantError(hit_id)
        results.append(hit.model_copy(update={"score": score}))
    return results


def first_seen_hits(*hit_lists: Sequence[RankedHit]) -> dict[str, RankedHit]:
    """Map each id to the first hit carrying it across the given lists."""
    hit_map: dict[str, RankedHit] = {}
    for hits in hit_lists:
        for hit in hits:
            hit_map.setdefault(hit.id, hit)
    return hit_map


def merge_hits_by_score(hits: Sequence[RankedHit]) -> list[RankedHit]:
    """Deduplicate hits by id keeping the highest score, sorted descending."""
    merged: dict[str, RankedHit] = {}
    for hit in hits:
        existing = merged.get(hit.id)
        if existing is None or hit.score > existing.score:
            merged[hit.id] = hit
    return sorted(merged.values(), key=lambda h: h.score, reverse=True)


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Cosine similarity, 0.0 when the lengths differ."""
    if len(a) != len(b):
        return 0.0
    va = np.asarray(a, dtype=np.float64)
    vb = np.asarray(b, dtype=np.float64)
    return float(np.dot(va, vb) / (np.linalg.norm(va) * np.linalg.norm(vb) + 1e-8))


def mmr_diversify(
    candidates: Sequence[RankedHit],
    embeddings: Mapping[str, Sequence[float]],
    top_k: int,
    lambda_: float = MMR_LAMBDA,
) -> list[RankedHit]:
    """Select up to ``top_k`` hits by Maximal Marginal Relevance.

    Relevance is each candidate's score divided by the top score, so it lies
    in [0, 1] like cosine similarity. A candidate without an embedding has a
    similarity term of 0.

    Args:
        candidates: Hits sorted by descending relevance.
        embeddings: Id to dense embedding.
        top_k: Maximum number of hits to select.
        lambda_: Relevance/diversity trade-off in [0, 1].

    Returns:
        Selected hits in selection order; the first is always the top candidate.
    """
    if not candidates or top_k <= 0:
        return []

    max_score = max(hit.score for hit in candidates)
    scale = max_score if max_score > 0 else 1.0

    remaining = list(candidates)
    selected = [remaining.pop(0)]

    while remaining and len(selected) < top_k:
        best_index = 0
        best_value = float("-inf")
        for index, hit in enumerate(remaining):
            relevance = hit.score / scale
            embedding = embeddings.get(hit.id)
            max_similarity = 0.0
            if embedding is not None:
                for chosen in selected:
                    chosen_embedding = embeddings.get(chosen.id)
                    if chosen_embedding is not None:
                        max_similarity = max(
                            max_similarity, cosine_similarity(embedding, chosen_embedding)
                        )
            value = lambda_ * relevance - (1 - lambda_) * max_similarity
            if value > best_value:
                best_value = value
                best_index = index
        selected.append(remaining.pop(best_index))

    logger.debug(f"MMR selected {len(selected)} of {len(candidates)} candidates")
    return selected
