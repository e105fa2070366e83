"""Tests for rank fusion and MMR diversification."""

import pytest

from filesearch.exceptions import FusionInvariantError
from filesearch.retrieval.fusion import (
    cosine_similarity,
    first_seen_hits,
    fuse_dense_lexical,
    merge_hits_by_score,
    mmr_diversify,
    rrf_fusion,
    sort_by_fused_score,
)
from filesearch.retrieval.types import RankedHit


def hits(*ids: str, score: float = 1.0) -> list[RankedHit]:
    return [RankedHit(id=hit_id, score=score) for hit_id in ids]


class TestRRFFusion:
    """Tests for rrf_fusion."""

    def test_disjoint_lists(self) -> None:
        """Test that disjoint lists yield one entry per id scored by rank."""
        fused = rrf_fusion([["a", "b"], ["c", "d", "e"]], [1.5, 0.2], k=30)

        assert len(fused) == 5
        assert fused["a"] == pytest.approx(1.5 / 30)
        assert fused["b"] == pytest.approx(1.5 / 31)
        assert fused["c"] == pytest.approx(0.2 / 30)
        assert fused["e"] == pytest.approx(0.2 / 32)

    def test_overlap_sums_contributions(self) -> None:
        """Test that an id in both lists outscores either contribution alone."""
        fused = rrf_fusion([["a", "b"], ["b", "c"]], [1.0, 1.0], k=10)

        assert fused["b"] == pytest.approx(1 / 11 + 1 / 10)
        assert fused["b"] > fused["a"]
        assert fused["b"] > fused["c"]

    def test_absence_contributes_nothing(self) -> None:
        """Test that an id missing from a list gets no score from it."""
        fused = rrf_fusion([["a"], []], [1.0, 5.0], k=1)
        assert fused == {"a": pytest.approx(1.0)}

    def test_first_encounter_order(self) -> None:
        """Test that ids are recorded dense-first in rank order."""
        fused = rrf_fusion([["x", "y"], ["z", "x"]], [1.0, 1.0])
        assert list(fused) == ["x", "y", "z"]

    def test_weight_mismatch(self) -> None:
        """Test that weights must pair with lists."""
        with pytest.raises(ValueError, match="Expected 2 weights"):
            rrf_fusion([["a"], ["b"]], [1.0])

    def test_k_must_be_positive(self) -> None:
        """Test that k < 1 is rejected."""
        with pytest.raises(ValueError, match="positive"):
            rrf_fusion([["a"]], [1.0], k=0)

    def test_fuse_dense_lexical_defaults(self) -> None:
        """Test the dense/lexical wrapper and its default weights."""
        fused = fuse_dense_lexical(hits("a"), hits("b"))
        assert fused["a"] == pytest.approx(1.5 / 30)
        assert fused["b"] == pytest.approx(0.2 / 30)


class TestSortByFusedScore:
    """Tests for sort_by_fused_score."""

    def test_sorted_and_truncated(self) -> None:
        """Test that hits carry fused scores in descending order."""
        hit_map = first_seen_hits(hits("a", "b", "c", score=0.9))
        result = sort_by_fused_score({"a": 0.1, "b": 0.3, "c": 0.2}, hit_map, top_k=2)

        assert [h.id for h in result] == ["b", "c"]
        assert [h.score for h in result] == [0.3, 0.2]

    def test_ties_keep_encounter_order(self) -> None:
        """Test that equal scores keep the fused insertion order."""
        hit_map = first_seen_hits(hits("a", "b", "c"))
        result = sort_by_fused_score({"c": 0.5, "a": 0.5, "b": 0.5}, hit_map, top_k=3)
        assert [h.id for h in result] == ["c", "a", "b"]

    def test_unresolved_id_raises(self) -> None:
        """Test that a fused id without a hit is an invariant violation."""
        with pytest.raises(FusionInvariantError) as exc_info:
            sort_by_fused_score({"ghost": 1.0}, {}, top_k=1)
        assert exc_info.value.hit_id == "ghost"

    def test_input_hits_untouched(self) -> None:
        """Test that fused scores are applied to copies."""
        original = RankedHit(id="a", score=0.9, text="body")
        result = sort_by_fused_score({"a": 0.05}, {"a": original}, top_k=1)

        assert original.score == 0.9
        assert result[0].text == "body"


class TestFirstSeenHits:
    """Tests for first_seen_hits."""

    def test_first_list_wins(self) -> None:
        """Test that the earliest list provides the hit for shared ids."""
        dense = [RankedHit(id="a", score=0.8, text="dense")]
        lexical = [RankedHit(id="a", score=0.4, text="lexical")]
        assert first_seen_hits(dense, lexical)["a"].text == "dense"


class TestMergeHitsByScore:
    """Tests for merge_hits_by_score."""

    def test_keeps_best_score(self) -> None:
        """Test deduplication by id keeping the max score."""
        merged = merge_hits_by_score(
            [
                RankedHit(id="a", score=0.2),
                RankedHit(id="b", score=0.5),
                RankedHit(id="a", score=0.7),
            ]
        )
        assert [(h.id, h.score) for h in merged] == [("a", 0.7), ("b", 0.5)]


class TestMMR:
    """Tests for mmr_diversify."""

    def test_empty(self) -> None:
        """Test that no candidates or top_k 0 selects nothing."""
        assert mmr_diversify([], {}, 3) == []
        assert mmr_diversify(hits("a"), {}, 0) == []

    def test_first_pick_is_top_candidate(self) -> None:
        """Test that selection always starts with the most relevant hit."""
        candidates = [RankedHit(id="a", score=0.9), RankedHit(id="b", score=0.8)]
        result = mmr_diversify(candidates, {"a": [1.0, 0.0], "b": [0.0, 1.0]}, 2, lambda_=0.0)
        assert result[0].id == "a"

    def test_prefers_diverse_candidate(self) -> None:
        """Test that a near-duplicate is passed over for a dissimilar hit."""
        candidates = [
            RankedHit(id="a", score=1.0),
            RankedHit(id="a-copy", score=0.95),
            RankedHit(id="other", score=0.8),
        ]
        embeddings = {"a": [1.0, 0.0], "a-copy": [0.99, 0.01], "other": [0.0, 1.0]}

        result = mmr_diversify(candidates, embeddings, 2, lambda_=0.5)
        assert [h.id for h in result] == ["a", "other"]

    def test_pure_relevance(self) -> None:
        """Test that lambda 1.0 keeps relevance order."""
        candidates = [
            RankedHit(id="a", score=1.0),
            RankedHit(id="a-copy", score=0.95),
            RankedHit(id="other", score=0.8),
        ]
        embeddings = {"a": [1.0, 0.0], "a-copy": [1.0, 0.0], "other": [0.0, 1.0]}

        result = mmr_diversify(candidates, embeddings, 3, lambda_=1.0)
        assert [h.id for h in result] == ["a", "a-copy", "other"]

    def test_missing_embedding_has_no_similarity_penalty(self) -> None:
        """Test that a candidate without an embedding competes on relevance alone."""
        candidates = [
            RankedHit(id="a", score=1.0),
            RankedHit(id="dup", score=0.9),
            RankedHit(id="unknown", score=0.6),
        ]
        embeddings = {"a": [1.0, 0.0], "dup": [1.0, 0.0]}

        result = mmr_diversify(candidates, embeddings, 2, lambda_=0.5)
        assert [h.id for h in result] == ["a", "unknown"]

    def test_returns_at_most_top_k(self) -> None:
        """Test the output size bound."""
        result = mmr_diversify(hits("a", "b", "c", "d"), {}, 2)
        assert len(result) == 2


class TestCosineSimilarity:
    """Tests for cosine_similarity."""

    def test_values(self) -> None:
        """Test identical, orthogonal and mismatched vectors."""
        assert cosine_similarity([1.0, 2.0], [2.0, 4.0]) == pytest.approx(1.0)
        assert cosine_similarity([1.0, 0.0], [0.0, 1.0]) == pytest.approx(0.0)
        assert cosine_similarity([1.0], [1.0, 0.0]) == 0.0
