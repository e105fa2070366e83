"""Reranking of fused search results with a cross-encoder."""

from filesearch.rerankers.base import RerankOutput, RerankScores, UnexpectedShape, parse_scores
from filesearch.rerankers.cross_encoder import CrossEncoderReranker, get_cross_encoder_reranker

__all__ = [
    "CrossEncoderReranker",
    "RerankOutput",
    "RerankScores",
    "UnexpectedShape",
    "get_cross_encoder_reranker",
    "parse_scores",
]
