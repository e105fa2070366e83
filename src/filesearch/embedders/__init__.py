"""Embedders: dense (sentence-transformers) and lexical (hashed tokens)."""

from filesearch.embedders.base import BaseEmbedder, DenseEmbedder, normalize_embedding
from filesearch.embedders.lexical import (
    LEX_DIM,
    STOP_WORDS,
    LexicalEncoder,
    generate_lexical_vector,
    get_lexical_encoder,
    lexical_similarity,
    tokenize_for_lex,
)
from filesearch.embedders.text import TextEmbedder

__all__ = [
    "BaseEmbedder",
    "DenseEmbedder",
    "LEX_DIM",
    "LexicalEncoder",
    "STOP_WORDS",
    "TextEmbedder",
    "generate_lexical_vector",
    "get_lexical_encoder",
    "lexical_similarity",
    "normalize_embedding",
    "tokenize_for_lex",
]
