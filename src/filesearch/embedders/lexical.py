"""Hashed bag-of-tokens lexical vectors.

Tokens are split on camelCase boundaries and a fixed delimiter set so that
``getUserById`` and ``get_user_by_id`` produce the same token multiset. Each
surviving token increments one of ``LEX_DIM`` buckets chosen by a stable
string hash, and the result is L2-normalized. The same function is used at
index and query time; identical text always yields an identical vector.
"""

import re
from functools import lru_cache

import numpy as np

from filesearch.utils.hashing import djb2_hash

LEX_DIM = 4096

STOP_WORDS = frozenset(
    [
        "the", "a", "an", "is", "are", "was", "were", "be", "been",
        "being", "have", "has", "had", "do", "does", "did", "will",
        "would", "could", "should", "may", "might", "must", "shall",
        "can", "need", "dare", "ought", "used", "to", "of", "in",
        "for", "on", "with", "at", "by", "from", "as", "into",
        "through", "during", "before", "after", "above", "below",
        "between", "under", "again", "further", "then", "once",
        "if", "or", "and", "but", "not", "so", "than", "too",
        "very", "just", "only", "own", "same", "that", "this",
        # code keywords
        "function", "return", "const", "let", "var", "import", "export",
        "default", "class", "interface", "type", "extends",
    ]
)

_CASE_BOUNDARY = re.compile(r"([a-z])([A-Z])")
_DELIMITERS = re.compile(r"[_\-\s./\\:;,(){}\[\]<>\"'`=+*&|!?@#$%^~]+")


def tokenize_for_lex(text: str) -> list[str]:
    """Tokenize text for lexical matching.

    Handles camelCase, snake_case, kebab-case, paths and common operators.
    """
    spaced = _CASE_BOUNDARY.sub(r"\1 \2", text)
    tokens = (token.lower().strip() for token in _DELIMITERS.split(spaced))
    return [token for token in tokens if len(token) > 1 and token not in STOP_WORDS]


class LexicalEncoder:
    """Deterministic hashing encoder producing fixed-width lexical vectors.

    Attributes:
        dimensions: Width of the produced vectors.
    """

    def __init__(self, dimensions: int = LEX_DIM) -> None:
        if dimensions < 1:
            raise ValueError(f"dimensions must be positive, got {dimensions}")
        self.dimensions = dimensions

    def bucket(self, token: str) -> int:
        """Bucket index for a token."""
        return djb2_hash(token) % self.dimensions

    def encode(self, text: str) -> list[float]:
        """Encode text into an L2-normalized hashed token-count vector.

        Returns the all-zero vector when no token survives tokenization.
        """
        vec = np.zeros(self.dimensions, dtype=np.float64)
        tokens = tokenize_for_lex(text)
        if tokens:
            np.add.at(vec, [self.bucket(token) for token in tokens], 1.0)
            norm = np.linalg.norm(vec)
            if norm > 0:
                vec /= norm
        return vec.tolist()

    def encode_batch(self, texts: list[str]) -> list[list[float]]:
        return [self.encode(text) for text in texts]


def lexical_similarity(a: list[float], b: list[float]) -> float:
    """Cosine similarity between two lexical vectors.

    Returns 0.0 when the lengths differ or either vector is all zeros.
    """
    if len(a) != len(b):
        return 0.0
    va = np.asarray(a, dtype=np.float64)
    vb = np.asarray(b, dtype=np.float64)
    denom = float(np.linalg.norm(va) * np.linalg.norm(vb))
    if denom == 0.0:
        return 0.0
    return float(np.dot(va, vb) / denom)


@lru_cache(maxsize=1)
def get_lexical_encoder() -> LexicalEncoder:
    """Get singleton lexical encoder instance.

    Returns:
        Cached LexicalEncoder instance.
    """
    return LexicalEncoder()


def generate_lexical_vector(text: str) -> list[float]:
    """Encode text with the shared encoder."""
    return get_lexical_encoder().encode(text)
