"""Field names and defaults shared by the indexing and retrieval paths."""

DENSE_FIELD = "vector"
"""Vector column holding the L2-normalized dense embedding."""

LEXICAL_FIELD = "lexical_vector"
"""Vector column holding the hashed lexical vector (schema v2 only)."""

FOLDER_FIELD = "folder_id"
"""Payload field the folder allow-list filters on."""

FILE_PATH_FIELD = "file_path"
"""Payload field used to replace or remove a single file's rows."""

SENTINEL_ID = "__schema__"
"""Id of the bootstrap row that forces schema inference on creation.

It is deleted immediately after the collection is created and never
persists.
"""

SCHEMA_VERSION_DENSE = 1
SCHEMA_VERSION_HYBRID = 2

DEFAULT_TOP_K = 10
DEFAULT_MIN_SCORE = 0.01
"""Default minimum score for search results.

Dense candidates are fetched with ``min(min_score, DEFAULT_MIN_SCORE)`` in
hybrid mode so that weak-but-literal matches still reach fusion.
"""
