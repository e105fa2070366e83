"""Exception hierarchy for the file search package.

Routine retrieval never raises; these are reserved for invariant
violations and for write-path failures the caller must retry.
"""


class FileSearchError(Exception):
    """Base class for all file search errors."""


class FusionInvariantError(FileSearchError):
    """A fused id has no matching hit record."""

    def __init__(self, hit_id: str) -> None:
        super().__init__(f"Missing hit for fused id: {hit_id}")
        self.hit_id = hit_id


class CollectionNotFoundError(FileSearchError):
    """A collection handle was requested for a collection that does not exist."""

    def __init__(self, collection_name: str) -> None:
        super().__init__(f"Collection '{collection_name}' does not exist")
        self.collection_name = collection_name


class SchemaInferenceError(FileSearchError):
    """The engine was asked to create a collection it cannot infer a schema for."""


class IndexingError(FileSearchError):
    """Writing a file's chunks failed; the whole file should be re-indexed."""

    def __init__(self, file_path: str, reason: str) -> None:
        super().__init__(f"Failed to index '{file_path}': {reason}")
        self.file_path = file_path
        self.reason = reason
