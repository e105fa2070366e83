"""Indexing of synced files into agent collections."""

from filesearch.indexing.indexer import FileIndexer, record_id

__all__ = ["FileIndexer", "record_id"]
