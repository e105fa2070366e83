"""Utility modules for the file search package."""

from filesearch.utils.hashing import djb2_hash, java_string_hash
from filesearch.utils.logging import bind_context, clear_context, configure_logging, get_logger

__all__ = [
    # Logging
    "configure_logging",
    "get_logger",
    "bind_context",
    "clear_context",
    # Hashing
    "djb2_hash",
    "java_string_hash",
]
