"""Hybrid semantic + keyword search over an agent's synced files."""

__version__ = "0.2.0"
