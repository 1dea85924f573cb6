"""File-backed JSON document database with hash indexes."""

__version__ = "0.1.0"

__all__ = ["auxiliary", "hash_index", "documents", "collection", "database"]