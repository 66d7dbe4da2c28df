"""
Storage module for taxexempt.

This module provides the ordered key-value store the registry is built on.

Components:
    - KVStore: SQLite table of BLOB keys, iterated in byte order
    - PrefixStore: A key-prefix namespace inside a KVStore

Why SQLite?
    - Zero configuration (no server needed)
    - ACID transactions built-in
    - BLOB primary keys compare byte-wise, giving ordered range scans
"""

from taxexempt.store.db import KVStore
from taxexempt.store.prefix import PrefixStore, prefix_end_bytes

__all__ = [
    "KVStore",
    "PrefixStore",
    "prefix_end_bytes",
]
