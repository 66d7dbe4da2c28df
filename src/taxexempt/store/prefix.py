"""
Prefix-scoped views over a KVStore.

A PrefixStore exposes the records of its parent whose keys start with a
fixed prefix, with the prefix stripped. The zone registry and the
membership index each live in their own prefix, so they can be range
scanned independently.
"""

from typing import Iterator

from taxexempt.store.db import KVStore


def prefix_end_bytes(prefix: bytes) -> bytes | None:
    """
    Return the smallest key greater than every key starting with ``prefix``.

    Returns None when no such key exists (empty prefix or all 0xFF bytes),
    meaning the range is unbounded above.
    """
    end = bytearray(prefix)
    while end:
        if end[-1] != 0xFF:
            end[-1] += 1
            return bytes(end)
        end.pop()
    return None


class PrefixStore:
    """
    View of ``parent`` restricted to keys under ``prefix``.

    Attributes:
        parent: Underlying store
        prefix: Key prefix owned by this view
    """

    def __init__(self, parent: KVStore, prefix: bytes) -> None:
        self.parent = parent
        self.prefix = prefix

    def _key(self, key: bytes) -> bytes:
        return self.prefix + key

    def get(self, key: bytes) -> bytes | None:
        return self.parent.get(self._key(key))

    def has(self, key: bytes) -> bool:
        return self.parent.has(self._key(key))

    def set(self, key: bytes, value: bytes) -> None:
        self.parent.set(self._key(key), value)

    def delete(self, key: bytes) -> None:
        self.parent.delete(self._key(key))

    def iterator(
        self,
        start: bytes | None = None,
        end: bytes | None = None,
        reverse: bool = False,
    ) -> Iterator[tuple[bytes, bytes]]:
        """Iterate ``start <= key < end`` within the prefix, keys unprefixed."""
        lower = self._key(start) if start is not None else self.prefix
        upper = self._key(end) if end is not None else prefix_end_bytes(self.prefix)

        size = len(self.prefix)
        for key, value in self.parent.iterator(lower, upper, reverse=reverse):
            yield key[size:], value
