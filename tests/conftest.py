"""
Pytest configuration and fixtures for taxexempt tests.

This module provides shared fixtures used across unit and integration
tests. Addresses are produced by bech32-encoding the hash of a seed, so
every test gets valid, distinct, reproducible addresses.
"""

import hashlib
import tempfile
from pathlib import Path
from typing import Callable, Generator

import pytest

from taxexempt.address import encode_address
from taxexempt.keeper import Keeper
from taxexempt.store import KVStore


def make_address(seed: str, prefix: str = "terra") -> str:
    """Deterministic 20-byte address derived from ``seed``."""
    return encode_address(hashlib.sha256(seed.encode()).digest()[:20], prefix)


AUTHORITY = make_address("gov")


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def store() -> Generator[KVStore, None, None]:
    """In-memory ordered store."""
    kv = KVStore(":memory:")
    yield kv
    kv.close()


@pytest.fixture
def keeper(store: KVStore) -> Keeper:
    """Keeper over an in-memory store with a fixed authority."""
    return Keeper(store, authority=AUTHORITY)


@pytest.fixture
def authority() -> str:
    return AUTHORITY


@pytest.fixture
def addr() -> Callable[[str], str]:
    """Factory for deterministic test addresses."""
    return make_address
