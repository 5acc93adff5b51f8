"""Shared test fixtures."""

import pytest

from src.ar_partition.infrastructure.memory import InMemoryPartitionBackend
from tests.support import P1, P2, FlakyBackend, account_doc, partition


@pytest.fixture
def memory_backend() -> InMemoryPartitionBackend:
    return InMemoryPartitionBackend({
        P1: partition(
            account_doc(1, "alice", 5000),
            account_doc(3, "madeonice", 0, role="admin"),
        ),
        P2: partition(account_doc(2, "bob", 100)),
    })


@pytest.fixture
def flaky(memory_backend: InMemoryPartitionBackend) -> FlakyBackend:
    return FlakyBackend(memory_backend)
