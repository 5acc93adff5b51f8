"""Tests for RegistryReader, UnifiedView and the account locator."""

import random
from collections import Counter

import pytest

from src.ar_common.errors import (
    AccountNotFoundError,
    DuplicateAccountIdError,
    MultipleAdministratorsError,
    PartitionUnavailableError,
)
from src.ar_partition.infrastructure.memory import InMemoryPartitionBackend
from src.ar_registry.application.reader import RegistryReader
from tests.support import P1, P2, FlakyBackend, account_doc, partition


class TestReaderConstruction:
    def test_requires_partitions(self, memory_backend: InMemoryPartitionBackend) -> None:
        with pytest.raises(ValueError):
            RegistryReader(memory_backend, [])

    def test_rejects_duplicate_partition_ids(self, memory_backend: InMemoryPartitionBackend) -> None:
        with pytest.raises(ValueError):
            RegistryReader(memory_backend, [P1, P1])


class TestReadAll:
    async def test_merges_partitions(self, memory_backend: InMemoryPartitionBackend) -> None:
        view = await RegistryReader(memory_backend, [P1, P2]).read_all()
        assert len(view) == 3
        assert view.partition_of(1) == P1
        assert view.partition_of(2) == P2
        assert view.get(2).username == "bob"
        assert view.total_balance() == 5100

    async def test_fans_out_one_read_per_partition(self, memory_backend: InMemoryPartitionBackend) -> None:
        await RegistryReader(memory_backend, [P1, P2]).read_all()
        assert memory_backend.fetch_count == 2

    async def test_empty_partition(self) -> None:
        backend = InMemoryPartitionBackend({P1: partition(account_doc(1))})
        view = await RegistryReader(backend, [P1, P2]).read_all()
        assert len(view) == 1
        assert view.partitions[P2].accounts == []

    async def test_fails_closed_on_unavailable(self, flaky: FlakyBackend) -> None:
        flaky.fail_fetch.add(P2)
        with pytest.raises(PartitionUnavailableError) as exc_info:
            await RegistryReader(flaky, [P1, P2]).read_all()
        assert exc_info.value.partition_ids == [P2]

    async def test_fails_closed_on_malformed(self) -> None:
        backend = InMemoryPartitionBackend({
            P1: partition(account_doc(1)),
            P2: {"accounts": "not a list"},
        })
        with pytest.raises(PartitionUnavailableError) as exc_info:
            await RegistryReader(backend, [P1, P2]).read_all()
        assert exc_info.value.partition_ids == [P2]

    async def test_reports_every_failed_partition(self, flaky: FlakyBackend) -> None:
        flaky.fail_fetch.update({P1, P2})
        with pytest.raises(PartitionUnavailableError) as exc_info:
            await RegistryReader(flaky, [P1, P2]).read_all()
        assert exc_info.value.partition_ids == [P1, P2]


class TestLookup:
    async def test_not_found(self, memory_backend: InMemoryPartitionBackend) -> None:
        view = await RegistryReader(memory_backend, [P1, P2]).read_all()
        with pytest.raises(AccountNotFoundError):
            view.get(99)

    async def test_find_by_username_case_insensitive(self, memory_backend: InMemoryPartitionBackend) -> None:
        view = await RegistryReader(memory_backend, [P1, P2]).read_all()
        account = view.find_by_username("BOB")
        assert account is not None and account.id == 2
        assert view.find_by_username("nobody") is None

    async def test_administrator(self, memory_backend: InMemoryPartitionBackend) -> None:
        view = await RegistryReader(memory_backend, [P1, P2]).read_all()
        admin = view.administrator()
        assert admin is not None and admin.id == 3

    async def test_multiple_administrators_is_corruption(self) -> None:
        backend = InMemoryPartitionBackend({
            P1: partition(account_doc(1, role="admin")),
            P2: partition(account_doc(2, role="admin")),
        })
        view = await RegistryReader(backend, [P1, P2]).read_all()
        with pytest.raises(MultipleAdministratorsError):
            view.administrator()


class TestDuplicateIds:
    async def test_duplicate_across_partitions(self) -> None:
        backend = InMemoryPartitionBackend({
            P1: partition(account_doc(1), account_doc(5)),
            P2: partition(account_doc(5), account_doc(2)),
        })
        view = await RegistryReader(backend, [P1, P2]).read_all()
        assert view.duplicate_ids == [5]
        with pytest.raises(DuplicateAccountIdError) as exc_info:
            view.get(5)
        assert exc_info.value.partition_ids == [f"{P1}[1]", f"{P2}[0]"]
        # unaffected ids still resolve
        assert view.get(2).id == 2

    async def test_duplicate_within_partition(self) -> None:
        backend = InMemoryPartitionBackend({P1: partition(account_doc(4), account_doc(4))})
        view = await RegistryReader(backend, [P1]).read_all()
        with pytest.raises(DuplicateAccountIdError):
            view.locate(4)

    async def test_duplicate_username_lookup_surfaces_corruption(self) -> None:
        backend = InMemoryPartitionBackend({
            P1: partition(account_doc(8, "dup")),
            P2: partition(account_doc(8, "dup")),
        })
        view = await RegistryReader(backend, [P1, P2]).read_all()
        with pytest.raises(DuplicateAccountIdError):
            view.find_by_username("dup")

    @pytest.mark.parametrize("seed", range(10))
    async def test_random_partitions(self, seed: int) -> None:
        rng = random.Random(seed)
        partition_ids = [f"p{i}" for i in range(rng.randint(1, 4))]
        documents = {
            pid: partition(*(account_doc(rng.randint(1, 40)) for _ in range(rng.randint(0, 15))))
            for pid in partition_ids
        }
        counts = Counter(a["id"] for doc in documents.values() for a in doc["accounts"])

        view = await RegistryReader(InMemoryPartitionBackend(documents), partition_ids).read_all()

        assert view.duplicate_ids == sorted(aid for aid, n in counts.items() if n > 1)
        for aid, n in counts.items():
            if n == 1:
                assert view.get(aid).id == aid
            else:
                with pytest.raises(DuplicateAccountIdError):
                    view.get(aid)
