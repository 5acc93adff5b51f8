"""Wiring of backend, reader, coordinator and aggregators from Settings."""

from config.settings import Settings
from src.ar_common.enums import LeaderboardName
from src.ar_ledger.application.aggregator import LedgerAggregator
from src.ar_partition.application.handle import PartitionLocks
from src.ar_partition.domain.backend import PartitionBackendProtocol
from src.ar_partition.infrastructure.jsonbin import JsonBinBackend
from src.ar_partition.infrastructure.memory import InMemoryPartitionBackend
from src.ar_registry.application.reader import RegistryReader
from src.ar_registry.application.service import RegistryService
from src.ar_transaction.application.coordinator import TransactionCoordinator
from src.ar_transaction.domain.repository import (
    IdempotencyStoreProtocol,
    ReconciliationLogProtocol,
)


def build_backend(settings: Settings) -> PartitionBackendProtocol:
    if settings.PARTITION_BACKEND == "memory":
        return InMemoryPartitionBackend()
    if settings.PARTITION_BACKEND == "jsonbin":
        return JsonBinBackend(
            api_key=settings.JSONBIN_API_KEY,
            base_url=settings.JSONBIN_BASE_URL,
            timeout=settings.PARTITION_TIMEOUT_SECONDS,
        )
    raise ValueError(f"Unknown PARTITION_BACKEND: {settings.PARTITION_BACKEND}")


def leaderboard_documents(settings: Settings) -> dict[str, str]:
    return {
        LeaderboardName.DONATED.value: settings.DONATED_LEADERBOARD_ID,
        LeaderboardName.RAISED.value: settings.RAISED_LEADERBOARD_ID,
        LeaderboardName.GAME_WINS.value: settings.WINS_LEADERBOARD_ID,
    }


def auxiliary_documents(settings: Settings) -> dict[str, str]:
    """Non-account documents clients may append records to, by public name."""
    return {"groups": settings.GROUPS_DOCUMENT_ID}


def build_registry_service(
    settings: Settings,
    backend: PartitionBackendProtocol,
    reconciliation_log: ReconciliationLogProtocol,
    idempotency: IdempotencyStoreProtocol | None = None,
) -> RegistryService:
    locks = PartitionLocks()
    ledger = LedgerAggregator(
        backend,
        leaderboard_documents(settings),
        locks=locks,
        max_attempts=settings.TRANSACTION_MAX_ATTEMPTS,
        base_delay_ms=settings.RETRY_BASE_DELAY_MS,
        max_delay_ms=settings.RETRY_MAX_DELAY_MS,
    )
    coordinator = TransactionCoordinator(
        backend,
        reconciliation_log,
        ledger=ledger,
        locks=locks,
        max_attempts=settings.TRANSACTION_MAX_ATTEMPTS,
        base_delay_ms=settings.RETRY_BASE_DELAY_MS,
        max_delay_ms=settings.RETRY_MAX_DELAY_MS,
    )
    return RegistryService(
        reader=RegistryReader(backend, settings.ACCOUNT_PARTITION_IDS),
        coordinator=coordinator,
        ledger=ledger,
        reconciliation_log=reconciliation_log,
        idempotency=idempotency,
    )
