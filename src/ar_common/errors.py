"""Unified error codes and custom exceptions.

Error code ranges:
  1xxx: Partition / infrastructure (transient)
  2xxx: Account
  3xxx: Registry corruption (fatal)
  4xxx: Transaction
  5xxx: Inventory / social graph rules
  9xxx: System
"""

from src.ar_common.enums import TransactionOutcome


class AppError(Exception):
    """Base application error."""

    def __init__(
        self,
        code: int,
        message: str,
        http_status: int = 500,
    ) -> None:
        self.code = code
        self.message = message
        self.http_status = http_status
        super().__init__(message)


# --- 1xxx: Partition ---

class PartitionUnavailableError(AppError):
    def __init__(self, partition_ids: list[str], detail: str = "") -> None:
        self.partition_ids = list(partition_ids)
        suffix = f": {detail}" if detail else ""
        super().__init__(
            1001,
            f"Partition unavailable: {', '.join(self.partition_ids)}{suffix}",
            503,
        )


class MalformedPartitionError(PartitionUnavailableError):
    """Payload could be fetched but not decoded. Treated as unavailable."""

    def __init__(self, partition_id: str, detail: str) -> None:
        super().__init__([partition_id], f"malformed payload ({detail})")
        self.code = 1002


# --- 2xxx: Account ---

class InsufficientBalanceError(AppError):
    def __init__(self, account_id: int, required: int, available: int) -> None:
        self.account_id = account_id
        super().__init__(
            2001,
            f"Insufficient balance for account {account_id}: "
            f"required {required}, available {available}",
            422,
        )


class AccountNotFoundError(AppError):
    def __init__(self, account_id: int | str) -> None:
        super().__init__(2002, f"Account not found: {account_id}", 404)


# --- 3xxx: Registry corruption ---

class RegistryCorruptionError(AppError):
    """Never auto-healed: the operator must repair the partitions."""


class DuplicateAccountIdError(RegistryCorruptionError):
    def __init__(self, account_id: int, partition_ids: list[str]) -> None:
        self.account_id = account_id
        self.partition_ids = list(partition_ids)
        super().__init__(
            3001,
            f"Account id {account_id} appears in multiple locations: "
            f"{', '.join(self.partition_ids)}",
            500,
        )


class MultipleAdministratorsError(RegistryCorruptionError):
    def __init__(self, account_ids: list[int]) -> None:
        super().__init__(
            3002,
            f"More than one administrator account: {sorted(account_ids)}",
            500,
        )


# --- 4xxx: Transaction ---

class ConflictError(AppError):
    def __init__(self, detail: str = "Concurrent modification, safe to retry") -> None:
        super().__init__(4001, detail, 409)


class TransactionIndeterminateError(AppError):
    def __init__(self, reconciliation_ref: str) -> None:
        self.reconciliation_ref = reconciliation_ref
        super().__init__(
            4002,
            "Transaction partially committed, do not retry; "
            f"reconciliation ref {reconciliation_ref}",
            500,
        )


class InvalidOperationError(AppError):
    def __init__(self, detail: str) -> None:
        super().__init__(4003, f"Invalid operation: {detail}", 422)


class IdempotencyKeyReusedError(AppError):
    def __init__(self, key: str) -> None:
        super().__init__(
            4004, f"Idempotency key {key} was used for a different request", 422
        )


class IdempotencyKeyRequiredError(AppError):
    def __init__(self) -> None:
        super().__init__(4005, "Idempotency-Key header is required", 400)


class TransactionAbortedError(AppError):
    """Nothing was written; the caller may retry with the same key."""

    def __init__(self, transaction_id: str, outcome: TransactionOutcome) -> None:
        self.transaction_id = transaction_id
        http_status = 503 if outcome == TransactionOutcome.UNAVAILABLE else 409
        super().__init__(
            4006,
            f"Transaction {transaction_id} aborted ({outcome.value.lower()}), safe to retry",
            http_status,
        )


# --- 5xxx: Inventory / social ---

class ItemNotOwnedError(AppError):
    def __init__(self, account_id: int, item_id: str) -> None:
        super().__init__(5001, f"Account {account_id} does not own item {item_id}", 403)


class GamepassAlreadyOwnedError(AppError):
    def __init__(self, account_id: int, gamepass_id: str) -> None:
        super().__init__(
            5002, f"Account {account_id} already owns gamepass {gamepass_id}", 409
        )


class SocialGraphError(AppError):
    def __init__(self, detail: str) -> None:
        super().__init__(5003, detail, 400)


# --- 9xxx: System ---

class InternalError(AppError):
    def __init__(self, detail: str = "Internal server error") -> None:
        super().__init__(9002, detail, 500)
