"""Global enums shared by the registry, coordinator and API layers."""

from enum import Enum


class AccountRole(str, Enum):
    USER = "user"
    ADMIN = "admin"


class CommitResult(str, Enum):
    """Outcome of a single Mutation Handle commit."""
    COMMITTED = "COMMITTED"
    CONFLICT = "CONFLICT"
    UNAVAILABLE = "UNAVAILABLE"


class HandleState(str, Enum):
    OPEN = "OPEN"
    COMMITTED = "COMMITTED"
    ABORTED = "ABORTED"


class TransactionStatus(str, Enum):
    SUCCESS = "SUCCESS"
    PARTIAL_COMMIT = "PARTIAL_COMMIT"
    ABORTED = "ABORTED"


class TransactionOutcome(str, Enum):
    """What the caller is told; Indeterminate must never be blindly retried."""
    SUCCESS = "SUCCESS"
    CONFLICT = "CONFLICT"
    UNAVAILABLE = "UNAVAILABLE"
    INDETERMINATE = "INDETERMINATE"


class CommitRisk(int, Enum):
    """Commit ordering: money leaves payers before it reaches payees."""
    DEBIT = 0
    NEUTRAL = 1
    CREDIT = 2


class LeaderboardName(str, Enum):
    DONATED = "donated"
    RAISED = "raised"
    GAME_WINS = "wins"
