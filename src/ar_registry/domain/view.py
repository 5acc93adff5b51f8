"""UnifiedView: merged, read-only picture of every account partition."""

import logging
from collections.abc import Iterator

from src.ar_common.errors import MultipleAdministratorsError
from src.ar_partition.domain.models import Account, PartitionSnapshot
from src.ar_registry.domain.locator import (
    Location,
    build_index,
    duplicate_ids,
    locate,
)

logger = logging.getLogger(__name__)


class UnifiedView:
    def __init__(self, snapshots: list[PartitionSnapshot]) -> None:
        self.partitions: dict[str, PartitionSnapshot] = {
            s.partition_id: s for s in snapshots
        }
        self._index = build_index(snapshots)
        self.duplicate_ids = duplicate_ids(self._index)
        if self.duplicate_ids:
            logger.error(
                "Registry corruption: duplicate account ids %s", self.duplicate_ids
            )

    def locate(self, account_id: int) -> Location:
        return locate(self._index, account_id)

    def partition_of(self, account_id: int) -> str:
        return self.locate(account_id).partition_id

    def get(self, account_id: int) -> Account:
        loc = self.locate(account_id)
        return self.partitions[loc.partition_id].accounts[loc.index]

    def accounts(self) -> Iterator[Account]:
        for snapshot in self.partitions.values():
            yield from snapshot.accounts

    def find_by_username(self, username: str) -> Account | None:
        wanted = username.lower()
        matches = [a for a in self.accounts() if a.username.lower() == wanted]
        if not matches:
            return None
        # Usernames are not the identity key; re-resolve through the id index
        # so a duplicated id still surfaces as corruption.
        return self.get(matches[0].id)

    def administrator(self) -> Account | None:
        admins = [a for a in self.accounts() if a.is_admin]
        if len(admins) > 1:
            logger.error("Registry corruption: administrators %s", [a.id for a in admins])
            raise MultipleAdministratorsError([a.id for a in admins])
        return admins[0] if admins else None

    def total_balance(self) -> int:
        return sum(a.balance for a in self.accounts())

    def __len__(self) -> int:
        return sum(len(s.accounts) for s in self.partitions.values())
