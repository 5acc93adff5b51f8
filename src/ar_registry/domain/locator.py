"""Account locator: id -> (partition, offset) index over a fresh read.

The index is rebuilt from scratch on every read; it is never cached across
reads because any caller may have mutated a partition in between.
"""

from dataclasses import dataclass

from src.ar_common.errors import AccountNotFoundError, DuplicateAccountIdError
from src.ar_partition.domain.models import PartitionSnapshot


@dataclass(frozen=True)
class Location:
    partition_id: str
    index: int


AccountIndex = dict[int, list[Location]]


def build_index(snapshots: list[PartitionSnapshot]) -> AccountIndex:
    """Record every occurrence of every id, duplicates included."""
    index: AccountIndex = {}
    for snapshot in snapshots:
        for offset, account in enumerate(snapshot.accounts):
            index.setdefault(account.id, []).append(
                Location(snapshot.partition_id, offset)
            )
    return index


def duplicate_ids(index: AccountIndex) -> list[int]:
    return sorted(aid for aid, locations in index.items() if len(locations) > 1)


def locate(index: AccountIndex, account_id: int) -> Location:
    locations = index.get(account_id)
    if not locations:
        raise AccountNotFoundError(account_id)
    if len(locations) > 1:
        raise DuplicateAccountIdError(
            account_id, [f"{loc.partition_id}[{loc.index}]" for loc in locations]
        )
    return locations[0]
