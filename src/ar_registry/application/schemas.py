"""Pydantic views returned by the registry's public surface."""

from pydantic import BaseModel

from src.ar_ledger.application.aggregator import LeaderboardEntry
from src.ar_partition.domain.models import Account


class InventoryItemView(BaseModel):
    item_id: str
    count: int


class AccountView(BaseModel):
    id: int
    username: str
    balance: int
    bio: str
    pfp: str
    friends_count: int
    followers_count: int
    following_count: int
    is_verified: bool
    is_admin: bool
    equipped_item: str | None
    inventory: list[InventoryItemView]
    gamepasses: list[str]

    @classmethod
    def from_account(cls, account: Account) -> "AccountView":
        return cls(
            id=account.id,
            username=account.username,
            balance=account.balance,
            bio=account.bio,
            pfp=account.pfp,
            friends_count=len(account.friends),
            followers_count=len(account.followers),
            following_count=len(account.following),
            is_verified=account.is_verified,
            is_admin=account.is_admin,
            equipped_item=account.equipped_item,
            inventory=[
                InventoryItemView(item_id=i.item_id, count=i.count) for i in account.inventory
            ],
            gamepasses=sorted(k for k, owned in account.gamepasses.items() if owned),
        )


class LeaderboardEntryView(BaseModel):
    rank: int
    account_id: int
    username: str
    amount: int

    @classmethod
    def from_entries(cls, entries: list[LeaderboardEntry]) -> list["LeaderboardEntryView"]:
        return [
            cls(rank=i, account_id=e.account_id, username=e.username, amount=e.amount)
            for i, e in enumerate(entries, start=1)
        ]
