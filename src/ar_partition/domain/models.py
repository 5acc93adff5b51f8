"""Domain models for account partitions: pure dataclasses, no I/O."""

from dataclasses import dataclass, field
from typing import Any

from src.ar_common.enums import AccountRole
from src.ar_common.errors import (
    GamepassAlreadyOwnedError,
    InsufficientBalanceError,
    ItemNotOwnedError,
    SocialGraphError,
)
from src.ar_common.tokens import validate_amount


@dataclass
class FriendRequest:
    from_id: int
    from_username: str


@dataclass
class InventoryItem:
    item_id: str
    count: int = 1
    attributes: dict[str, Any] = field(default_factory=dict)


@dataclass
class Account:
    id: int
    username: str
    balance: int = 0
    friends: list[int] = field(default_factory=list)
    friend_requests: list[FriendRequest] = field(default_factory=list)
    followers: list[int] = field(default_factory=list)
    following: list[int] = field(default_factory=list)
    inventory: list[InventoryItem] = field(default_factory=list)
    equipped_item: str | None = None
    gamepasses: dict[str, bool] = field(default_factory=dict)
    is_verified: bool = False
    role: AccountRole = AccountRole.USER
    bio: str = ""
    pfp: str = ""
    extra: dict[str, Any] = field(default_factory=dict)  # unknown fields, preserved

    @property
    def is_admin(self) -> bool:
        return self.role == AccountRole.ADMIN

    # -- balance ------------------------------------------------------------

    def debit(self, amount: int) -> None:
        validate_amount(amount)
        if self.balance < amount:
            raise InsufficientBalanceError(self.id, amount, self.balance)
        self.balance -= amount

    def credit(self, amount: int) -> None:
        validate_amount(amount)
        self.balance += amount

    # -- inventory ----------------------------------------------------------

    def find_item(self, item_id: str) -> InventoryItem | None:
        return next((i for i in self.inventory if i.item_id == item_id), None)

    def grant_item(
        self, item_id: str, attributes: dict[str, Any] | None = None
    ) -> bool:
        """Add one unit of item_id. Returns True if the account already had it."""
        existing = self.find_item(item_id)
        if existing is not None:
            existing.count += 1
            return True
        self.inventory.append(
            InventoryItem(item_id=item_id, count=1, attributes=dict(attributes or {}))
        )
        return False

    def equip(self, item_id: str) -> None:
        if self.find_item(item_id) is None:
            raise ItemNotOwnedError(self.id, item_id)
        self.equipped_item = item_id

    def grant_gamepass(self, gamepass_id: str) -> None:
        if self.gamepasses.get(gamepass_id):
            raise GamepassAlreadyOwnedError(self.id, gamepass_id)
        self.gamepasses[gamepass_id] = True

    # -- social graph -------------------------------------------------------

    def receive_friend_request(self, sender_id: int, sender_username: str) -> None:
        if sender_id == self.id:
            raise SocialGraphError("Cannot befriend yourself")
        if sender_id in self.friends:
            raise SocialGraphError("Already friends")
        if any(r.from_id == sender_id for r in self.friend_requests):
            raise SocialGraphError("Request already sent")
        self.friend_requests.append(FriendRequest(sender_id, sender_username))

    def drop_friend_request(self, requester_id: int) -> None:
        self.friend_requests = [
            r for r in self.friend_requests if r.from_id != requester_id
        ]

    def add_friend(self, other_id: int) -> None:
        if other_id not in self.friends:
            self.friends.append(other_id)

    def add_follower(self, follower_id: int) -> None:
        if follower_id not in self.followers:
            self.followers.append(follower_id)

    def remove_follower(self, follower_id: int) -> None:
        self.followers = [f for f in self.followers if f != follower_id]

    def add_following(self, target_id: int) -> None:
        if target_id not in self.following:
            self.following.append(target_id)

    def remove_following(self, target_id: int) -> None:
        self.following = [f for f in self.following if f != target_id]


@dataclass
class PartitionDocument:
    """Raw document as returned by a backend read."""
    record: dict[str, Any]
    revision: str


@dataclass
class PartitionSnapshot:
    """Decoded, read-only view of one account partition at one revision."""
    partition_id: str
    accounts: list[Account]
    revision: str
