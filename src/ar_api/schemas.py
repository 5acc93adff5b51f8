"""Request schemas for POST /transactions.

Each operation is a tagged object ({"kind": "transfer", ...}); the tag
selects the pydantic model, which converts itself into a domain Operation.
"""

from typing import Annotated, Any, Literal

from pydantic import BaseModel, Field

from src.ar_common.errors import InvalidOperationError
from src.ar_transaction.domain.operations import (
    AcceptFriendRequest,
    AppendRecord,
    Contribute,
    Credit,
    Debit,
    DeclineFriendRequest,
    EquipItem,
    GrantGamepass,
    GrantItem,
    Operation,
    Payee,
    Purchase,
    SendFriendRequest,
    SetVerified,
    ToggleFollow,
    Transfer,
)

Amount = Annotated[int, Field(gt=0)]


class DebitIn(BaseModel):
    kind: Literal["debit"]
    account_id: int
    amount: Amount

    def to_operation(self, documents: dict[str, str]) -> Operation:
        return Debit(self.account_id, self.amount)


class CreditIn(BaseModel):
    kind: Literal["credit"]
    account_id: int
    amount: Amount

    def to_operation(self, documents: dict[str, str]) -> Operation:
        return Credit(self.account_id, self.amount)


class TransferIn(BaseModel):
    kind: Literal["transfer"]
    from_id: int
    to_id: int
    amount: Amount

    def to_operation(self, documents: dict[str, str]) -> Operation:
        return Transfer(self.from_id, self.to_id, self.amount)


class PayeeIn(BaseModel):
    account_id: int
    amount: int = Field(..., ge=0)


class PurchaseIn(BaseModel):
    kind: Literal["purchase"]
    buyer_id: int
    price: Amount
    payees: list[PayeeIn] = Field(default_factory=list)
    platform_cut: int = Field(0, ge=0)

    def to_operation(self, documents: dict[str, str]) -> Operation:
        return Purchase(
            buyer_id=self.buyer_id,
            price=self.price,
            payees=tuple(Payee(p.account_id, p.amount) for p in self.payees),
            platform_cut=self.platform_cut,
        )


class ShareIn(BaseModel):
    account_id: int
    share_bps: int = Field(..., ge=0, le=10000)


class SplitPurchaseIn(BaseModel):
    """Purchase whose cuts are percentages of price (basis points, floored)."""

    kind: Literal["split_purchase"]
    buyer_id: int
    price: Amount
    shares: list[ShareIn] = Field(default_factory=list)
    platform_bps: int = Field(0, ge=0, le=10000)

    def to_operation(self, documents: dict[str, str]) -> Operation:
        return Purchase.split(
            self.buyer_id,
            self.price,
            tuple((s.account_id, s.share_bps) for s in self.shares),
            self.platform_bps,
        )


class GrantItemIn(BaseModel):
    kind: Literal["grant_item"]
    account_id: int
    item_id: str = Field(..., min_length=1)
    attributes: dict[str, Any] = Field(default_factory=dict)

    def to_operation(self, documents: dict[str, str]) -> Operation:
        return GrantItem(self.account_id, self.item_id, self.attributes)


class EquipItemIn(BaseModel):
    kind: Literal["equip_item"]
    account_id: int
    item_id: str = Field(..., min_length=1)

    def to_operation(self, documents: dict[str, str]) -> Operation:
        return EquipItem(self.account_id, self.item_id)


class GrantGamepassIn(BaseModel):
    kind: Literal["grant_gamepass"]
    account_id: int
    gamepass_id: str = Field(..., min_length=1)

    def to_operation(self, documents: dict[str, str]) -> Operation:
        return GrantGamepass(self.account_id, self.gamepass_id)


class SetVerifiedIn(BaseModel):
    kind: Literal["set_verified"]
    account_id: int
    verified: bool = True

    def to_operation(self, documents: dict[str, str]) -> Operation:
        return SetVerified(self.account_id, self.verified)


class SendFriendRequestIn(BaseModel):
    kind: Literal["friend_request"]
    sender_id: int
    receiver_id: int

    def to_operation(self, documents: dict[str, str]) -> Operation:
        return SendFriendRequest(self.sender_id, self.receiver_id)


class AcceptFriendRequestIn(BaseModel):
    kind: Literal["friend_accept"]
    accepter_id: int
    requester_id: int

    def to_operation(self, documents: dict[str, str]) -> Operation:
        return AcceptFriendRequest(self.accepter_id, self.requester_id)


class DeclineFriendRequestIn(BaseModel):
    kind: Literal["friend_decline"]
    decliner_id: int
    requester_id: int

    def to_operation(self, documents: dict[str, str]) -> Operation:
        return DeclineFriendRequest(self.decliner_id, self.requester_id)


class ToggleFollowIn(BaseModel):
    kind: Literal["follow"]
    follower_id: int
    following_id: int

    def to_operation(self, documents: dict[str, str]) -> Operation:
        return ToggleFollow(self.follower_id, self.following_id)


class AppendRecordIn(BaseModel):
    kind: Literal["append_record"]
    document: str
    collection: str = Field(..., min_length=1)
    record: dict[str, Any]

    def to_operation(self, documents: dict[str, str]) -> Operation:
        document_id = documents.get(self.document)
        if document_id is None:
            raise InvalidOperationError(f"unknown document '{self.document}'")
        return AppendRecord(document_id, self.collection, self.record)


class ContributeIn(BaseModel):
    kind: Literal["contribute"]
    board: str
    account_id: int
    amount: Amount

    def to_operation(self, documents: dict[str, str]) -> Operation:
        return Contribute(self.board, self.account_id, self.amount)


OperationIn = Annotated[
    DebitIn
    | CreditIn
    | TransferIn
    | PurchaseIn
    | SplitPurchaseIn
    | GrantItemIn
    | EquipItemIn
    | GrantGamepassIn
    | SetVerifiedIn
    | SendFriendRequestIn
    | AcceptFriendRequestIn
    | DeclineFriendRequestIn
    | ToggleFollowIn
    | AppendRecordIn
    | ContributeIn,
    Field(discriminator="kind"),
]


class TransactionRequest(BaseModel):
    op: str = Field(..., min_length=1, max_length=64, description="Business operation name, e.g. create-group")
    operations: list[OperationIn] = Field(..., min_length=1)

    def to_operations(self, documents: dict[str, str]) -> list[Operation]:
        return [o.to_operation(documents) for o in self.operations]
