"""Business operations: each compiles into plan steps against a fresh view.

Operations only decide WHICH partition each mutation targets; the mutation
itself re-resolves accounts by id inside the checked-out handle, so a plan
can be re-applied on retry against newer partition contents.

Money movement:
  Debit           burns tokens (fees, item purchases)
  Credit          mints tokens (rewards)
  Transfer        debit + credit of the same amount
  Purchase        buyer pays price; payees and the platform receive their
                  cuts; any unallocated remainder is burned
"""

import dataclasses
from collections.abc import Collection
from dataclasses import dataclass, field
from typing import Any

from src.ar_common.errors import AccountNotFoundError, InvalidOperationError, SocialGraphError
from src.ar_common.tokens import share_of
from src.ar_partition.application.handle import MutationHandle
from src.ar_registry.domain.view import UnifiedView
from src.ar_transaction.domain.plan import LedgerContribution, TransactionPlan


def _check_amount(amount: int, *, allow_zero: bool = False) -> None:
    if isinstance(amount, bool) or not isinstance(amount, int):
        raise InvalidOperationError(f"amount must be an integer, got {amount!r}")
    if amount < 0 or (amount == 0 and not allow_zero):
        raise InvalidOperationError(f"amount must be positive, got {amount}")


class Operation:
    """Base class; subclasses are frozen dataclasses."""

    def compile(self, view: UnifiedView, plan: TransactionPlan) -> None:
        raise NotImplementedError

    def describe(self) -> dict[str, Any]:
        """Canonical form used for idempotency fingerprints."""
        return {"kind": type(self).__name__, **dataclasses.asdict(self)}  # type: ignore[call-overload]


# ---------------------------------------------------------------------------
# Balance operations
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Debit(Operation):
    account_id: int
    amount: int

    def compile(self, view: UnifiedView, plan: TransactionPlan) -> None:
        _check_amount(self.amount)
        plan.add(
            view.partition_of(self.account_id),
            lambda h: h.account(self.account_id).debit(self.amount),
        )


@dataclass(frozen=True)
class Credit(Operation):
    account_id: int
    amount: int

    def compile(self, view: UnifiedView, plan: TransactionPlan) -> None:
        _check_amount(self.amount)
        plan.add(
            view.partition_of(self.account_id),
            lambda h: h.account(self.account_id).credit(self.amount),
        )


@dataclass(frozen=True)
class Transfer(Operation):
    from_id: int
    to_id: int
    amount: int

    def compile(self, view: UnifiedView, plan: TransactionPlan) -> None:
        if self.from_id == self.to_id:
            raise InvalidOperationError("cannot transfer to the same account")
        Debit(self.from_id, self.amount).compile(view, plan)
        Credit(self.to_id, self.amount).compile(view, plan)


@dataclass(frozen=True)
class Payee:
    account_id: int
    amount: int


@dataclass(frozen=True)
class Purchase(Operation):
    buyer_id: int
    price: int
    payees: tuple[Payee, ...] = ()
    platform_cut: int = 0

    def compile(self, view: UnifiedView, plan: TransactionPlan) -> None:
        _check_amount(self.price)
        _check_amount(self.platform_cut, allow_zero=True)
        for payee in self.payees:
            _check_amount(payee.amount, allow_zero=True)
        allocated = sum(p.amount for p in self.payees) + self.platform_cut
        if allocated > self.price:
            raise InvalidOperationError(
                f"cuts total {allocated} exceed price {self.price}"
            )

        Debit(self.buyer_id, self.price).compile(view, plan)
        for payee in self.payees:
            if payee.amount > 0:
                Credit(payee.account_id, payee.amount).compile(view, plan)
        if self.platform_cut > 0:
            platform = view.administrator()
            if platform is None:
                raise AccountNotFoundError("administrator")
            Credit(platform.id, self.platform_cut).compile(view, plan)

    @classmethod
    def split(
        cls,
        buyer_id: int,
        price: int,
        payee_shares_bps: tuple[tuple[int, int], ...] = (),
        platform_bps: int = 0,
    ) -> "Purchase":
        """Purchase whose cuts are basis-point shares of price, floored.

        A 35% seller share plus a 5% platform share of 999 pays 349 and 49
        and burns the remaining 601.
        """
        try:
            payees = tuple(Payee(aid, share_of(price, bps)) for aid, bps in payee_shares_bps)
            platform_cut = share_of(price, platform_bps)
        except ValueError as e:
            raise InvalidOperationError(str(e)) from e
        return cls(buyer_id, price, payees, platform_cut)


# ---------------------------------------------------------------------------
# Inventory and flags
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class GrantItem(Operation):
    account_id: int
    item_id: str
    attributes: dict[str, Any] = field(default_factory=dict)

    def compile(self, view: UnifiedView, plan: TransactionPlan) -> None:
        plan.add(
            view.partition_of(self.account_id),
            lambda h: h.account(self.account_id).grant_item(self.item_id, self.attributes),
        )


@dataclass(frozen=True)
class EquipItem(Operation):
    account_id: int
    item_id: str

    def compile(self, view: UnifiedView, plan: TransactionPlan) -> None:
        plan.add(
            view.partition_of(self.account_id),
            lambda h: h.account(self.account_id).equip(self.item_id),
        )


@dataclass(frozen=True)
class GrantGamepass(Operation):
    account_id: int
    gamepass_id: str

    def compile(self, view: UnifiedView, plan: TransactionPlan) -> None:
        plan.add(
            view.partition_of(self.account_id),
            lambda h: h.account(self.account_id).grant_gamepass(self.gamepass_id),
        )


@dataclass(frozen=True)
class SetVerified(Operation):
    account_id: int
    verified: bool = True

    def compile(self, view: UnifiedView, plan: TransactionPlan) -> None:
        def mutate(h: MutationHandle) -> None:
            h.account(self.account_id).is_verified = self.verified

        plan.add(view.partition_of(self.account_id), mutate)


# ---------------------------------------------------------------------------
# Social graph
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SendFriendRequest(Operation):
    sender_id: int
    receiver_id: int

    def compile(self, view: UnifiedView, plan: TransactionPlan) -> None:
        sender = view.get(self.sender_id)
        plan.add(
            view.partition_of(self.receiver_id),
            lambda h: h.account(self.receiver_id).receive_friend_request(
                sender.id, sender.username
            ),
        )


@dataclass(frozen=True)
class AcceptFriendRequest(Operation):
    accepter_id: int
    requester_id: int

    def compile(self, view: UnifiedView, plan: TransactionPlan) -> None:
        def accept(h: MutationHandle) -> None:
            accepter = h.account(self.accepter_id)
            if not any(r.from_id == self.requester_id for r in accepter.friend_requests):
                raise SocialGraphError(
                    f"No pending request from {self.requester_id} to {self.accepter_id}"
                )
            accepter.drop_friend_request(self.requester_id)
            accepter.add_friend(self.requester_id)

        plan.add(view.partition_of(self.accepter_id), accept)
        plan.add(
            view.partition_of(self.requester_id),
            lambda h: h.account(self.requester_id).add_friend(self.accepter_id),
        )


@dataclass(frozen=True)
class DeclineFriendRequest(Operation):
    decliner_id: int
    requester_id: int

    def compile(self, view: UnifiedView, plan: TransactionPlan) -> None:
        plan.add(
            view.partition_of(self.decliner_id),
            lambda h: h.account(self.decliner_id).drop_friend_request(self.requester_id),
        )


@dataclass(frozen=True)
class ToggleFollow(Operation):
    """Follow if not following yet, otherwise unfollow.

    The decision is made on the follower's checked-out document, so a retry
    against newer contents toggles from the current state. The target side
    mirrors the follower side's last decision, falling back to its own
    followers list if the follower side has not run.
    """
    follower_id: int
    following_id: int

    def compile(self, view: UnifiedView, plan: TransactionPlan) -> None:
        if self.follower_id == self.following_id:
            raise SocialGraphError("Cannot follow yourself")
        decided: dict[str, bool] = {}

        def update_follower(h: MutationHandle) -> None:
            account = h.account(self.follower_id)
            decided["unfollow"] = self.following_id in account.following
            if decided["unfollow"]:
                account.remove_following(self.following_id)
            else:
                account.add_following(self.following_id)

        def update_target(h: MutationHandle) -> None:
            account = h.account(self.following_id)
            if decided.get("unfollow", self.follower_id in account.followers):
                account.remove_follower(self.follower_id)
            else:
                account.add_follower(self.follower_id)

        plan.add(view.partition_of(self.follower_id), update_follower)
        plan.add(view.partition_of(self.following_id), update_target)


# ---------------------------------------------------------------------------
# Auxiliary documents and ledgers
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AppendRecord(Operation):
    """Append a record to a list inside a non-account document (e.g. groups)."""
    document_id: str
    collection: str
    record: dict[str, Any]

    def compile(self, view: UnifiedView, plan: TransactionPlan) -> None:
        if self.document_id in view.partitions:
            raise InvalidOperationError(
                f"{self.document_id} is an account partition, not an auxiliary document"
            )
        plan.add(
            self.document_id,
            lambda h: h.collection(self.collection).append(dict(self.record)),
        )


@dataclass(frozen=True)
class Contribute(Operation):
    """Ledger contribution applied after every partition commits."""
    board: str
    account_id: int
    amount: int

    def compile(self, view: UnifiedView, plan: TransactionPlan) -> None:
        _check_amount(self.amount)
        account = view.get(self.account_id)
        plan.contribute(
            LedgerContribution(self.board, account.id, account.username, self.amount)
        )


def build_plan(
    view: UnifiedView,
    op: str,
    operations: list[Operation],
    idempotency_key: str | None = None,
    boards: Collection[str] | None = None,
) -> TransactionPlan:
    """Compile operations into a plan. With boards given, contributions to
    any other leaderboard are rejected before anything is written."""
    if not operations:
        raise InvalidOperationError("a transaction needs at least one operation")
    plan = TransactionPlan(op, idempotency_key=idempotency_key, boards=boards)
    for operation in operations:
        operation.compile(view, plan)
    return plan
