"""Tests for business operations compiling into TransactionPlans."""

import pytest

from src.ar_common.errors import (
    AccountNotFoundError,
    GamepassAlreadyOwnedError,
    InsufficientBalanceError,
    InvalidOperationError,
    ItemNotOwnedError,
    SocialGraphError,
)
from src.ar_partition.application.handle import MutationHandle
from src.ar_partition.infrastructure.memory import InMemoryPartitionBackend
from src.ar_registry.application.reader import RegistryReader
from src.ar_registry.domain.view import UnifiedView
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
    Payee,
    Purchase,
    SendFriendRequest,
    SetVerified,
    ToggleFollow,
    Transfer,
    build_plan,
)
from src.ar_transaction.domain.plan import TransactionPlan
from tests.support import GROUPS, P1, P2


async def _view(backend: InMemoryPartitionBackend) -> UnifiedView:
    return await RegistryReader(backend, [P1, P2]).read_all()


async def _apply(backend: InMemoryPartitionBackend, plan: TransactionPlan) -> dict[str, MutationHandle]:
    """Apply every step in memory, without committing."""
    handles = {}
    for step in plan.steps:
        handle = await MutationHandle.checkout(backend, step.partition_id)
        step.apply(handle)
        handles[step.partition_id] = handle
    return handles


class TestPlan:
    def test_generates_transaction_id(self) -> None:
        plan = TransactionPlan("op")
        assert plan.transaction_id.startswith("txn_")
        assert TransactionPlan("op", transaction_id="txn_fixed").transaction_id == "txn_fixed"

    async def test_same_partition_merges_into_one_step(self, memory_backend: InMemoryPartitionBackend) -> None:
        view = await _view(memory_backend)
        plan = build_plan(view, "fees", [Debit(1, 10), Credit(3, 10), Debit(1, 5)])
        assert plan.partition_ids == [P1]
        assert len(plan.steps[0].mutations) == 3

    async def test_mutations_compose_in_order(self, memory_backend: InMemoryPartitionBackend) -> None:
        view = await _view(memory_backend)
        plan = build_plan(view, "fees", [Debit(1, 10), Credit(3, 10), Debit(1, 5)])
        handles = await _apply(memory_backend, plan)
        assert handles[P1].balance_deltas() == {1: -15, 3: 10}

    async def test_empty_operation_list(self, memory_backend: InMemoryPartitionBackend) -> None:
        with pytest.raises(InvalidOperationError):
            build_plan(await _view(memory_backend), "noop", [])


class TestBalanceOperations:
    async def test_transfer_spans_partitions(self, memory_backend: InMemoryPartitionBackend) -> None:
        plan = build_plan(await _view(memory_backend), "transfer", [Transfer(1, 2, 250)])
        assert plan.partition_ids == [P1, P2]
        handles = await _apply(memory_backend, plan)
        assert handles[P1].balance_deltas() == {1: -250}
        assert handles[P2].balance_deltas() == {2: 250}

    async def test_transfer_to_self_rejected(self, memory_backend: InMemoryPartitionBackend) -> None:
        with pytest.raises(InvalidOperationError):
            build_plan(await _view(memory_backend), "transfer", [Transfer(1, 1, 10)])

    @pytest.mark.parametrize("amount", [0, -5, True])
    async def test_invalid_amounts(self, memory_backend: InMemoryPartitionBackend, amount: int) -> None:
        with pytest.raises(InvalidOperationError):
            build_plan(await _view(memory_backend), "debit", [Debit(1, amount)])

    async def test_unknown_account_rejected_at_compile(self, memory_backend: InMemoryPartitionBackend) -> None:
        with pytest.raises(AccountNotFoundError):
            build_plan(await _view(memory_backend), "credit", [Credit(42, 1)])

    async def test_insufficient_balance_on_apply(self, memory_backend: InMemoryPartitionBackend) -> None:
        plan = build_plan(await _view(memory_backend), "transfer", [Transfer(2, 1, 101)])
        with pytest.raises(InsufficientBalanceError):
            await _apply(memory_backend, plan)


class TestPurchase:
    async def test_cuts_and_burn(self, memory_backend: InMemoryPartitionBackend) -> None:
        op = Purchase(buyer_id=1, price=1000, payees=(Payee(2, 350),), platform_cut=50)
        handles = await _apply(memory_backend, build_plan(await _view(memory_backend), "gamepass", [op]))
        assert handles[P1].balance_deltas() == {1: -1000, 3: 50}
        assert handles[P2].balance_deltas() == {2: 350}

    async def test_cuts_exceeding_price(self, memory_backend: InMemoryPartitionBackend) -> None:
        op = Purchase(buyer_id=1, price=100, payees=(Payee(2, 80),), platform_cut=30)
        with pytest.raises(InvalidOperationError):
            build_plan(await _view(memory_backend), "gamepass", [op])

    async def test_platform_cut_needs_administrator(self) -> None:
        backend = InMemoryPartitionBackend({P1: {"accounts": [{"id": 1, "authTokens": 500}]}})
        view = await RegistryReader(backend, [P1]).read_all()
        with pytest.raises(AccountNotFoundError):
            build_plan(view, "gamepass", [Purchase(buyer_id=1, price=100, platform_cut=5)])

    def test_split_floors_shares(self) -> None:
        op = Purchase.split(1, 999, ((2, 3500),), platform_bps=500)
        assert op.payees == (Payee(2, 349),)
        assert op.platform_cut == 49

    def test_split_rejects_bad_share(self) -> None:
        with pytest.raises(InvalidOperationError):
            Purchase.split(1, 100, ((2, 12000),))


class TestInventory:
    async def test_grant_then_equip(self, memory_backend: InMemoryPartitionBackend) -> None:
        view = await _view(memory_backend)
        plan = build_plan(view, "buy-skin", [Debit(2, 50), GrantItem(2, "gold"), EquipItem(2, "gold")])
        handles = await _apply(memory_backend, plan)
        bob = handles[P2].account(2)
        assert bob.find_item("gold") is not None
        assert bob.equipped_item == "gold"

    async def test_grant_twice_increments_count(self, memory_backend: InMemoryPartitionBackend) -> None:
        plan = build_plan(await _view(memory_backend), "grant", [GrantItem(2, "gold"), GrantItem(2, "gold")])
        handles = await _apply(memory_backend, plan)
        assert handles[P2].account(2).find_item("gold").count == 2  # type: ignore[union-attr]

    async def test_equip_unowned(self, memory_backend: InMemoryPartitionBackend) -> None:
        plan = build_plan(await _view(memory_backend), "equip", [EquipItem(2, "gold")])
        with pytest.raises(ItemNotOwnedError):
            await _apply(memory_backend, plan)

    async def test_gamepass_owned_once(self, memory_backend: InMemoryPartitionBackend) -> None:
        plan = build_plan(
            await _view(memory_backend), "gp", [GrantGamepass(2, "vip"), GrantGamepass(2, "vip")]
        )
        with pytest.raises(GamepassAlreadyOwnedError):
            await _apply(memory_backend, plan)

    async def test_set_verified(self, memory_backend: InMemoryPartitionBackend) -> None:
        plan = build_plan(await _view(memory_backend), "verify", [SetVerified(2)])
        handles = await _apply(memory_backend, plan)
        assert handles[P2].account(2).is_verified is True


class TestSocialGraph:
    async def test_friend_request_lands_on_receiver(self, memory_backend: InMemoryPartitionBackend) -> None:
        plan = build_plan(await _view(memory_backend), "friend", [SendFriendRequest(1, 2)])
        assert plan.partition_ids == [P2]
        handles = await _apply(memory_backend, plan)
        request = handles[P2].account(2).friend_requests[0]
        assert (request.from_id, request.from_username) == (1, "alice")

    async def test_request_to_self(self, memory_backend: InMemoryPartitionBackend) -> None:
        plan = build_plan(await _view(memory_backend), "friend", [SendFriendRequest(2, 2)])
        with pytest.raises(SocialGraphError):
            await _apply(memory_backend, plan)

    async def test_accept_links_both_sides(self) -> None:
        backend = InMemoryPartitionBackend({
            P1: {"accounts": [{"id": 1, "username": "alice"}]},
            P2: {"accounts": [{"id": 2, "username": "bob", "friendRequests": [{"from": 1, "fromUsername": "alice"}]}]},
        })
        view = await RegistryReader(backend, [P1, P2]).read_all()
        handles = await _apply(backend, build_plan(view, "accept", [AcceptFriendRequest(2, 1)]))
        assert handles[P2].account(2).friends == [1]
        assert handles[P2].account(2).friend_requests == []
        assert handles[P1].account(1).friends == [2]

    async def test_accept_without_request(self, memory_backend: InMemoryPartitionBackend) -> None:
        plan = build_plan(await _view(memory_backend), "accept", [AcceptFriendRequest(2, 1)])
        with pytest.raises(SocialGraphError):
            await _apply(memory_backend, plan)

    async def test_decline_drops_request(self) -> None:
        backend = InMemoryPartitionBackend({
            P2: {"accounts": [{"id": 2, "friendRequests": [{"from": 1, "fromUsername": "a"}]}]},
        })
        view = await RegistryReader(backend, [P2]).read_all()
        handles = await _apply(backend, build_plan(view, "decline", [DeclineFriendRequest(2, 1)]))
        assert handles[P2].account(2).friend_requests == []

    async def test_toggle_follow_follows(self, memory_backend: InMemoryPartitionBackend) -> None:
        handles = await _apply(
            memory_backend, build_plan(await _view(memory_backend), "follow", [ToggleFollow(1, 2)])
        )
        assert handles[P1].account(1).following == [2]
        assert handles[P2].account(2).followers == [1]

    async def test_toggle_follow_unfollows(self) -> None:
        backend = InMemoryPartitionBackend({
            P1: {"accounts": [{"id": 1, "following": [2]}]},
            P2: {"accounts": [{"id": 2, "followers": [1]}]},
        })
        view = await RegistryReader(backend, [P1, P2]).read_all()
        handles = await _apply(backend, build_plan(view, "follow", [ToggleFollow(1, 2)]))
        assert handles[P1].account(1).following == []
        assert handles[P2].account(2).followers == []

    async def test_toggle_follow_reads_checked_out_state(self) -> None:
        backend = InMemoryPartitionBackend({
            P1: {"accounts": [{"id": 1}]},
            P2: {"accounts": [{"id": 2}]},
        })
        plan = build_plan(await RegistryReader(backend, [P1, P2]).read_all(), "follow", [ToggleFollow(1, 2)])
        # another writer made 1 follow 2 after the plan was compiled
        await backend.store(P1, {"accounts": [{"id": 1, "following": [2]}]})
        await backend.store(P2, {"accounts": [{"id": 2, "followers": [1]}]})
        handles = await _apply(backend, plan)
        assert handles[P1].account(1).following == []
        assert handles[P2].account(2).followers == []

    async def test_follow_self(self, memory_backend: InMemoryPartitionBackend) -> None:
        with pytest.raises(SocialGraphError):
            build_plan(await _view(memory_backend), "follow", [ToggleFollow(1, 1)])


class TestAuxiliary:
    async def test_append_record(self, memory_backend: InMemoryPartitionBackend) -> None:
        plan = build_plan(
            await _view(memory_backend), "create-group",
            [Debit(1, 5000), AppendRecord(GROUPS, "groups", {"name": "g1", "owner": 1})],
        )
        assert plan.partition_ids == [P1, GROUPS]
        handles = await _apply(memory_backend, plan)
        assert handles[GROUPS].record["groups"] == [{"name": "g1", "owner": 1}]

    async def test_append_to_account_partition_rejected(self, memory_backend: InMemoryPartitionBackend) -> None:
        with pytest.raises(InvalidOperationError):
            build_plan(await _view(memory_backend), "x", [AppendRecord(P1, "groups", {})])

    async def test_contribute_only_touches_ledger(self, memory_backend: InMemoryPartitionBackend) -> None:
        plan = build_plan(await _view(memory_backend), "donate", [Contribute("donated", 1, 100)])
        assert plan.partition_ids == []
        assert plan.contributions[0].username == "alice"

    async def test_contribute_to_unknown_board_rejected(self, memory_backend: InMemoryPartitionBackend) -> None:
        with pytest.raises(InvalidOperationError):
            build_plan(
                await _view(memory_backend), "donate",
                [Transfer(1, 2, 300), Contribute("donatd", 1, 300)],
                boards=["donated", "raised"],
            )


class TestDescribe:
    def test_includes_kind_and_fields(self) -> None:
        assert Transfer(1, 2, 5).describe() == {"kind": "Transfer", "from_id": 1, "to_id": 2, "amount": 5}

    def test_nested_payees(self) -> None:
        described = Purchase(1, 10, (Payee(2, 3),)).describe()
        assert described["payees"] == ({"account_id": 2, "amount": 3},)
