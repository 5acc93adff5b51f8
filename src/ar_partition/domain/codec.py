"""Wire codec between partition documents and Account dataclasses.

Document shape: {"accounts": [ {...account...}, ... ], <other keys preserved>}
Account wire names follow the stored data (authTokens, friendRequests,
skins, equippedSkin, isVerified, ...). Fields this codec does not know are
kept in Account.extra and written back unchanged.
"""

import hashlib
import json
from typing import Any

from src.ar_common.enums import AccountRole
from src.ar_common.errors import MalformedPartitionError
from src.ar_partition.domain.models import Account, FriendRequest, InventoryItem

ACCOUNTS_KEY = "accounts"

_KNOWN_FIELDS = frozenset({
    "id", "username", "authTokens", "friends", "friendRequests", "followers",
    "following", "skins", "equippedSkin", "gamepasses", "isVerified", "role",
    "bio", "pfp",
})


def compute_revision(record: dict[str, Any]) -> str:
    """Content hash of a record; stable across key order."""
    canonical = json.dumps(record, sort_keys=True, separators=(",", ":"), ensure_ascii=True)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def _int_list(raw: Any, field_name: str) -> list[int]:
    if raw is None:
        return []
    if not isinstance(raw, list):
        raise ValueError(f"{field_name} must be a list")
    return [int(v) for v in raw]


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def decode_account(raw: Any) -> Account:
    if not isinstance(raw, dict):
        raise ValueError("account entry is not an object")
    account_id = raw.get("id")
    if not _is_int(account_id):
        raise ValueError(f"account id must be an int, got {account_id!r}")
    balance = raw.get("authTokens", 0)
    if not _is_int(balance) or balance < 0:
        raise ValueError(f"account {account_id} has invalid balance {balance!r}")

    requests = [
        FriendRequest(from_id=int(r["from"]), from_username=str(r.get("fromUsername", "")))
        for r in raw.get("friendRequests") or []
    ]
    inventory = []
    for item in raw.get("skins") or []:
        attributes = {k: v for k, v in item.items() if k not in ("id", "count")}
        inventory.append(
            InventoryItem(item_id=str(item["id"]), count=int(item.get("count", 1)), attributes=attributes)
        )

    return Account(
        id=account_id,
        username=str(raw.get("username", "")),
        balance=balance,
        friends=_int_list(raw.get("friends"), "friends"),
        friend_requests=requests,
        followers=_int_list(raw.get("followers"), "followers"),
        following=_int_list(raw.get("following"), "following"),
        inventory=inventory,
        equipped_item=raw.get("equippedSkin"),
        gamepasses=dict(raw.get("gamepasses") or {}),
        is_verified=bool(raw.get("isVerified", False)),
        role=AccountRole(raw.get("role") or AccountRole.USER.value),
        bio=str(raw.get("bio") or ""),
        pfp=str(raw.get("pfp") or ""),
        extra={k: v for k, v in raw.items() if k not in _KNOWN_FIELDS},
    )


def encode_account(account: Account) -> dict[str, Any]:
    doc: dict[str, Any] = dict(account.extra)
    doc.update({
        "id": account.id,
        "username": account.username,
        "authTokens": account.balance,
        "friends": list(account.friends),
        "friendRequests": [
            {"from": r.from_id, "fromUsername": r.from_username}
            for r in account.friend_requests
        ],
        "followers": list(account.followers),
        "following": list(account.following),
        "skins": [
            {**i.attributes, "id": i.item_id, "count": i.count} for i in account.inventory
        ],
        "equippedSkin": account.equipped_item,
        "gamepasses": dict(account.gamepasses),
        "isVerified": account.is_verified,
        "role": account.role.value,
        "bio": account.bio,
        "pfp": account.pfp,
    })
    return doc


def decode_accounts(record: dict[str, Any] | None, partition_id: str) -> list[Account]:
    """Decode a partition record. Empty or missing record -> empty list."""
    if not record:
        return []
    raw_accounts = record.get(ACCOUNTS_KEY)
    if raw_accounts is None:
        return []
    if not isinstance(raw_accounts, list):
        raise MalformedPartitionError(partition_id, f"'{ACCOUNTS_KEY}' is not a list")
    try:
        return [decode_account(raw) for raw in raw_accounts]
    except (AttributeError, KeyError, TypeError, ValueError) as e:
        raise MalformedPartitionError(partition_id, str(e)) from e


def encode_accounts(record: dict[str, Any], accounts: list[Account]) -> dict[str, Any]:
    """Return a copy of record with the account list replaced."""
    return {**record, ACCOUNTS_KEY: [encode_account(a) for a in accounts]}
