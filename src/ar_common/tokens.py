"""Integer arithmetic for token balances.

All balances and prices are non-negative ints. No float, no Decimal.
"""


def validate_amount(amount: int, *, allow_zero: bool = False) -> None:
    """Reject non-int, bool, negative (and by default zero) amounts."""
    if isinstance(amount, bool) or not isinstance(amount, int):
        raise ValueError(f"Amount must be an int, got {type(amount).__name__}")
    if amount < 0 or (amount == 0 and not allow_zero):
        raise ValueError(f"Amount must be positive, got {amount}")


def share_of(price: int, share_bps: int) -> int:
    """Floor share of price in basis points: 35% of 999 -> 349.

    Floor means the platform never pays out more than the buyer spent.
    """
    if not (0 <= share_bps <= 10000):
        raise ValueError(f"share_bps must be between 0 and 10000, got {share_bps}")
    return price * share_bps // 10000
