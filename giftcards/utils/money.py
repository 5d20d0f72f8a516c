"""
Exact currency arithmetic helpers.

Balances are stored as DECIMAL(10, 2); every amount entering the ledger is
normalized here so repeated deductions never drift.
"""
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

CENT = Decimal('0.01')
ZERO = Decimal('0.00')


def to_money(value) -> Decimal:
    """
    Convert a number or numeric string to a 2-place Decimal.

    Floats go through str() first so 0.1 becomes Decimal('0.10'), not the
    binary expansion.

    Raises:
        ValueError: If the value is not numeric
    """
    if value is None or value == '':
        return ZERO
    if isinstance(value, float):
        value = str(value)
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value).strip())
    except (InvalidOperation, TypeError):
        raise ValueError(f"Invalid amount: {value!r}")
    if not amount.is_finite():
        raise ValueError(f"Invalid amount: {value!r}")
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def min_money(*amounts) -> Decimal:
    """Smallest of the given amounts, floored at zero."""
    smallest = min(to_money(a) for a in amounts)
    return smallest if smallest > ZERO else ZERO
