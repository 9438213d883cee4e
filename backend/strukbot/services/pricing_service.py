"""Cost, revenue allocation and margin. Pure functions, no I/O."""
from datetime import datetime
from decimal import Decimal, ROUND_DOWN, ROUND_HALF_UP
from typing import List, Sequence

from strukbot.schemas.receipt import ReceiptItem

CENT = Decimal("0.01")


def to_money(value) -> Decimal:
    return Decimal(str(value))


def item_cost(item: ReceiptItem) -> Decimal:
    return item.qty * item.price_vp


def cart_cost(items: Sequence[ReceiptItem]) -> Decimal:
    return sum((item_cost(item) for item in items), Decimal("0"))


def items_revenue(items: Sequence[ReceiptItem]) -> Decimal:
    """Sum of line totals paid by the consumer (unset lines count as zero)."""
    return sum((item.total_price_consumer or Decimal("0") for item in items), Decimal("0"))


def allocate_revenue(items: Sequence[ReceiptItem], total_payment) -> List[ReceiptItem]:
    """Split one consumer payment across the cart proportionally to line cost.

    Largest-remainder rounding: every share is floored to the cent, then the
    cents still missing go one each to the lines with the biggest dropped
    fraction (larger cost wins a tie). Shares add up to `total_payment` and
    none is ever negative. A zero-cost cart gets a zero share on every line.

    Args:
        items: Cart lines (qty and price_vp as entered)
        total_payment: What the consumer paid for the whole cart

    Returns:
        New items with `total_price_consumer` set; input is left untouched
    """
    total_payment = to_money(total_payment).quantize(CENT, rounding=ROUND_HALF_UP)
    total_cost = cart_cost(items)

    if total_cost <= 0:
        return [item.model_copy(update={"total_price_consumer": Decimal("0")}) for item in items]

    exact = [item_cost(item) * total_payment / total_cost for item in items]
    shares = [value.quantize(CENT, rounding=ROUND_DOWN) for value in exact]

    missing_cents = int((total_payment - sum(shares, Decimal("0"))) / CENT)
    by_fraction = sorted(
        range(len(items)),
        key=lambda i: (exact[i] - shares[i], item_cost(items[i])),
        reverse=True,
    )
    for i in by_fraction[:missing_cents]:
        shares[i] += CENT

    return [
        item.model_copy(update={"total_price_consumer": share})
        for item, share in zip(items, shares)
    ]


def per_unit_consumer_price(item: ReceiptItem) -> Decimal:
    """Revenue per unit. Quantity is validated positive on entry."""
    if item.qty == 0:
        raise ZeroDivisionError(f"Item '{item.name}' has zero quantity")
    return (item.total_price_consumer or Decimal("0")) / item.qty


def margin(revenue, cost) -> Decimal:
    """Revenue minus cost. Negative means the sale was a loss, which is allowed."""
    return to_money(revenue) - to_money(cost)


def generate_invoice_number(now: datetime, prefix: str = "VP") -> str:
    """`<prefix>-<yyMMdd>-<last 4 digits of the ms timestamp>`.

    Unique enough for a few receipts per store per day; the unique index on
    `transactions.invoice_number` is the real collision guard.
    """
    millis = str(int(now.timestamp() * 1000))
    return f"{prefix}-{now.strftime('%y%m%d')}-{millis[-4:]}"
