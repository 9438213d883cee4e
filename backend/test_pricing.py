"""Allocation, margin and invoice numbering."""
from datetime import datetime
from decimal import Decimal

import pytest

from strukbot.schemas.receipt import ReceiptItem
from strukbot.services.formatting import format_rupiah
from strukbot.services.pricing_service import (
    allocate_revenue,
    cart_cost,
    generate_invoice_number,
    items_revenue,
    margin,
    per_unit_consumer_price,
)


def _item(name, qty, price_vp, total=None):
    return ReceiptItem(name=name, qty=qty, unit="pcs", price_vp=Decimal(price_vp), total_price_consumer=total)


def test_allocation_is_proportional_to_cost():
    items = [_item("A", 30, 2000), _item("B", 1, 7000)]  # 60000 + 7000

    allocated = allocate_revenue(items, 134000)

    assert allocated[0].total_price_consumer == Decimal("120000.00")
    assert allocated[1].total_price_consumer == Decimal("14000.00")


@pytest.mark.parametrize("payment", [100, 130000, 99999, 1, 7777777])
def test_allocation_shares_add_up_exactly(payment):
    """Rounding remainder is absorbed so the shares always sum to the payment."""
    items = [_item("A", 3, 1000), _item("B", 7, 333), _item("C", 1, 1)]

    allocated = allocate_revenue(items, payment)

    assert items_revenue(allocated) == Decimal(payment)
    assert all(item.total_price_consumer >= 0 for item in allocated)


def test_allocation_missing_cent_goes_to_largest_fraction():
    items = [_item("small", 1, 1), _item("big", 1, 2), _item("mid", 1, 1.5)]

    allocated = allocate_revenue(items, 10)

    # 10 * (1/4.5, 2/4.5, 1.5/4.5) = 2.222, 4.444(+0.01), 3.333
    assert [i.total_price_consumer for i in allocated] == [Decimal("2.22"), Decimal("4.45"), Decimal("3.33")]


def test_allocation_over_many_tiny_lines_stays_non_negative():
    items = [_item(f"Sampel {n}", 1, 1) for n in range(200)]

    allocated = allocate_revenue(items, 1)
    shares = [i.total_price_consumer for i in allocated]

    assert sum(shares) == Decimal("1")
    assert min(shares) == Decimal("0")
    assert shares.count(Decimal("0.01")) == 100


def test_allocation_spreads_cents_one_at_a_time():
    items = [_item("A", 1, 1), _item("B", 1, 1), _item("C", 1, 1)]

    allocated = allocate_revenue(items, 100)

    shares = sorted(i.total_price_consumer for i in allocated)
    assert shares == [Decimal("33.33"), Decimal("33.33"), Decimal("33.34")]


def test_zero_cost_cart_gets_zero_everywhere():
    items = [_item("Gratis", 2, 0), _item("Bonus", 1, 0)]

    allocated = allocate_revenue(items, 50000)

    assert [i.total_price_consumer for i in allocated] == [Decimal("0"), Decimal("0")]


def test_allocation_leaves_input_untouched():
    items = [_item("A", 1, 1000)]

    allocate_revenue(items, 5000)

    assert items[0].total_price_consumer is None


def test_cost_and_margin():
    items = [_item("Salsavage", 30, 2000)]

    assert cart_cost(items) == Decimal("60000")
    assert margin(130000, cart_cost(items)) == Decimal("70000")
    assert margin(50000, cart_cost(items)) == Decimal("-10000")


def test_per_unit_consumer_price():
    item = _item("Salsavage", 30, 2000, total=Decimal("130000"))

    assert per_unit_consumer_price(item).quantize(Decimal("0.01")) == Decimal("4333.33")


def test_invoice_number_format():
    now = datetime(2026, 10, 17, 14, 5, 0, 123000)
    millis = str(int(now.timestamp() * 1000))

    invoice = generate_invoice_number(now)

    assert invoice == f"VP-261017-{millis[-4:]}"
    assert generate_invoice_number(now, prefix="KM").startswith("KM-261017-")


@pytest.mark.parametrize("amount,expected", [
    (130000, "Rp 130.000"),
    (Decimal("4333.33"), "Rp 4.333,33"),
    (0, "Rp 0"),
    (-5000, "-Rp 5.000"),
    (None, "Rp 0"),
])
def test_format_rupiah(amount, expected):
    assert format_rupiah(amount) == expected
