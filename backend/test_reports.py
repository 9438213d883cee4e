"""Daily and regional aggregates."""
from datetime import date, datetime, timedelta
from decimal import Decimal

import pytest

from strukbot.schemas.receipt import DraftReceipt, ReceiptItem
from strukbot.services.formatting import format_daily_report, format_regional_report
from strukbot.services.report_service import ReportService
from strukbot.services.transaction_service import TransactionStore

DAY = date(2026, 10, 17)


@pytest.fixture
def reports(session_factory):
    return ReportService(session_factory)


@pytest.fixture
def ledger(session_factory, clock):
    return TransactionStore(session_factory=session_factory, clock=clock)


def _receipt(invoice, payment, method="💵 Tunai", qty=2, price_vp=1000):
    return DraftReceipt(
        cashier_name="Ana",
        items=[ReceiptItem(name="Salsavage", qty=qty, unit="ml", price_vp=Decimal(price_vp))],
        total_consumer_payment=Decimal(payment),
        payment_method=method,
        invoice_number=invoice,
    )


def test_daily_summary_for_one_store(ledger, reports, directory, clock):
    ledger.create(_receipt("VP-1", 5000), directory.kemang_id, directory.cashier_id)
    ledger.create(_receipt("VP-2", 3000, method="💳 QRIS"), directory.kemang_id, directory.cashier_id)
    ledger.create(_receipt("VP-3", 9000), directory.senayan_id, directory.store_head_id)
    clock.advance(days=1)
    ledger.create(_receipt("VP-4", 7000), directory.kemang_id, directory.cashier_id)

    summary = reports.daily_summary(DAY, directory.kemang_id)

    assert summary.store_name == "Toko Kemang"
    assert summary.total_transactions == 2
    assert summary.total_sales == Decimal("8000")
    assert summary.total_cost == Decimal("4000")
    assert summary.total_margin == Decimal("4000")
    assert summary.top_products[0].product_name == "Salsavage"
    assert summary.top_products[0].total_qty == 4
    assert {pm.payment_method: pm.count for pm in summary.payment_methods} == {"💵 Tunai": 1, "💳 QRIS": 1}
    assert "Rp 8.000" in format_daily_report(summary)


def test_daily_summary_without_sales(reports, directory):
    summary = reports.daily_summary(DAY, directory.senayan_id)

    assert summary.total_transactions == 0
    assert summary.total_sales == Decimal("0")
    assert "Tidak ada produk" in format_daily_report(summary)


def test_regional_summary_breaks_down_active_stores(ledger, reports, directory):
    ledger.create(_receipt("VP-1", 5000), directory.kemang_id, directory.cashier_id)
    ledger.create(_receipt("VP-2", 9000), directory.senayan_id, directory.store_head_id)
    ledger.create(_receipt("VP-3", 4000), directory.senayan_id, directory.store_head_id)
    ledger.create(_receipt("VP-4", 99000), directory.dago_id, directory.store_head_id)

    summary = reports.regional_summary(DAY, directory.jakarta_id)

    assert summary.region_name == "Regional Jakarta"
    assert summary.total_transactions == 3
    assert summary.total_sales == Decimal("18000")
    assert summary.total_margin.quantize(Decimal("1")) == Decimal("12000")
    assert [s.name for s in summary.stores] == ["Toko Senayan", "Toko Kemang"]
    assert summary.stores[0].transactions == 2
    assert summary.stores[0].sales == Decimal("13000")
    text = format_regional_report(summary)
    assert "Toko Depok" not in text
    assert "72.2%" in text
