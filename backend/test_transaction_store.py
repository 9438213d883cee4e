"""Ledger gateway against an in-memory SQLite database."""
from datetime import datetime
from decimal import Decimal

import pytest

from conftest import failing_sessions
from strukbot.core.exceptions import InvoiceCollision, NotFound, PersistenceFailure, StorageReadFailure, ValidationError
from strukbot.models import Transaction, TransactionItem
from strukbot.schemas.receipt import DraftReceipt, EditDraft, ReceiptItem
from strukbot.services.transaction_service import TransactionStore


@pytest.fixture
def store(session_factory, clock):
    return TransactionStore(session_factory=session_factory, clock=clock)


def _draft(invoice="VP-261017-0001", payment=130000, items=None):
    return DraftReceipt(
        cashier_name="Ana",
        items=items or [ReceiptItem(name="Salsavage", qty=30, unit="ml", price_vp=Decimal(2000))],
        total_consumer_payment=Decimal(payment),
        payment_method="💵 Tunai",
        invoice_number=invoice,
    )


def test_create_persists_header_and_allocated_items(store, directory, session_factory):
    result = store.create(_draft(), directory.kemang_id, directory.cashier_id)

    assert result.total_amount == Decimal("130000")
    db = session_factory()
    try:
        trx = db.query(Transaction).filter(Transaction.id == result.transaction_id).one()
        assert trx.invoice_number == "VP-261017-0001"
        assert Decimal(str(trx.total_amount)) == Decimal("130000")
        assert len(trx.items) == 1
        assert Decimal(str(trx.items[0].price_consumer)).quantize(Decimal("0.01")) == Decimal("4333.33")
    finally:
        db.close()


def test_round_trip_reconstructs_line_totals(store, directory):
    items = [
        ReceiptItem(name="Salsavage", qty=30, unit="ml", price_vp=Decimal(2000)),
        ReceiptItem(name="Botol PX38", qty=2, unit="pcs", price_vp=Decimal(7000)),
    ]
    store.create(_draft(payment=148000, items=items), directory.kemang_id, directory.cashier_id)

    loaded = store.find_by_invoice("VP-261017-0001", directory.kemang_id)

    # cost 60000 + 14000, payment 148000 → exactly double
    assert [i.total_price_consumer for i in loaded.items] == [Decimal("120000"), Decimal("28000")]
    assert loaded.cashier_name == "Ana"
    assert loaded.store_name == "Toko Kemang"
    assert loaded.total_amount == Decimal("148000")


def test_find_respects_store_scope(store, directory):
    store.create(_draft(), directory.kemang_id, directory.cashier_id)

    with pytest.raises(NotFound) as exc:
        store.find_by_invoice("VP-261017-0001", directory.senayan_id)

    assert "tidak ditemukan di toko ini" in exc.value.message
    assert store.find_by_invoice("VP-261017-0001").store_id == directory.kemang_id


def test_duplicate_invoice_is_a_validation_error(store, directory, session_factory):
    store.create(_draft(), directory.kemang_id, directory.cashier_id)

    with pytest.raises(InvoiceCollision) as exc:
        store.create(_draft(payment=5000), directory.kemang_id, directory.cashier_id)

    assert isinstance(exc.value, ValidationError)
    db = session_factory()
    try:
        assert db.query(Transaction).count() == 1
        assert db.query(TransactionItem).count() == 1
    finally:
        db.close()


def test_update_replaces_items_wholesale(store, directory, session_factory):
    items = [
        ReceiptItem(name="A", qty=1, unit="pcs", price_vp=Decimal(1000)),
        ReceiptItem(name="B", qty=1, unit="pcs", price_vp=Decimal(1000)),
        ReceiptItem(name="C", qty=1, unit="pcs", price_vp=Decimal(1000)),
    ]
    store.create(_draft(payment=6000, items=items), directory.kemang_id, directory.cashier_id)
    draft = store.find_by_invoice("VP-261017-0001")
    draft.items.pop(1)
    draft.items.append(ReceiptItem(name="D", qty=4, unit="ml", price_vp=Decimal(500), total_price_consumer=Decimal(8000)))
    draft.cashier_name = "Sari"

    assert store.update("VP-261017-0001", draft, directory.store_head_id) is True

    reloaded = store.find_by_invoice("VP-261017-0001")
    assert [i.name for i in reloaded.items] == ["A", "C", "D"]
    assert reloaded.total_amount == Decimal("12000")
    assert reloaded.cashier_name == "Sari"
    db = session_factory()
    try:
        assert db.query(TransactionItem).count() == 3
    finally:
        db.close()


def test_update_unknown_invoice(store, directory):
    missing = EditDraft(
        invoice_number="VP-000000-0000",
        store_id=directory.kemang_id,
        cashier_name="Ana",
        payment_method="💵 Tunai",
        total_amount=Decimal(0),
        transaction_date=datetime(2026, 10, 17),
    )

    with pytest.raises(NotFound):
        store.update("VP-000000-0000", missing, directory.store_head_id)


def test_recent_lists_newest_first(store, directory, clock):
    for n in range(7):
        store.create(_draft(invoice=f"VP-261017-000{n}", payment=1000 + n), directory.kemang_id, directory.cashier_id)
        clock.advance(minutes=1)
    store.create(_draft(invoice="VP-261017-9999"), directory.senayan_id, directory.store_head_id)

    recent = store.recent(directory.kemang_id)

    assert [t.invoice_number for t in recent] == [f"VP-261017-000{n}" for n in (6, 5, 4, 3, 2)]


def test_failed_create_leaves_no_rows(directory, session_factory, clock):
    broken = TransactionStore(session_factory=failing_sessions(session_factory), clock=clock)

    with pytest.raises(PersistenceFailure):
        broken.create(_draft(), directory.kemang_id, directory.cashier_id)

    db = session_factory()
    try:
        assert db.query(Transaction).count() == 0
        assert db.query(TransactionItem).count() == 0
    finally:
        db.close()


def test_failed_update_keeps_previous_receipt(store, directory, session_factory, clock):
    store.create(_draft(), directory.kemang_id, directory.cashier_id)
    draft = store.find_by_invoice("VP-261017-0001")
    draft.items = [ReceiptItem(name="Lain", qty=1, unit="pcs", price_vp=Decimal(10), total_price_consumer=Decimal(10))]
    draft.cashier_name = "Sari"
    broken = TransactionStore(session_factory=failing_sessions(session_factory), clock=clock)

    with pytest.raises(PersistenceFailure):
        broken.update("VP-261017-0001", draft, directory.store_head_id)

    reloaded = store.find_by_invoice("VP-261017-0001")
    assert reloaded.cashier_name == "Ana"
    assert [i.name for i in reloaded.items] == ["Salsavage"]
    assert reloaded.total_amount == Decimal("130000")


def test_failed_lookup_is_a_read_failure(directory, session_factory, clock):
    broken = TransactionStore(session_factory=failing_sessions(session_factory, "query"), clock=clock)

    with pytest.raises(StorageReadFailure):
        broken.find_by_invoice("VP-261017-0001")
    with pytest.raises(StorageReadFailure):
        broken.recent(directory.kemang_id)
