"""
Transaction Store Gateway — atomic ledger writes and invoice lookups.

Each public method takes one session (one pooled connection) for its whole
duration and closes it on every exit path. Writes commit only when every
row was inserted; on any error the unit of work is rolled back and the
caller sees a domain exception, never a partial receipt.
"""
import logging
from datetime import datetime
from decimal import Decimal
from typing import Callable, List, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from strukbot.core.audit import AuditLog
from strukbot.core.exceptions import InvoiceCollision, NotFound, PersistenceFailure, StorageReadFailure
from strukbot.db.session import SessionLocal
from strukbot.models.transaction import Transaction, TransactionItem
from strukbot.schemas.receipt import (
    CreateResult,
    DraftReceipt,
    EditDraft,
    ReceiptItem,
    TransactionSummary,
)
from strukbot.services.pricing_service import (
    allocate_revenue,
    items_revenue,
    per_unit_consumer_price,
)

logger = logging.getLogger(__name__)

UNIT_PRICE_PLACES = Decimal("0.0001")  # transaction_items.price_consumer scale


def _to_row(transaction_id: int, item: ReceiptItem) -> TransactionItem:
    return TransactionItem(
        transaction_id=transaction_id,
        product_name=item.name,
        quantity=item.qty,
        unit=item.unit,
        price_vp=item.price_vp,
        price_consumer=per_unit_consumer_price(item).quantize(UNIT_PRICE_PLACES),
    )


def _from_row(row: TransactionItem) -> ReceiptItem:
    return ReceiptItem(
        name=row.product_name,
        qty=row.quantity,
        unit=row.unit,
        price_vp=Decimal(str(row.price_vp)),
        total_price_consumer=row.quantity * Decimal(str(row.price_consumer)),
    )


class TransactionStore:
    """Create/update/read receipts in the relational ledger."""

    def __init__(self, session_factory: Callable[[], Session] = SessionLocal,
                 clock: Callable[[], datetime] = datetime.now):
        self.session_factory = session_factory
        self.clock = clock

    def create(self, draft: DraftReceipt, store_id: int, user_id: Optional[int]) -> CreateResult:
        """Persist a confirmed receipt.

        Revenue is allocated across the cart from `draft.total_consumer_payment`;
        the stored total is the sum of the allocated line totals.

        Raises:
            InvoiceCollision: invoice number already used (caller may retry)
            PersistenceFailure: anything else went wrong; nothing was written
        """
        items = allocate_revenue(draft.items, draft.total_consumer_payment or 0)
        total_amount = items_revenue(items)

        db = self.session_factory()
        try:
            transaction = Transaction(
                invoice_number=draft.invoice_number,
                store_id=store_id,
                user_id=user_id,
                cashier_name=draft.cashier_name,
                payment_method=draft.payment_method,
                total_amount=total_amount,
                transaction_date=self.clock(),
            )
            db.add(transaction)
            db.flush()  # Get ID without committing

            for item in items:
                db.add(_to_row(transaction.id, item))

            db.commit()
            transaction_id = transaction.id
        except IntegrityError as e:
            db.rollback()
            if self._invoice_exists(db, draft.invoice_number):
                logger.warning(f"[Store] Invoice collision on {draft.invoice_number}")
                raise InvoiceCollision() from e
            raise PersistenceFailure.from_error(e, f"create {draft.invoice_number}") from e
        except SQLAlchemyError as e:
            db.rollback()
            raise PersistenceFailure.from_error(e, f"create {draft.invoice_number}") from e
        finally:
            db.close()

        logger.info(f"[Store] ✅ Transaction {draft.invoice_number} saved ({len(items)} items, total={total_amount})")
        AuditLog.log_transaction(
            "create", draft.invoice_number, user_id, store_id,
            changes={"total_amount": total_amount, "items": len(items)},
        )
        return CreateResult(transaction_id=transaction_id, total_amount=total_amount)

    def update(self, invoice_number: str, draft: EditDraft, user_id: Optional[int]) -> bool:
        """Replace header fields and every line item of an existing receipt.

        Full replace, not a diff: old item rows are deleted and the new set
        inserted inside the same unit of work.

        Raises:
            NotFound: invoice does not exist
            PersistenceFailure: storage error; nothing was changed
        """
        new_total = items_revenue(draft.items)

        db = self.session_factory()
        try:
            transaction = db.query(Transaction).filter(Transaction.invoice_number == invoice_number).first()
            if not transaction:
                raise NotFound(f"❌ Transaksi `{invoice_number}` tidak ditemukan.")

            transaction.cashier_name = draft.cashier_name
            transaction.payment_method = draft.payment_method
            transaction.total_amount = new_total

            db.query(TransactionItem).filter(
                TransactionItem.transaction_id == transaction.id
            ).delete(synchronize_session=False)

            for item in draft.items:
                db.add(_to_row(transaction.id, item))

            db.commit()
            store_id = transaction.store_id
        except NotFound:
            db.rollback()
            raise
        except SQLAlchemyError as e:
            db.rollback()
            raise PersistenceFailure.from_error(e, f"update {invoice_number}") from e
        finally:
            db.close()

        logger.info(f"[Store] Transaction {invoice_number} updated ({len(draft.items)} items, total={new_total})")
        AuditLog.log_transaction(
            "update", invoice_number, user_id, store_id,
            changes={
                "cashier_name": draft.cashier_name,
                "payment_method": draft.payment_method,
                "total_amount": new_total,
                "items": len(draft.items),
            },
        )
        return True

    def find_by_invoice(self, invoice_number: str, store_id: Optional[int] = None) -> EditDraft:
        """Load a receipt in edit-draft shape.

        With `store_id` the lookup only matches that store, so guessing an
        invoice number of another store yields NotFound.
        """
        db = self.session_factory()
        try:
            query = db.query(Transaction).filter(Transaction.invoice_number == invoice_number)
            if store_id:
                query = query.filter(Transaction.store_id == store_id)
            transaction = query.first()
            if not transaction:
                raise NotFound(f"❌ Transaksi dengan invoice `{invoice_number}` tidak ditemukan di toko ini.")

            return EditDraft(
                invoice_number=transaction.invoice_number,
                store_id=transaction.store_id,
                store_name=transaction.store.name if transaction.store else "",
                cashier_name=transaction.cashier_name,
                payment_method=transaction.payment_method,
                total_amount=Decimal(str(transaction.total_amount)),
                transaction_date=transaction.transaction_date,
                items=[_from_row(row) for row in transaction.items],
            )
        except SQLAlchemyError as e:
            raise StorageReadFailure.from_error(e, f"find {invoice_number}") from e
        finally:
            db.close()

    def recent(self, store_id: int, limit: int = 5) -> List[TransactionSummary]:
        """Latest receipts of one store, newest first."""
        db = self.session_factory()
        try:
            rows = (
                db.query(Transaction)
                .filter(Transaction.store_id == store_id)
                .order_by(Transaction.transaction_date.desc(), Transaction.id.desc())
                .limit(limit)
                .all()
            )
            return [TransactionSummary.model_validate(row) for row in rows]
        except SQLAlchemyError as e:
            raise StorageReadFailure.from_error(e, f"recent for store {store_id}") from e
        finally:
            db.close()

    @staticmethod
    def _invoice_exists(db: Session, invoice_number: Optional[str]) -> bool:
        try:
            return db.query(Transaction.id).filter(Transaction.invoice_number == invoice_number).first() is not None
        except SQLAlchemyError:
            return False
