"""
Report read surface: daily (per store) and regional aggregates.

Provides:
- Sales total and transaction count for a day
- Cost total and margin (revenue - cost)
- Top-selling products and payment method breakdown
- Per-store breakdown for a region
"""
import logging
from datetime import date
from decimal import Decimal
from typing import Callable

from sqlalchemy import func, and_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from strukbot.core.exceptions import StorageReadFailure
from strukbot.db.session import SessionLocal
from strukbot.models.store import Region, Store
from strukbot.models.transaction import Transaction, TransactionItem
from strukbot.schemas.report import (
    DailySummary,
    PaymentMethodSales,
    ProductSales,
    RegionalSummary,
    StoreSales,
)
from strukbot.services.pricing_service import margin

logger = logging.getLogger(__name__)


def _money(value) -> Decimal:
    return Decimal(str(value or 0))


class ReportService:

    def __init__(self, session_factory: Callable[[], Session] = SessionLocal):
        self.session_factory = session_factory

    def daily_summary(self, day: date, store_id: int) -> DailySummary:
        db = self.session_factory()
        try:
            on_day = func.date(Transaction.transaction_date) == day

            totals = db.query(
                func.sum(Transaction.total_amount).label("sales"),
                func.count(Transaction.id).label("count"),
            ).filter(on_day, Transaction.store_id == store_id).one()

            total_cost = db.query(
                func.sum(TransactionItem.price_vp * TransactionItem.quantity)
            ).join(
                Transaction, TransactionItem.transaction_id == Transaction.id
            ).filter(on_day, Transaction.store_id == store_id).scalar()

            top_products = db.query(
                TransactionItem.product_name,
                TransactionItem.unit,
                func.sum(TransactionItem.quantity).label("total_qty"),
                func.sum(TransactionItem.quantity * TransactionItem.price_consumer).label("total_revenue"),
            ).join(
                Transaction, TransactionItem.transaction_id == Transaction.id
            ).filter(
                on_day, Transaction.store_id == store_id
            ).group_by(
                TransactionItem.product_name, TransactionItem.unit
            ).order_by(
                func.sum(TransactionItem.quantity).desc()
            ).limit(5).all()

            payment_methods = db.query(
                Transaction.payment_method,
                func.count(Transaction.id).label("count"),
                func.sum(Transaction.total_amount).label("total"),
            ).filter(
                on_day, Transaction.store_id == store_id
            ).group_by(Transaction.payment_method).all()

            store = db.query(Store).filter(Store.id == store_id).first()

            total_sales = _money(totals.sales)
            return DailySummary(
                day=day,
                store_id=store_id,
                store_name=store.name if store else "Toko Tidak Dikenal",
                total_sales=total_sales,
                total_transactions=totals.count or 0,
                total_cost=_money(total_cost),
                total_margin=margin(total_sales, _money(total_cost)),
                top_products=[
                    ProductSales(
                        product_name=r.product_name,
                        unit=r.unit,
                        total_qty=int(r.total_qty or 0),
                        total_revenue=_money(r.total_revenue),
                    )
                    for r in top_products
                ],
                payment_methods=[
                    PaymentMethodSales(payment_method=r.payment_method, count=r.count, total=_money(r.total))
                    for r in payment_methods
                ],
            )
        except SQLAlchemyError as e:
            raise StorageReadFailure.from_error(e, f"daily report store={store_id}") from e
        finally:
            db.close()

    def regional_summary(self, day: date, region_id: int) -> RegionalSummary:
        db = self.session_factory()
        try:
            on_day = func.date(Transaction.transaction_date) == day
            line_margin = (
                TransactionItem.price_consumer * TransactionItem.quantity
                - TransactionItem.price_vp * TransactionItem.quantity
            )

            region = db.query(Region).filter(Region.id == region_id).first()

            totals = db.query(
                func.sum(Transaction.total_amount).label("sales"),
                func.count(Transaction.id).label("count"),
            ).join(
                Store, Transaction.store_id == Store.id
            ).filter(on_day, Store.region_id == region_id).one()

            total_margin = db.query(func.sum(line_margin)).join(
                Transaction, TransactionItem.transaction_id == Transaction.id
            ).join(
                Store, Transaction.store_id == Store.id
            ).filter(on_day, Store.region_id == region_id).scalar()

            # Sales per store are summed from headers separately so that a
            # receipt with several lines is not counted once per line.
            store_sales = db.query(
                Store.id,
                Store.name,
                func.count(Transaction.id).label("transactions"),
                func.sum(Transaction.total_amount).label("sales"),
            ).outerjoin(
                Transaction, and_(Transaction.store_id == Store.id, on_day)
            ).filter(
                Store.region_id == region_id, Store.status == "active"
            ).group_by(Store.id, Store.name).all()

            store_margins = dict(
                db.query(Store.id, func.sum(line_margin)).join(
                    Transaction, Transaction.store_id == Store.id
                ).join(
                    TransactionItem, TransactionItem.transaction_id == Transaction.id
                ).filter(
                    on_day, Store.region_id == region_id
                ).group_by(Store.id).all()
            )

            stores = [
                StoreSales(
                    name=r.name,
                    transactions=r.transactions or 0,
                    sales=_money(r.sales),
                    margin=_money(store_margins.get(r.id)),
                )
                for r in store_sales
            ]
            stores.sort(key=lambda s: s.sales, reverse=True)

            return RegionalSummary(
                day=day,
                region_id=region_id,
                region_name=region.name if region else "N/A",
                total_sales=_money(totals.sales),
                total_transactions=totals.count or 0,
                total_margin=_money(total_margin),
                stores=stores,
            )
        except SQLAlchemyError as e:
            raise StorageReadFailure.from_error(e, f"regional report region={region_id}") from e
        finally:
            db.close()
