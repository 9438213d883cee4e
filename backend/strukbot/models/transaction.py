"""
Persisted receipts.

A transaction header owns its line items. Items are never patched: an edit
deletes every row of the transaction and inserts the new set.
Invariant: total_amount == sum(quantity * price_consumer) within rounding.
"""
from sqlalchemy import Column, Integer, String, ForeignKey, Numeric, DateTime
from sqlalchemy.orm import relationship
from strukbot.db.base import Base


class Transaction(Base):
    __tablename__ = "transactions"

    id = Column(Integer, primary_key=True, index=True)
    invoice_number = Column(String(32), unique=True, nullable=False, index=True)
    store_id = Column(Integer, ForeignKey("stores.id"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    cashier_name = Column(String(50), nullable=False)
    payment_method = Column(String(64), nullable=False)
    total_amount = Column(Numeric(14, 2), nullable=False)  # what the consumer paid
    transaction_date = Column(DateTime, nullable=False, index=True)

    store = relationship("Store")
    items = relationship(
        "TransactionItem",
        back_populates="transaction",
        cascade="all, delete-orphan",
        order_by="TransactionItem.id",
    )

    def __repr__(self):
        return f"<Transaction invoice={self.invoice_number} total={self.total_amount}>"


class TransactionItem(Base):
    __tablename__ = "transaction_items"

    id = Column(Integer, primary_key=True, index=True)
    transaction_id = Column(Integer, ForeignKey("transactions.id", ondelete="CASCADE"), nullable=False, index=True)
    product_name = Column(String(255), nullable=False)
    quantity = Column(Integer, nullable=False)
    unit = Column(String(32), nullable=False)
    price_vp = Column(Numeric(14, 2), nullable=False)  # cost per unit
    price_consumer = Column(Numeric(16, 4), nullable=False)  # revenue per unit, derived from allocation

    transaction = relationship("Transaction", back_populates="items")
