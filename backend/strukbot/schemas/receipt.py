from pydantic import BaseModel, Field
from typing import List, Optional
from datetime import datetime
from decimal import Decimal


class ReceiptItem(BaseModel):
    """
    The one item shape used by drafts, edits and storage.

    `total_price_consumer` is what the consumer paid for the whole line; it is
    unset while a new receipt is being entered and filled by allocation.
    Storage aliases (product_name, quantity, price_consumer) are derived at
    the persistence boundary.
    """
    name: str
    qty: int = Field(gt=0)
    unit: str
    price_vp: Decimal = Field(ge=0)
    total_price_consumer: Optional[Decimal] = None


class DraftReceipt(BaseModel):
    cashier_name: str = ""
    items: List[ReceiptItem] = Field(default_factory=list)
    total_consumer_payment: Optional[Decimal] = None
    payment_method: Optional[str] = None
    invoice_number: Optional[str] = None


class EditDraft(BaseModel):
    """A persisted transaction loaded into an edit session."""
    invoice_number: str
    store_id: int
    store_name: str = ""
    cashier_name: str
    payment_method: str
    total_amount: Decimal
    transaction_date: datetime
    items: List[ReceiptItem] = Field(default_factory=list)


class CreateResult(BaseModel):
    transaction_id: int
    total_amount: Decimal


class TransactionSummary(BaseModel):
    invoice_number: str
    cashier_name: str
    payment_method: str
    total_amount: Decimal
    transaction_date: datetime

    class Config:
        from_attributes = True
