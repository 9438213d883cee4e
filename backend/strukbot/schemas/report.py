from pydantic import BaseModel, Field
from typing import List
from datetime import date
from decimal import Decimal


class ProductSales(BaseModel):
    product_name: str
    unit: str
    total_qty: int
    total_revenue: Decimal


class PaymentMethodSales(BaseModel):
    payment_method: str
    count: int
    total: Decimal


class DailySummary(BaseModel):
    day: date
    store_id: int
    store_name: str
    total_sales: Decimal = Decimal("0")
    total_transactions: int = 0
    total_cost: Decimal = Decimal("0")
    total_margin: Decimal = Decimal("0")
    top_products: List[ProductSales] = Field(default_factory=list)
    payment_methods: List[PaymentMethodSales] = Field(default_factory=list)


class StoreSales(BaseModel):
    name: str
    transactions: int = 0
    sales: Decimal = Decimal("0")
    margin: Decimal = Decimal("0")


class RegionalSummary(BaseModel):
    day: date
    region_id: int
    region_name: str
    total_sales: Decimal = Decimal("0")
    total_transactions: int = 0
    total_margin: Decimal = Decimal("0")
    stores: List[StoreSales] = Field(default_factory=list)
