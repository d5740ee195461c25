# provide dataclass models

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Literal, Tuple

PaymentMode = Literal["Cash", "UPI"]


@dataclass(frozen=True)
class BusinessProfile:
    business_name: str


@dataclass(frozen=True)
class Product:
    id: str
    name: str  # unique display key
    price: Decimal


@dataclass(frozen=True)
class CartLine:
    """
    One row of a bill. The product fields are a snapshot taken when the line
    was added, so later catalog edits never reach back into history.
    """

    id: str
    product_id: str
    product_name: str
    unit_price: Decimal
    quantity: int
    subtotal: Decimal = field(init=False)

    def __post_init__(self):
        object.__setattr__(self, "subtotal", self.unit_price * self.quantity)


@dataclass(frozen=True)
class Invoice:
    bill_id: str
    date: datetime
    customer_name: str
    customer_phone: str
    payment_mode: PaymentMode
    lines: Tuple[CartLine, ...]
    grand_total: Decimal = field(init=False)

    def __post_init__(self):
        object.__setattr__(self, "lines", tuple(self.lines))
        object.__setattr__(
            self,
            "grand_total",
            sum((line.subtotal for line in self.lines), Decimal(0)),
        )


@dataclass(frozen=True)
class SalesRow:
    key: str  # product id captured on the line, or its name for legacy lines
    name: str
    quantity: int
    income: Decimal


@dataclass(frozen=True)
class SalesReport:
    total_revenue: Decimal
    rows: Tuple[SalesRow, ...]
