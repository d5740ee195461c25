# in-memory bill being built at the counter, nothing here touches storage
from __future__ import annotations

import math
import uuid
from decimal import Decimal, InvalidOperation
from typing import Iterable, Iterator, List, Optional, Tuple

from db.errors import InvalidInputError, NotFoundError
from db.models import CartLine, Product


def to_price(value) -> Decimal:
    """Coerce form/CSV/python input into a non-negative Decimal price.

    Raises InvalidInputError for bools, NaN, infinities, negatives and text
    that is not a number.
    """
    if isinstance(value, bool) or value is None:
        raise InvalidInputError(f"Price must be a number, got {value!r}.")
    if isinstance(value, float) and not math.isfinite(value):
        raise InvalidInputError(f"Price must be finite, got {value!r}.")
    if isinstance(value, Decimal):
        price = value
    else:
        try:
            # str() first so 10.1 stays 10.1 instead of its binary expansion
            price = Decimal(str(value).strip())
        except InvalidOperation:
            raise InvalidInputError(
                f"Price must be a number, got {value!r}."
            ) from None
    if not price.is_finite():
        raise InvalidInputError(f"Price must be finite, got {value!r}.")
    if price < 0:
        raise InvalidInputError("Price cannot be negative.")
    return price


def to_quantity(value) -> int:
    """Coerce input into a positive integer quantity."""
    if isinstance(value, bool):
        raise InvalidInputError(f"Quantity must be a whole number, got {value!r}.")
    if isinstance(value, int):
        qty = value
    elif isinstance(value, str) and value.strip().isdecimal():
        qty = int(value.strip())
    else:
        raise InvalidInputError(f"Quantity must be a whole number, got {value!r}.")
    if qty <= 0:
        raise InvalidInputError("Quantity must be at least 1.")
    return qty


def find_product(catalog: Iterable[Product], ref) -> Optional[Product]:
    """First product whose id or display name equals the trimmed `ref`."""
    needle = str(ref).strip()
    if not needle:
        return None
    for prod in catalog:
        if prod.id == needle or prod.name == needle:
            return prod
    return None


class Cart:
    """
    Line items of the bill currently on screen.

    Adding the same product twice gives two rows; rows are never merged.
    Every failed operation leaves the cart exactly as it was.
    """

    def __init__(self) -> None:
        self._lines: List[CartLine] = []

    @property
    def lines(self) -> Tuple[CartLine, ...]:
        return tuple(self._lines)

    def __len__(self) -> int:
        return len(self._lines)

    def __iter__(self) -> Iterator[CartLine]:
        return iter(tuple(self._lines))

    def __bool__(self) -> bool:
        return bool(self._lines)

    def add_line(
        self,
        ref,
        unit_price,
        quantity,
        catalog: Iterable[Product],
    ) -> CartLine:
        """
        Resolve `ref` (product id or name) in `catalog` and append a new line.
        A `unit_price` of None bills at the catalog price.
        """
        prod = find_product(catalog, ref)
        if prod is None:
            raise NotFoundError(f"Product {str(ref).strip()!r} not found.")
        price = prod.price if unit_price is None else to_price(unit_price)
        qty = to_quantity(quantity)

        line = CartLine(
            id=uuid.uuid4().hex,
            product_id=prod.id,
            product_name=prod.name,
            unit_price=price,
            quantity=qty,
        )
        self._lines.append(line)
        return line

    def remove_line(self, line_id: str) -> None:
        self._lines = [line for line in self._lines if line.id != line_id]

    def clear(self) -> None:
        self._lines.clear()

    def total(self) -> Decimal:
        return sum((line.subtotal for line in self._lines), Decimal(0))
