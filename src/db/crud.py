# src/db/crud.py
from __future__ import annotations

import json
import re
import sqlite3
import uuid
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import List, Optional

from db import models
from db.cart import Cart, find_product, to_price
from db.database import connect
from db.errors import EmptyCartError, InvalidInputError, StorageError
from utils.logger import get_logger
from utils.pure import aggregate_sales, parse_catalog_csv

_logger = get_logger(__name__)

BUSINESS_KEY = "billing_app_business_setup"
PRODUCTS_KEY = "billing_app_products"
PASSWORD_KEY = "billing_app_secret_password"
BILLING_HISTORY_KEY = "billing_app_history"
BILL_NO_KEY = "billNo"

BILL_NO_SEED = 1225
WALK_IN_CUSTOMER = "Cash Customer"
PAYMENT_MODES = ("Cash", "UPI")


def _to_int(val) -> Optional[int]:
    """Leading run of digits in val, or None when it does not start with one."""
    if val is None:
        return None
    match = re.match(r"\s*(\d+)", str(val), re.ASCII)
    return int(match.group(1)) if match else None


# ---------------------------
# Key-value storage
# ---------------------------


async def kv_get(key: str) -> Optional[bytes]:
    """Return the stored value for key, or None if never written."""
    try:
        async with connect() as conn:
            cur = await conn.execute("SELECT value FROM kv WHERE key = ?;", (key,))
            row = await cur.fetchone()
            await cur.close()
    except (sqlite3.Error, OSError) as e:
        raise StorageError(f"Could not read {key!r}: {e}") from e
    if not row:
        return None
    value = row[0]
    return value.encode("utf-8") if isinstance(value, str) else bytes(value)


async def kv_set(key: str, value: bytes) -> None:
    """
    Replace the whole value under key. On failure the transaction is not
    committed, so the previous value stays readable.
    """
    try:
        async with connect() as conn:
            await conn.execute(
                """
                INSERT INTO kv(key, value) VALUES (?, ?)
                ON CONFLICT(key) DO UPDATE SET value = excluded.value;
                """,
                (key, value),
            )
            await conn.commit()
    except (sqlite3.Error, OSError) as e:
        raise StorageError(f"Could not write {key!r}: {e}") from e


async def kv_delete(key: str) -> None:
    try:
        async with connect() as conn:
            await conn.execute("DELETE FROM kv WHERE key = ?;", (key,))
            await conn.commit()
    except (sqlite3.Error, OSError) as e:
        raise StorageError(f"Could not delete {key!r}: {e}") from e


async def kv_clear() -> None:
    try:
        async with connect() as conn:
            await conn.execute("DELETE FROM kv;")
            await conn.commit()
    except (sqlite3.Error, OSError) as e:
        raise StorageError(f"Could not clear storage: {e}") from e


async def _load_json(key: str):
    raw = await kv_get(key)
    if raw is None:
        return None
    try:
        return json.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise StorageError(f"Stored value for {key!r} is not valid JSON.") from e


async def _save_json(key: str, data) -> None:
    await kv_set(key, json.dumps(data, ensure_ascii=False).encode("utf-8"))


# ---------------------------
# Serialization
# ---------------------------


def _product_to_dict(prod: models.Product) -> dict:
    return {"id": prod.id, "name": prod.name, "price": str(prod.price)}


def _product_from_dict(data: dict) -> models.Product:
    return models.Product(
        id=str(data.get("bookId") or data["id"]),
        name=data["name"],
        price=Decimal(str(data["price"])),
    )


def _line_to_dict(line: models.CartLine) -> dict:
    return {
        "id": line.id,
        "productId": line.product_id,
        "name": line.product_name,
        "price": str(line.unit_price),
        "quantity": line.quantity,
        "subtotal": str(line.subtotal),
    }


def _line_from_dict(data: dict) -> models.CartLine:
    # subtotal is recomputed by CartLine, the stored copy is informational
    return models.CartLine(
        id=str(data["id"]),
        product_id=str(data.get("productId") or ""),
        product_name=data["name"],
        unit_price=Decimal(str(data["price"])),
        quantity=int(data["quantity"]),
    )


def _invoice_to_dict(invoice: models.Invoice) -> dict:
    return {
        "billId": invoice.bill_id,
        "date": invoice.date.isoformat(),
        "customerName": invoice.customer_name,
        "customerPhone": invoice.customer_phone,
        "paymentMode": invoice.payment_mode,
        "items": [_line_to_dict(line) for line in invoice.lines],
        "grandTotal": str(invoice.grand_total),
    }


def _invoice_from_dict(data: dict) -> models.Invoice:
    return models.Invoice(
        bill_id=data["billId"],
        date=datetime.fromisoformat(data["date"].replace("Z", "+00:00")),
        customer_name=data.get("customerName") or WALK_IN_CUSTOMER,
        customer_phone=data.get("customerPhone") or "",
        payment_mode=data.get("paymentMode") or "Cash",
        lines=tuple(_line_from_dict(item) for item in data.get("items", [])),
    )


# ---------------------------
# Business setup & shared secret
# ---------------------------


async def setup_business(business_name: str, secret: str) -> models.BusinessProfile:
    """Save the business profile and the shared secret guarding history/reports."""
    business_name = (business_name or "").strip()
    if not business_name:
        raise InvalidInputError("Business name is required.")
    if not secret:
        raise InvalidInputError("Password is required.")

    await _save_json(BUSINESS_KEY, {"businessName": business_name})
    await _save_json(PASSWORD_KEY, secret)
    _logger.info(f"Business profile saved for {business_name!r}")
    return models.BusinessProfile(business_name=business_name)


async def get_business() -> Optional[models.BusinessProfile]:
    data = await _load_json(BUSINESS_KEY)
    if not data:
        return None
    return models.BusinessProfile(business_name=data["businessName"])


async def is_setup() -> bool:
    return await get_business() is not None


async def get_secret() -> Optional[str]:
    secret = await _load_json(PASSWORD_KEY)
    return secret if isinstance(secret, str) else None


async def reset_all() -> None:
    """Erase every persisted record: profile, secret, catalog, counter, ledger."""
    await kv_clear()
    _logger.info("All persisted billing data erased")


# ---------------------------
# Catalog
# ---------------------------


async def list_products() -> List[models.Product]:
    data = await _load_json(PRODUCTS_KEY) or []
    try:
        return [_product_from_dict(d) for d in data]
    except (KeyError, TypeError, InvalidOperation) as e:
        raise StorageError("Stored catalog is malformed.") from e


async def _save_products(products: List[models.Product]) -> None:
    await _save_json(PRODUCTS_KEY, [_product_to_dict(p) for p in products])


async def add_product(
    name: str, price, product_id: Optional[str] = None
) -> models.Product:
    """
    Append a product entered by hand. Names and ids must be unique.
    """
    name = (name or "").strip()
    if not name:
        raise InvalidInputError("Product name is required.")
    price = to_price(price)
    product_id = (product_id or "").strip() or uuid.uuid4().hex[:8]

    products = await list_products()
    if any(p.name == name for p in products):
        raise InvalidInputError(f"A product named {name!r} already exists.")
    if any(p.id == product_id for p in products):
        raise InvalidInputError(f"Product id {product_id!r} is already in use.")

    prod = models.Product(id=product_id, name=name, price=price)
    await _save_products(products + [prod])
    return prod


async def delete_product(ref: str) -> bool:
    """Remove the product matching id or name. Returns False if none matched."""
    products = await list_products()
    prod = find_product(products, ref)
    if prod is None:
        return False
    await _save_products([p for p in products if p is not prod])
    return True


async def delete_product_at(
    index: int, expected: Optional[models.Product] = None
) -> bool:
    """
    Remove the product at a catalog position. With `expected`, the product
    there must still equal it, so a stale selection removes nothing.
    """
    products = await list_products()
    if not 0 <= index < len(products):
        return False
    if expected is not None and products[index] != expected:
        return False
    removed = products.pop(index)
    await _save_products(products)
    _logger.info(f"Product {removed.name!r} removed from the catalog")
    return True


def read_stock_sheet(path: str) -> str:
    """Text of a CSV stock sheet on disk. A leading UTF-8 BOM is dropped."""
    try:
        with open(path, "r", encoding="utf-8-sig") as f:
            return f.read()
    except UnicodeDecodeError as e:
        raise InvalidInputError(
            f"{path} is not UTF-8 encoded; re-save it as CSV UTF-8."
        ) from e
    except OSError as e:
        raise StorageError(f"Could not read {path}: {e}") from e


async def import_products_csv(text: str, **columns) -> List[models.Product]:
    """Replace the whole catalog with the products parsed from a stock sheet."""
    products = parse_catalog_csv(text, **columns)
    await _save_products(products)
    _logger.info(f"Imported {len(products)} products")
    return products


# ---------------------------
# Invoice numbering
# ---------------------------


async def next_bill_id(when: Optional[datetime] = None) -> str:
    """
    Bump the persisted counter by one and return "<YYYYMMDD>-<counter>".
    The counter never goes back, whatever the date or the ledger contents.
    """
    when = when or datetime.now()
    raw = await kv_get(BILL_NO_KEY)
    current = _to_int(raw.decode("utf-8", "replace")) if raw is not None else None
    if not current:
        current = BILL_NO_SEED
    current += 1
    await kv_set(BILL_NO_KEY, str(current).encode("utf-8"))
    return f"{when:%Y%m%d}-{current}"


# ---------------------------
# Invoice ledger
# ---------------------------


async def load_invoices() -> List[models.Invoice]:
    """Every invoice in the order it was finalized."""
    data = await _load_json(BILLING_HISTORY_KEY) or []
    try:
        return [_invoice_from_dict(d) for d in data]
    except (KeyError, TypeError, ValueError, InvalidOperation) as e:
        raise StorageError("Stored billing history is malformed.") from e


async def _save_invoices(invoices: List[models.Invoice]) -> None:
    await _save_json(BILLING_HISTORY_KEY, [_invoice_to_dict(i) for i in invoices])


async def list_invoices() -> List[models.Invoice]:
    """Every invoice, newest first."""
    invoices = await load_invoices()
    invoices.reverse()
    return invoices


async def get_invoice(bill_id: str) -> Optional[models.Invoice]:
    for invoice in await load_invoices():
        if invoice.bill_id == bill_id:
            return invoice
    return None


async def finalize_invoice(
    cart: Cart,
    customer_name: str = "",
    customer_phone: str = "",
    payment_mode: models.PaymentMode = "Cash",
    when: Optional[datetime] = None,
) -> models.Invoice:
    """
    Turn the cart into an invoice and append it to the ledger.

    The cart is only read; clearing it is up to the caller once this
    returns. If the ledger cannot be written, StorageError propagates and
    the stored ledger is untouched (the consumed bill number is not reused).
    """
    if not cart:
        raise EmptyCartError("Cannot finalize an empty bill.")
    if payment_mode not in PAYMENT_MODES:
        raise InvalidInputError(f"Unknown payment mode {payment_mode!r}.")

    when = when or datetime.now()
    invoices = await load_invoices()
    taken = {i.bill_id for i in invoices}

    bill_id = await next_bill_id(when)
    while bill_id in taken:
        bill_id = await next_bill_id(when)

    invoice = models.Invoice(
        bill_id=bill_id,
        date=when,
        customer_name=(customer_name or "").strip() or WALK_IN_CUSTOMER,
        customer_phone=(customer_phone or "").strip(),
        payment_mode=payment_mode,
        lines=cart.lines,
    )
    await _save_invoices(invoices + [invoice])
    _logger.info(f"Bill {bill_id} saved, total {invoice.grand_total:.2f}")
    return invoice


async def delete_invoice(bill_id: str) -> bool:
    """Remove one invoice. Missing ids are a no-op and return False."""
    invoices = await load_invoices()
    kept = [i for i in invoices if i.bill_id != bill_id]
    if len(kept) == len(invoices):
        return False
    await _save_invoices(kept)
    _logger.info(f"Bill {bill_id} deleted")
    return True


async def clear_invoices() -> None:
    """Drop the whole ledger. The bill counter keeps counting."""
    await _save_invoices([])
    _logger.info("Billing history cleared")


# ---------------------------
# Sales Reports
# ---------------------------


async def sales_report() -> models.SalesReport:
    return aggregate_sales(await load_invoices())
