"""
Side-effect free helpers: sales aggregation, CSV in/out and markdown
rendering. Nothing in here reads or writes storage.
"""

import csv
import io
import re
import uuid
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Dict, Iterable, List, Literal, Optional

from db.models import Invoice, Product, SalesReport, SalesRow
from utils.logger import get_logger

_logger = get_logger(__name__)

CURRENCY = "₹"

REPORT_CSV_HEADER = "Item Name,Total Quantity,Total Income"


def format_money(amount: Decimal) -> str:
    return f"{CURRENCY} {amount:.2f}"


def generate_markdown_table(
    headers: Optional[List[str]],
    rows: List[List[str]],
    aligns: Optional[List[Literal["l", "c", "r"]]] = None,
) -> str:
    """
    Generate a Markdown table.

    Args:
        headers: Column headers, or None to use the first row as headers.
        rows: Rows of cells; cells are passed through str().
        aligns: 'l', 'c' or 'r' per column. Defaults to all left.

    Returns:
        str: Markdown formatted table, or "" when there are no rows.
    """
    if not rows:
        return ""

    if not headers:
        headers, rows = rows[0], rows[1:]

    headers = [str(h) for h in headers]
    # pipes inside a cell would end the cell early
    rows = [[str(cell).replace("|", "\\|") for cell in row] for row in rows]

    if aligns is None:
        aligns = ["l"] * len(headers)
    elif len(aligns) != len(headers):
        raise ValueError("Length of aligns must match number of headers.")

    align_map = {"l": ":---", "c": ":---:", "r": "---:"}

    lines = [
        "| " + " | ".join(headers) + " |",
        "| " + " | ".join(align_map[a] for a in aligns) + " |",
    ]
    lines.extend("| " + " | ".join(row) + " |" for row in rows)
    return "\n".join(lines)


# ---------------------------
# Sales aggregation
# ---------------------------


def aggregate_sales(invoices: Iterable[Invoice]) -> SalesReport:
    """
    Fold invoices into total revenue and per-product quantity/income.

    Products are keyed by the id captured on each line when it was billed
    (name for lines that carry no id), so products removed from the catalog
    still report under their billed name. Rows are ordered by income,
    highest first; equal incomes keep the order the products first appeared.
    """
    total_revenue = Decimal(0)
    names: Dict[str, str] = {}
    quantities: Dict[str, int] = {}
    incomes: Dict[str, Decimal] = {}

    for invoice in invoices:
        total_revenue += invoice.grand_total
        for line in invoice.lines:
            key = line.product_id or line.product_name
            if key not in names:
                names[key] = line.product_name
                quantities[key] = 0
                incomes[key] = Decimal(0)
            quantities[key] += line.quantity
            incomes[key] += line.subtotal

    rows = [
        SalesRow(key=key, name=names[key], quantity=quantities[key], income=incomes[key])
        for key in names
    ]
    rows.sort(key=lambda r: r.income, reverse=True)
    return SalesReport(total_revenue=total_revenue, rows=tuple(rows))


def _quote(field: str) -> str:
    return '"' + field.replace('"', '""') + '"'


def report_to_csv(report: SalesReport) -> str:
    lines = [REPORT_CSV_HEADER]
    lines.extend(
        f"{_quote(row.name)},{row.quantity},{row.income:.2f}" for row in report.rows
    )
    return "\n".join(lines) + "\n"


def report_csv_filename(when: Optional[datetime] = None) -> str:
    when = when or datetime.now()
    return f"Sales_Report_{when:%Y-%m-%d}.csv"


# ---------------------------
# Catalog import
# ---------------------------


def parse_catalog_csv(
    text: str,
    id_col: int = 0,
    name_col: int = 1,
    price_col: int = 4,
) -> List[Product]:
    """
    Parse a stock sheet into products. The first row is a header.

    Rows shorter than the price column, or without a name, are skipped. The
    price cell keeps only digits and dots before parsing, so "₹12.50" reads
    as 12.50. Duplicates are kept as-is.
    """
    products: List[Product] = []
    reader = csv.reader(io.StringIO(text))
    for row_no, cols in enumerate(reader):
        if row_no == 0 or not any(c.strip() for c in cols):
            continue
        if len(cols) <= max(id_col, name_col, price_col):
            _logger.debug(f"Skipping short row {row_no + 1}: {cols!r}")
            continue

        name = cols[name_col].strip()
        if not name:
            continue

        raw_price = re.sub(r"[^0-9.]", "", cols[price_col])
        try:
            price = Decimal(raw_price)
        except InvalidOperation:
            _logger.warning(
                f"Skipping {name!r} on row {row_no + 1}: bad price {cols[price_col]!r}"
            )
            continue

        product_id = cols[id_col].strip() or uuid.uuid4().hex[:8]
        products.append(Product(id=product_id, name=name, price=price))
    return products


# ---------------------------
# Receipt
# ---------------------------


def render_invoice_markdown(invoice: Invoice, business_name: str = "") -> str:
    """Printable bill for one invoice."""
    header = f"# {business_name}\n\n" if business_name else ""
    header += (
        f"**Bill No:** {invoice.bill_id}  \n"
        f"**Date:** {invoice.date:%d/%m/%Y %H:%M}  \n"
        f"**Customer:** {invoice.customer_name}  \n"
    )
    if invoice.customer_phone:
        header += f"**Phone:** {invoice.customer_phone}  \n"
    header += f"**Payment:** {invoice.payment_mode}\n\n"

    rows = [
        [i, line.product_name, line.quantity, f"{line.unit_price:.2f}", f"{line.subtotal:.2f}"]
        for i, line in enumerate(invoice.lines, start=1)
    ]
    table = generate_markdown_table(
        ["#", "Item", "Qty", "Rate", "Amount"], rows, ["r", "l", "r", "r", "r"]
    )
    footer = (
        f"\n\n**Grand Total: {format_money(invoice.grand_total)}**"
        "\n\n_Thank you for your purchase!_\n"
    )
    return header + table + footer
