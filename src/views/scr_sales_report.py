import os

from textual import on, work
from textual.app import ComposeResult
from textual.containers import Horizontal
from textual.widgets import Button, DataTable, Label

import db.crud as crud
from db.errors import BillingError
from db.models import SalesReport
from utils.logger import get_logger
from utils.pure import format_money, report_csv_filename, report_to_csv
from views.base_screen import GatedScreen

_logger = get_logger(__name__)

EXPORT_DIR = os.getenv("BILLING_EXPORT_DIR", "exports")


class SalesReportScreen(GatedScreen):
    """
    Sales per product over the whole billing history, best sellers first.
    """

    def __init__(self) -> None:
        super().__init__()
        self._report: SalesReport | None = None

    def compose_content(self) -> ComposeResult:
        yield Label("Total Revenue: " + format_money(0), id="label-revenue")
        yield DataTable(id="table-report")
        with Horizontal(id="hort-report-control"):
            yield Button("Refresh", id="btn-refresh")
            yield Button("Export CSV", id="btn-export", variant="primary")

    def on_mount(self) -> None:
        table = self.query_one(DataTable)
        table.cursor_type = "row"
        table.zebra_stripes = True
        table.add_columns("Item Name", "Total Quantity", "Total Income")

    @on(Button.Pressed, "#btn-refresh")
    def handle_refresh(self) -> None:
        self.reload()

    def reload(self) -> None:
        self._load_report()

    @work(exclusive=True)
    async def _load_report(self) -> None:
        try:
            report = await crud.sales_report()
        except BillingError as e:
            self.notify(str(e), severity="error")
            return

        self._report = report
        self.query_one("#label-revenue", Label).update(
            "Total Revenue: " + format_money(report.total_revenue)
        )
        table = self.query_one(DataTable)
        table.clear()
        for row in report.rows:
            table.add_row(row.name, row.quantity, f"{row.income:.2f}", key=row.key)

    @on(Button.Pressed, "#btn-export")
    def handle_export(self) -> None:
        if not self._report or not self._report.rows:
            self.notify("No data to export!", severity="warning")
            return

        path = os.path.join(EXPORT_DIR, report_csv_filename())
        try:
            os.makedirs(EXPORT_DIR, exist_ok=True)
            with open(path, "w", encoding="utf-8", newline="") as f:
                f.write(report_to_csv(self._report))
        except OSError as e:
            _logger.error(f"Could not export report to {path}: {e}")
            self.notify(f"Export failed: {e}", severity="error")
            return
        self.notify(f"Report exported to {path}")
