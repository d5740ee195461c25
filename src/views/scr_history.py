from typing import Dict

from textual import on, work
from textual.app import ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal
from textual.widgets import Button, DataTable, Label, MarkdownViewer

import db.crud
from db.errors import BillingError
from db.models import Invoice
from utils.messages import LedgerChangedMessage
from utils.pure import render_invoice_markdown
from views.base_screen import GatedScreen
from views.modal_dialog import DialogModal
from views.modal_receipt import ReceiptModal


class HistoryScreen(GatedScreen):
    """
    Billing history, newest bill first, with the selected bill shown above
    the table. Deleting is permanent and always asks first.
    """

    # Show some hints in footer
    BINDINGS = [
        Binding("delete", "delete_bill", "Delete Bill", show=True),
    ]

    def __init__(self) -> None:
        super().__init__()
        self._invoices: Dict[str, Invoice] = {}

    def compose_content(self) -> ComposeResult:
        yield MarkdownViewer(id="md-bill-detail", show_table_of_contents=False)
        yield DataTable(id="table-bills")
        with Horizontal(id="hort-table-control"):
            yield Label("0 bills", id="label-bill-count")
            yield Button("Refresh", id="btn-refresh")
            yield Button("Reprint", id="btn-reprint-bill", variant="primary")
            yield Button("Delete Bill", id="btn-delete-bill", variant="warning")
            yield Button("Clear History", id="btn-clear-history", variant="error")

    def on_mount(self) -> None:
        table = self.query_one(DataTable)
        table.cursor_type = "row"
        table.zebra_stripes = True
        table.add_columns("Bill No", "Customer", "Payment", "Date", "Total")

    @on(Button.Pressed, "#btn-refresh")
    @on(LedgerChangedMessage)
    def handle_refresh(self) -> None:
        if self.app.state.gate.is_unlocked():
            self.reload()

    def reload(self) -> None:
        self._load_bills()

    @work(exclusive=True, group="bills")
    async def _load_bills(self) -> None:
        try:
            invoices = await db.crud.list_invoices()
        except BillingError as e:
            self.notify(str(e), severity="error")
            return

        self._invoices = {i.bill_id: i for i in invoices}
        table = self.query_one(DataTable)
        table.clear()
        for inv in invoices:
            table.add_row(
                inv.bill_id,
                inv.customer_name,
                inv.payment_mode,
                f"{inv.date:%d/%m/%Y}",
                f"{inv.grand_total:.2f}",
                key=inv.bill_id,
            )
        self.query_one("#label-bill-count", Label).update(f"{len(invoices)} bills")

        if invoices:
            table.move_cursor(row=0)
            self._render_detail(invoices[0])
        else:
            self._render_detail(None)

    @on(DataTable.RowHighlighted)
    def handle_row_highlight(self, event: DataTable.RowHighlighted) -> None:
        self._render_detail(self._invoices.get(event.row_key.value))

    def _render_detail(self, invoice: Invoice | None) -> None:
        if invoice is None:
            md = "### No transaction history found."
        else:
            business = self.app.state.business
            md = render_invoice_markdown(
                invoice, business.business_name if business else ""
            )
        self.query_one("#md-bill-detail", MarkdownViewer).document.update(md)

    def _selected_bill_id(self) -> str | None:
        table = self.query_one(DataTable)
        if table.row_count == 0:
            return None
        return table.coordinate_to_cell_key(table.cursor_coordinate).row_key.value

    def action_delete_bill(self) -> None:
        self.handle_delete()

    @on(Button.Pressed, "#btn-reprint-bill")
    @work()
    async def handle_reprint(self) -> None:
        bill_id = self._selected_bill_id()
        if bill_id is None:
            return
        try:
            invoice = await db.crud.get_invoice(bill_id)
        except BillingError as e:
            self.notify(str(e), severity="error")
            return
        if invoice is None:
            self.notify(f"Bill {bill_id} no longer exists.", severity="warning")
            self.post_message(LedgerChangedMessage())
            return
        await self.app.push_screen_wait(ReceiptModal(invoice))

    @on(Button.Pressed, "#btn-delete-bill")
    @work()
    async def handle_delete(self) -> None:
        bill_id = self._selected_bill_id()
        if bill_id is None:
            return
        if not await self.app.push_screen_wait(
            DialogModal(
                f"Delete bill {bill_id}? This cannot be undone.",
                primary_text="Delete",
                secondary_text="Cancel",
                tone="error",
            )
        ):
            return
        try:
            await db.crud.delete_invoice(bill_id)
        except BillingError as e:
            self.notify(str(e), severity="error")
            return
        self.post_message(LedgerChangedMessage())
        self.notify(f"Bill {bill_id} deleted.")

    @on(Button.Pressed, "#btn-clear-history")
    @work()
    async def handle_clear(self) -> None:
        if not self._invoices:
            self.notify("History is already empty.", severity="warning")
            return
        if not await self.app.push_screen_wait(
            DialogModal(
                "Delete ALL bills? This cannot be undone.",
                primary_text="Delete all",
                secondary_text="Cancel",
                tone="error",
            )
        ):
            return
        try:
            await db.crud.clear_invoices()
        except BillingError as e:
            self.notify(str(e), severity="error")
            return
        self.post_message(LedgerChangedMessage())
        self.notify("Billing history cleared.")
