import os

from textual import events, on
from textual.app import ComposeResult
from textual.containers import Horizontal, Vertical
from textual.screen import ModalScreen
from textual.widgets import Button, MarkdownViewer

from db.models import Invoice
from utils.logger import get_logger
from utils.pure import render_invoice_markdown

_logger = get_logger(__name__)

RECEIPT_DIR = os.getenv("BILLING_RECEIPT_DIR", "receipts")


class ReceiptModal(ModalScreen[bool]):
    """
    Printable bill for one invoice, with an option to save it as a file.
    """

    def __init__(self, invoice: Invoice):
        super().__init__()
        self.invoice = invoice

    def compose(self) -> ComposeResult:
        with Vertical(id="div-receipt"):
            yield MarkdownViewer("", show_table_of_contents=False)
            with Horizontal():
                yield Button("Save Receipt", id="btn-save-receipt")
                yield Button("Close", id="btn-close", variant="primary")

    async def on_mount(self):
        business = self.app.state.business
        md = render_invoice_markdown(
            self.invoice, business.business_name if business else ""
        )
        await self.query_one(MarkdownViewer).document.update(md)
        self.query_one("#btn-close").focus()

    def on_key(self, event: events.Key) -> None:
        if event.key == "escape":
            self.dismiss(False)

    @on(Button.Pressed, "#btn-save-receipt")
    def handle_save(self) -> None:
        business = self.app.state.business
        md = render_invoice_markdown(
            self.invoice, business.business_name if business else ""
        )
        path = os.path.join(RECEIPT_DIR, f"Bill_{self.invoice.bill_id}.md")
        try:
            os.makedirs(RECEIPT_DIR, exist_ok=True)
            with open(path, "w", encoding="utf-8") as f:
                f.write(md)
        except OSError as e:
            _logger.error(f"Could not save receipt to {path}: {e}")
            self.notify(f"Could not save receipt: {e}", severity="error")
            return
        self.notify(f"Receipt saved to {path}")

    @on(Button.Pressed, "#btn-close")
    def handle_close(self):
        self.dismiss(True)
