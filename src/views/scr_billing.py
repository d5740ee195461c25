from textual import on, work
from textual.app import ComposeResult
from textual.containers import Horizontal, Vertical
from textual.events import ScreenResume
from textual.suggester import SuggestFromList
from textual.validation import Number
from textual.widgets import Button, DataTable, Input, Label, RadioButton, RadioSet, Rule

from db.cart import find_product
from db.errors import BillingError
from utils.messages import CartChangedMessage
from utils.pure import format_money
from views.base_screen import BaseScreen
from views.modal_dialog import DialogModal
from views.modal_receipt import ReceiptModal


class BillingScreen(BaseScreen):
    """
    Counter screen: customer details, adding lines to the bill, finalizing.
    Enter moves from one field to the next, and adds the line on quantity.
    """

    def compose(self) -> ComposeResult:
        yield from super().compose()
        with Vertical(id="div-billing"):
            with Horizontal(id="hort-customer"):
                yield Input(placeholder="Customer name", id="input-customer-name")
                yield Input(placeholder="Phone", id="input-customer-phone")
            with Horizontal(id="hort-add-line"):
                yield Input(placeholder="Book ID or name", id="input-product")
                yield Input(
                    placeholder="Price",
                    id="input-price",
                    type="number",
                    validators=[Number(minimum=0.0)],
                )
                yield Input(
                    "1",
                    id="input-qty",
                    type="integer",
                    validators=[Number(minimum=1)],
                )
                yield Button("Add", id="btn-add-line", variant="primary")
            yield DataTable(id="table-bill")
            yield Label("Grand Total: " + format_money(0), id="label-bill-total")
            yield Rule(line_style="dashed")
            with Horizontal(id="hort-buttons"):
                with RadioSet(id="radio-payment"):
                    yield RadioButton("Cash", value=True)
                    yield RadioButton("UPI")
                yield Button("Remove Line", id="btn-remove-line")
                yield Button("Clear Bill", id="btn-clear-bill")
                yield Button("Finalize", id="btn-finalize", variant="success")

    def on_mount(self) -> None:
        table = self.query_one(DataTable)
        table.cursor_type = "row"
        table.zebra_stripes = True
        table.add_columns("#", "Item", "Rate", "Qty", "Amount")
        self.refresh_suggestions()
        self.handle_cart_change()
        self.query_one("#input-customer-name").focus()

    @on(ScreenResume)
    def refresh_suggestions(self) -> None:
        catalog = self.app.state.catalog
        suggestions = [p.id for p in catalog] + [p.name for p in catalog]
        self.query_one("#input-product", Input).suggester = SuggestFromList(
            suggestions, case_sensitive=True
        )

    @on(CartChangedMessage)
    def handle_cart_change(self) -> None:
        cart = self.app.state.cart
        table = self.query_one(DataTable)
        table.clear()
        for i, line in enumerate(cart.lines, start=1):
            table.add_row(
                i,
                line.product_name,
                f"{line.unit_price:.2f}",
                line.quantity,
                f"{line.subtotal:.2f}",
                key=line.id,
            )
        self.query_one("#label-bill-total", Label).update(
            "Grand Total: " + format_money(cart.total())
        )
        self.query_one("#btn-finalize", Button).disabled = not cart

    # enter key navigation
    @on(Input.Submitted, "#input-customer-name")
    def next_phone(self) -> None:
        self.query_one("#input-customer-phone").focus()

    @on(Input.Submitted, "#input-customer-phone")
    def next_product(self) -> None:
        self.query_one("#input-product").focus()

    @on(Input.Submitted, "#input-product")
    def next_price(self) -> None:
        self.query_one("#input-price").focus()

    @on(Input.Submitted, "#input-price")
    def next_qty(self) -> None:
        self.query_one("#input-qty").focus()

    @on(Input.Changed, "#input-product")
    def prefill_price(self, event: Input.Changed) -> None:
        prod = find_product(self.app.state.catalog, event.value)
        if prod:
            self.query_one("#input-price", Input).value = f"{prod.price:.2f}"

    @on(Input.Submitted, "#input-qty")
    @on(Button.Pressed, "#btn-add-line")
    def handle_add_line(self) -> None:
        product_input = self.query_one("#input-product", Input)
        price_input = self.query_one("#input-price", Input)
        qty_input = self.query_one("#input-qty", Input)

        try:
            self.app.state.add_to_cart(
                product_input.value,
                price_input.value.strip() or None,
                qty_input.value,
            )
        except BillingError as e:
            self.notify(str(e), severity="error")
            return

        product_input.value = ""
        price_input.value = ""
        qty_input.value = "1"
        product_input.focus()
        self.post_message(CartChangedMessage())

    @on(Button.Pressed, "#btn-remove-line")
    def handle_remove_line(self) -> None:
        table = self.query_one(DataTable)
        if table.row_count == 0:
            self.notify("Bill is empty.", severity="warning")
            return
        row_key = table.coordinate_to_cell_key(table.cursor_coordinate).row_key
        self.app.state.cart.remove_line(row_key.value)
        self.post_message(CartChangedMessage())

    @on(Button.Pressed, "#btn-clear-bill")
    @work()
    async def handle_clear_bill(self) -> None:
        if not self.app.state.cart:
            self.notify("Bill is empty.", severity="warning")
            return
        if await self.app.push_screen_wait(
            DialogModal(
                "Clear current bill?",
                primary_text="Yes",
                secondary_text="No",
                tone="warning",
            )
        ):
            self.app.state.cart.clear()
            self.post_message(CartChangedMessage())

    @on(Button.Pressed, "#btn-finalize")
    @work()
    async def handle_finalize(self) -> None:
        # disabled until the cart changes, so a double press cannot bill twice
        self.query_one("#btn-finalize", Button).disabled = True
        pressed = self.query_one(RadioSet).pressed_button
        payment_mode = str(pressed.label) if pressed else "Cash"
        name_input = self.query_one("#input-customer-name", Input)
        phone_input = self.query_one("#input-customer-phone", Input)

        try:
            invoice = await self.app.state.checkout(
                name_input.value, phone_input.value, payment_mode
            )
        except BillingError as e:
            self.notify(f"Bill not saved: {e}", severity="error")
            self.post_message(CartChangedMessage())
            return

        name_input.value = ""
        phone_input.value = ""
        self.post_message(CartChangedMessage())
        self.notify(f"Bill {invoice.bill_id} saved.")

        await self.app.push_screen_wait(ReceiptModal(invoice))
        name_input.focus()
