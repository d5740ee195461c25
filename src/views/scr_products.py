from __future__ import annotations

from textual import on, work
from textual.app import ComposeResult
from textual.containers import Horizontal, Vertical
from textual.validation import Number
from textual.widgets import Button, DataTable, Input, Label

from db import crud
from db.errors import BillingError
from utils.messages import CatalogChangedMessage
from views.base_screen import BaseScreen
from views.modal_dialog import DialogModal


class ProductsScreen(BaseScreen):
    """
    Catalog upkeep: add a product by hand, delete one, or replace the whole
    catalog from a stock sheet (CSV).
    """

    def compose(self) -> ComposeResult:
        yield from super().compose()
        with Vertical():
            yield DataTable(id="table-products")
            with Horizontal(id="hort-add-product"):
                with Vertical():
                    yield Label("Book ID:")
                    yield Input(placeholder="auto", id="input-new-id")
                with Vertical():
                    yield Label("Name:")
                    yield Input(id="input-new-name")
                with Vertical():
                    yield Label("Price:")
                    yield Input(
                        id="input-new-price",
                        type="number",
                        validators=[Number(minimum=0.0)],
                    )
                yield Button("Add", id="btn-add-product", variant="success")
                yield Button("Delete Selected", id="btn-delete-product", variant="error")
            with Horizontal(id="hort-import"):
                yield Input(placeholder="path/to/BookStock.csv", id="input-csv-path")
                yield Button("Import CSV", id="btn-import", variant="primary")

    def on_mount(self) -> None:
        table = self.query_one(DataTable)
        table.cursor_type = "row"
        table.zebra_stripes = True
        table.add_columns("Book ID", "Name", "Price")
        self.handle_catalog_change()

    @on(CatalogChangedMessage)
    @work(exclusive=True)
    async def handle_catalog_change(self) -> None:
        try:
            products = await self.app.state.reload_catalog()
        except BillingError as e:
            self.notify(str(e), severity="error")
            return
        table = self.query_one(DataTable)
        table.clear()
        for i, p in enumerate(products):
            table.add_row(p.id, p.name, f"{p.price:.2f}", key=str(i))
        if not products:
            self.notify("No products imported.", severity="information")

    @on(Input.Submitted, "#input-new-price")
    @on(Button.Pressed, "#btn-add-product")
    @work(exclusive=True)
    async def handle_add(self) -> None:
        id_input = self.query_one("#input-new-id", Input)
        name_input = self.query_one("#input-new-name", Input)
        price_input = self.query_one("#input-new-price", Input)
        try:
            prod = await crud.add_product(
                name_input.value, price_input.value, id_input.value
            )
        except BillingError as e:
            self.notify(str(e), severity="error")
            return

        for widget in (id_input, name_input, price_input):
            widget.value = ""
        id_input.focus()
        self.notify(f"Added {prod.name}.")
        self.post_message(CatalogChangedMessage())

    @on(Button.Pressed, "#btn-delete-product")
    @work()
    async def handle_delete(self) -> None:
        table = self.query_one(DataTable)
        if table.row_count == 0:
            return
        index = int(table.coordinate_to_cell_key(table.cursor_coordinate).row_key.value)
        product = self.app.state.catalog[index]
        if not await self.app.push_screen_wait(
            DialogModal(
                f"Delete {product.name} from the catalog? Past bills keep it.",
                primary_text="Delete",
                secondary_text="Cancel",
                tone="warning",
            )
        ):
            return
        try:
            deleted = await crud.delete_product_at(index, product)
        except BillingError as e:
            self.notify(str(e), severity="error")
            return
        if not deleted:
            self.notify("Catalog changed meanwhile, nothing deleted.", severity="warning")
        self.post_message(CatalogChangedMessage())

    @on(Input.Submitted, "#input-csv-path")
    @on(Button.Pressed, "#btn-import")
    @work(exclusive=True)
    async def handle_import(self) -> None:
        path = self.query_one("#input-csv-path", Input).value.strip()
        if not path:
            self.notify("Select a CSV file first.", severity="warning")
            return
        try:
            text = crud.read_stock_sheet(path)
        except BillingError as e:
            self.notify(str(e), severity="error")
            return

        if self.app.state.catalog and not await self.app.push_screen_wait(
            DialogModal(
                "Importing replaces the whole catalog. Continue?",
                primary_text="Import",
                secondary_text="Cancel",
                tone="warning",
            )
        ):
            return

        try:
            products = await crud.import_products_csv(text)
        except BillingError as e:
            self.notify(str(e), severity="error")
            return
        self.query_one("#input-csv-path", Input).value = ""
        self.notify(f"Imported {len(products)} products.")
        self.post_message(CatalogChangedMessage())
