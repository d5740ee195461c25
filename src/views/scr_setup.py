from textual import on, work
from textual.app import ComposeResult
from textual.containers import Horizontal, Vertical
from textual.widgets import Button, Input, Label

import db.crud
from db.errors import BillingError
from views.base_screen import BaseScreen
from views.modal_dialog import QuitDialogModal


class SetupScreen(BaseScreen):
    """
    First-run setup: business name and the password for history/reports.
    Dismissed once the profile is saved.
    """

    def __init__(self):
        super().__init__()
        self.configure(header_sub_title="Setup", show_sidebar=False)

    def compose(self) -> ComposeResult:
        yield from super().compose()
        with Vertical(id="div-setup"):
            yield Label("Business Name")
            yield Input(placeholder="My Shop", id="input-business-name")
            yield Label("Password (protects history and reports)")
            yield Input(placeholder="*********", password=True, id="input-setup-pwd")
            yield Label("Confirm Password")
            yield Input(placeholder="*********", password=True, id="input-setup-pwd2")
            with Horizontal(id="div-setup-btns"):
                yield Button("Quit", id="btn-quit")
                yield Button("Save", id="btn-setup", variant="primary")

    def on_mount(self):
        self.query_one("#input-business-name").focus()

    @on(Input.Submitted, "#input-business-name")
    def focus_pwd(self) -> None:
        self.query_one("#input-setup-pwd").focus()

    @on(Input.Submitted, "#input-setup-pwd")
    def focus_pwd2(self) -> None:
        self.query_one("#input-setup-pwd2").focus()

    @on(Input.Submitted, "#input-setup-pwd2")
    @on(Button.Pressed, "#btn-setup")
    @work(exclusive=True)
    async def handle_setup_submit(self) -> None:
        name = self.query_one("#input-business-name", Input).value.strip()
        pwd = self.query_one("#input-setup-pwd", Input).value
        pwd2 = self.query_one("#input-setup-pwd2", Input)

        if pwd != pwd2.value:
            self.notify("Passwords do not match.", severity="error")
            pwd2.value = ""
            pwd2.add_class("-invalid")
            pwd2.focus()
            return

        try:
            self.app.state.business = await db.crud.setup_business(name, pwd)
        except BillingError as e:
            self.notify(str(e), severity="error")
            return

        self.notify(f"Welcome, {name}!")
        self.dismiss()

    @on(Button.Pressed, "#btn-quit")
    def handle_quit_(self) -> None:
        self.app.push_screen(QuitDialogModal())
