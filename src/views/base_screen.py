from textual import on, work
from textual.app import ComposeResult
from textual.binding import Binding
from textual.containers import Container, Horizontal, Vertical
from textual.events import ScreenResume
from textual.screen import Screen
from textual.widgets import Button, Footer, Header, Input, Label, ListItem, ListView, Markdown

from db.errors import AuthFailedError
from utils.messages import ResetRequestedMessage
from utils.pure import generate_markdown_table
from views.modal_dialog import DialogModal, QuitDialogModal


class Sidebar(Container):
    init_mode = ""

    def compose(self) -> ComposeResult:
        yield Label("Business", id="label-info-1")
        yield Markdown("", id="md-business")
        yield Label("Menu", id="label-info-2")
        yield ListView(id="list-menu")
        yield Button("Reset All Data", id="btn-reset", variant="error")

    async def on_mount(self):
        self.init_mode = self.app.current_mode

        business = self.app.state.business
        rows = [
            ["Name", business.business_name if business else "-"],
            ["Products", len(self.app.state.catalog)],
        ]
        await self.query_one(Markdown).update(
            generate_markdown_table(None, rows, ["l", "l"])
        )

        list_menu: ListView = self.query_one("#list-menu")
        await list_menu.clear()
        await list_menu.extend(
            [
                ListItem(Label(v), id="list-menu-item-" + k)
                for k, v in self.app.MENU_MODES.items()
            ]
        )
        self.highlight_item(self.init_mode)

    async def on_list_view_selected(self, event: ListView.Selected):
        selected_mode = event.item.id.removeprefix("list-menu-item-")
        self.highlight_item(self.init_mode)
        if self.app.current_mode != selected_mode:
            await self.app.switch_mode(selected_mode)

    @on(Button.Pressed, "#btn-reset")
    @work()
    async def handle_reset(self):
        if not await self.app.push_screen_wait(
            DialogModal(
                "This will permanently delete ALL data including products and "
                "history. Proceed?",
                primary_text="Delete everything",
                secondary_text="Cancel",
                tone="error",
            )
        ):
            return

        self.app.post_message(ResetRequestedMessage())

    def highlight_item(self, mode_str: str):
        list_menu = self.query_one("#list-menu")
        for item in list_menu.children:
            item.highlighted = item.id == "list-menu-item-" + mode_str


class BaseScreen(Screen):
    """
    Inherited by all screens, contains common elements like
    headers, footers, sidebar, and keybindings.
    """

    BINDINGS = [
        Binding("ctrl+z", "quit", "Quit App", show=True),
    ]

    def __init__(self):
        super().__init__()

        self.configure()

    def configure(
        self,
        header_sub_title: str = "Billing",
        show_sidebar: bool = True,
    ) -> None:
        """
        configure behavior of the base screen
        """
        business = self.app.state.business
        self.app.title = business.business_name if business else "Counter Billing"
        self.sub_title = header_sub_title
        for k, v in self.app.MODES.items():
            if isinstance(self, v) and k in self.app.MENU_MODES:
                self.sub_title = self.app.MENU_MODES[k]

        self._show_sidebar = show_sidebar

    def compose(self) -> ComposeResult:
        if self._show_sidebar:
            yield Sidebar()
        yield Header()
        yield Footer(show_command_palette=False)

    @work()
    async def action_quit(self):
        await self.app.push_screen_wait(QuitDialogModal())


class GatedScreen(BaseScreen):
    """
    Screen whose content stays hidden behind the shared password until the
    app's AccessGate is unlocked. Subclasses yield their content from
    compose_content() and load it in reload().
    """

    def compose(self) -> ComposeResult:
        yield from super().compose()
        with Vertical(classes="div-locked"):
            yield Label("This section is password protected.")
            with Horizontal():
                yield Input(
                    placeholder="*********", password=True, classes="input-unlock"
                )
                yield Button("Unlock", classes="btn-unlock", variant="primary")
        with Vertical(classes="div-gated"):
            yield from self.compose_content()

    def compose_content(self) -> ComposeResult:
        yield from ()

    def on_mount(self) -> None:
        self.refresh_gate()

    @on(ScreenResume)
    def refresh_gate(self) -> None:
        unlocked = self.app.state.gate.is_unlocked()
        self.query_one(".div-locked").set_class(unlocked, "hidden")
        self.query_one(".div-gated").set_class(not unlocked, "hidden")
        if unlocked:
            self.reload()
        else:
            self.query_one(".input-unlock", Input).focus()

    @on(Input.Submitted, ".input-unlock")
    @on(Button.Pressed, ".btn-unlock")
    async def handle_unlock(self) -> None:
        pwd_input = self.query_one(".input-unlock", Input)
        try:
            await self.app.state.gate.attempt(pwd_input.value)
        except AuthFailedError as e:
            self.notify(str(e), severity="error")
            pwd_input.value = ""
            pwd_input.add_class("-invalid")
            pwd_input.focus()
            return
        pwd_input.value = ""
        pwd_input.remove_class("-invalid")
        self.refresh_gate()

    def reload(self) -> None:
        pass
