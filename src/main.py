from textual import on, work
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.widgets import LoadingIndicator

from db.errors import AuthFailedError, BillingError
from utils.logger import get_logger
from utils.messages import QuitRequestedMessage, ResetRequestedMessage
from utils.state import GlobalState
from views.modal_dialog import PasswordModal
from views.scr_billing import BillingScreen
from views.scr_history import HistoryScreen
from views.scr_products import ProductsScreen
from views.scr_sales_report import SalesReportScreen
from views.scr_setup import SetupScreen

_logger = get_logger(__name__)


class BillingApp(App):
    BINDINGS = [
        Binding("ctrl+t", "switch_light", "Toggle Theme", show=True),
    ]

    MODES = {
        "billing": BillingScreen,
        "products": ProductsScreen,
        "history": HistoryScreen,
        "report": SalesReportScreen,
    }

    MENU_MODES = {
        "billing": "Create Bill",
        "products": "Products",
        "history": "Billing History",
        "report": "Sales Report",
    }

    CSS_PATH = "views/styles/app.tcss"

    state: GlobalState

    def __init__(self):
        super().__init__()
        self.state = GlobalState()

    def compose(self) -> ComposeResult:
        yield LoadingIndicator()

    async def on_mount(self) -> None:
        self.main_flow()

    def action_switch_light(self):
        if self.theme == "textual-dark":
            self.theme = "solarized-light"
        else:
            self.theme = "textual-dark"
        self.notify(f"Theme changed to {self.theme}")

    @on(QuitRequestedMessage)
    def handle_quit(self):
        self.exit()

    @on(ResetRequestedMessage)
    @work
    async def handle_reset(self):
        secret = await self.push_screen_wait(
            PasswordModal("Enter the password to erase all data")
        )
        if not secret:
            return
        try:
            await self.state.reset_all(secret)
        except AuthFailedError:
            self.notify("Incorrect Password!", severity="error")
            return
        except BillingError as e:
            self.notify(f"Reset failed: {e}", severity="error")
            return

        self.notify("All data erased.")
        self.main_flow()

    @work(exclusive=True)
    async def main_flow(self):
        try:
            await self.state.load()
        except BillingError as e:
            _logger.error(f"Could not load saved data: {e}")
            self.notify(f"Could not load saved data: {e}", severity="error")

        if self.state.business is None:
            await self.push_screen_wait(SetupScreen())

        await self.switch_mode("billing")


def run() -> None:
    BillingApp().run()


if __name__ == "__main__":
    run()
