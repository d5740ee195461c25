from typing import Dict, Literal, Tuple

from typing_extensions import override

from textual import on
from textual.app import ComposeResult
from textual.containers import Container, Horizontal
from textual.screen import ModalScreen
from textual.widgets import Button, Input, Label

from utils.messages import QuitRequestedMessage


class DialogModal(ModalScreen[bool]):
    """
    Yes/no confirmation. Dismisses with True on the primary button.
    """

    VARIANT_MAP: Dict[
        str, Tuple[Literal["primary", "default", "success", "warning", "error"], ...]
    ] = {
        "default": ("primary", "default"),
        "positive": ("success", "default"),
        "warning": ("warning", "default"),
        "error": ("error", "primary"),
    }

    def __init__(
        self,
        caption: str,
        primary_text: str = "OK",
        secondary_text: str = "",
        tone: Literal["default", "positive", "warning", "error"] = "default",
    ):
        super().__init__()
        self.caption = caption
        self.primary_text = primary_text
        self.secondary_text = secondary_text
        self.tone = tone

    def compose(self) -> ComposeResult:
        with Container(classes="div-dialog"):
            yield Label(self.caption, classes="caption")
            with Horizontal(classes="dialog-btns"):
                if self.secondary_text:
                    yield Button(
                        self.secondary_text,
                        variant=DialogModal.VARIANT_MAP[self.tone][1],
                        id="btn-secondary",
                    )
                yield Button(
                    self.primary_text,
                    variant=DialogModal.VARIANT_MAP[self.tone][0],
                    id="btn-primary",
                )

    def on_mount(self):
        # destructive dialogs focus the safe choice
        if self.secondary_text and self.tone == "error":
            self.query_one("#btn-secondary").focus()
        else:
            self.query_one("#btn-primary").focus()

    def on_button_pressed(self, event: Button.Pressed) -> None:
        if event.button.id == "btn-primary":
            self.dismiss(True)
        if event.button.id == "btn-secondary":
            self.dismiss(False)


class QuitDialogModal(DialogModal):
    def __init__(self):
        super().__init__("Are you sure you want to quit?", "Yes", "No", "error")

    @override
    def on_button_pressed(self, event: Button.Pressed) -> None:
        if event.button.id == "btn-primary":
            self.post_message(QuitRequestedMessage())
            self.dismiss(True)
        else:
            self.dismiss(False)


class PasswordModal(ModalScreen[str]):
    """
    Asks for the shared password. Dismisses with the typed text,
    or an empty string when cancelled.
    """

    def __init__(self, caption: str = "Enter password"):
        super().__init__()
        self.caption = caption

    def compose(self) -> ComposeResult:
        with Container(classes="div-dialog"):
            yield Label(self.caption, classes="caption")
            yield Input(placeholder="*********", password=True, id="input-modal-pwd")
            with Horizontal(classes="dialog-btns"):
                yield Button("Cancel", id="btn-cancel")
                yield Button("OK", id="btn-ok", variant="error")

    def on_mount(self):
        self.query_one("#input-modal-pwd").focus()

    @on(Input.Submitted, "#input-modal-pwd")
    @on(Button.Pressed, "#btn-ok")
    def handle_ok(self) -> None:
        self.dismiss(self.query_one("#input-modal-pwd", Input).value)

    @on(Button.Pressed, "#btn-cancel")
    def handle_cancel(self) -> None:
        self.dismiss("")
