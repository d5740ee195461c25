from textual.message import Message


class QuitRequestedMessage(Message):
    """
    broadcasted when the app is about to quit
    """

    bubble = True


class ResetRequestedMessage(Message):
    """
    Posted by the sidebar once the user confirmed wiping all data.
    The app asks for the password and runs the reset.
    """

    bubble = True


class CartChangedMessage(Message):
    """
    Fired when a line is added or removed, so the bill table and total redraw
    """

    bubble = True


class LedgerChangedMessage(Message):
    """
    Fired after a bill is finalized, deleted or the history is cleared.
    Listened to by billing history and sales report.
    Must be posted at App level to reach screens that are not active.
    """

    bubble = True


class CatalogChangedMessage(Message):
    """
    Fired after products are added, deleted or imported
    """

    bubble = True
