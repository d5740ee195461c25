import logging
import os

from rich.logging import RichHandler


class PaddedNameFormatter(logging.Formatter):
    """
    Centers the logger name in a column as wide as the longest name seen so
    far, so messages from db.crud and views.* line up in the console.
    """

    name_width = 12

    def format(self, record):
        PaddedNameFormatter.name_width = max(
            PaddedNameFormatter.name_width, len(record.name)
        )
        record.padded_name = record.name.center(PaddedNameFormatter.name_width)
        return super().format(record)


def _level() -> int:
    return logging.DEBUG if os.getenv("DEBUG") else logging.INFO


def get_logger(name=None) -> logging.Logger:
    """
    Return a logger writing through rich's RichHandler.
    Handlers are attached once per name.
    """
    logger = logging.getLogger(name or "billing")
    logger.setLevel(_level())

    if not logger.handlers:
        handler = RichHandler(
            show_time=True,
            show_level=True,
            show_path=False,
            rich_tracebacks=True,
            log_time_format="[%X]",
        )
        handler.setFormatter(PaddedNameFormatter("[%(padded_name)s]  %(message)s"))
        handler.setLevel(_level())
        logger.addHandler(handler)
        logger.propagate = False

    return logger
