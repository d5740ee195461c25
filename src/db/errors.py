# error kinds raised by the db package


class BillingError(Exception):
    """
    Base class for every failure the billing core reports to its caller.
    Screens catch this and surface the message; none of these is fatal.
    """


class InvalidInputError(BillingError, ValueError):
    """malformed price, quantity, name or payment mode"""


class NotFoundError(BillingError, LookupError):
    """product reference did not match any catalog entry"""


class EmptyCartError(BillingError):
    """finalize called on a cart with no lines"""


class AuthFailedError(BillingError):
    """shared secret did not match"""


class StorageError(BillingError):
    """
    Reading or writing the persistence layer failed.
    The previously persisted value is left as it was.
    """
