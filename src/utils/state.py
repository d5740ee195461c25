from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

import db.crud as crud
from db.cart import Cart
from db.errors import AuthFailedError
from db.models import BusinessProfile, CartLine, Invoice, PaymentMode, Product
from utils.logger import get_logger

_logger = get_logger(__name__)


class AccessGate:
    """
    One in-memory flag guarding the billing history and sales report.

    Unlocking lasts until the process exits (or reset_all locks it again);
    there is no expiry and no lockout.
    """

    def __init__(self) -> None:
        self._unlocked = False

    def is_unlocked(self) -> bool:
        return self._unlocked

    async def attempt(self, secret: str) -> bool:
        """Unlock on an exact match with the stored secret, else AuthFailedError."""
        stored = await crud.get_secret()
        if stored is None or secret != stored:
            _logger.warning("Rejected password attempt")
            raise AuthFailedError("Incorrect password.")
        self._unlocked = True
        _logger.info("History and reports unlocked")
        return True

    def lock(self) -> None:
        self._unlocked = False


@dataclass
class GlobalState:
    """
    Centralized application state shared by screens.

    Fields:
      - business: saved business profile, None until setup is done
      - catalog: products as last loaded from storage
      - cart: bill currently being built
      - gate: password flag for history/report screens
    """

    business: Optional[BusinessProfile] = None
    catalog: List[Product] = field(default_factory=list)
    cart: Cart = field(default_factory=Cart)
    gate: AccessGate = field(default_factory=AccessGate)

    async def load(self) -> None:
        self.business = await crud.get_business()
        self.catalog = await crud.list_products()

    async def reload_catalog(self) -> List[Product]:
        self.catalog = await crud.list_products()
        return self.catalog

    def add_to_cart(self, ref, unit_price, quantity) -> CartLine:
        return self.cart.add_line(ref, unit_price, quantity, self.catalog)

    async def checkout(
        self,
        customer_name: str = "",
        customer_phone: str = "",
        payment_mode: PaymentMode = "Cash",
        when: Optional[datetime] = None,
    ) -> Invoice:
        """Finalize the cart and empty it, only once the invoice is stored."""
        invoice = await crud.finalize_invoice(
            self.cart, customer_name, customer_phone, payment_mode, when
        )
        self.cart.clear()
        return invoice

    async def reset_all(self, secret: str) -> None:
        """
        Wipe all persisted data after re-checking the shared secret.
        Raises AuthFailedError and changes nothing on a wrong secret.
        """
        stored = await crud.get_secret()
        if stored is None or secret != stored:
            raise AuthFailedError("Incorrect password.")
        await crud.reset_all()
        self.business = None
        self.catalog = []
        self.cart.clear()
        self.gate.lock()
