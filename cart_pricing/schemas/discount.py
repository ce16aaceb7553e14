# cart_pricing/schemas/discount.py
import uuid
from decimal import Decimal
from typing import Literal

from sqlmodel import SQLModel

ApplicationMethod = Literal["none", "manual", "auto"]


class DiscountState(SQLModel):
    """
    The discount a cart carries, as one unit.

    Either fully empty (method "none", no code/offer, amount 0, unlocked)
    or fully populated. Carts never hold a partially cleared state.
    """

    code: str | None = None
    offer_id: uuid.UUID | None = None
    amount: Decimal = Decimal("0")
    is_auto_applied: bool = False
    application_method: ApplicationMethod = "none"
    manual_locked: bool = False

    @classmethod
    def empty(cls) -> "DiscountState":
        return cls()

    @classmethod
    def auto(cls, code: str, offer_id: uuid.UUID, amount: Decimal) -> "DiscountState":
        return cls(
            code=code,
            offer_id=offer_id,
            amount=amount,
            is_auto_applied=True,
            application_method="auto",
        )

    @classmethod
    def manual(cls, code: str, offer_id: uuid.UUID, amount: Decimal) -> "DiscountState":
        return cls(
            code=code,
            offer_id=offer_id,
            amount=amount,
            application_method="manual",
            manual_locked=True,
        )

    @property
    def is_empty(self) -> bool:
        return self.offer_id is None
