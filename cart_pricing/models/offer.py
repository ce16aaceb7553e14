# cart_pricing/models/offer.py
import uuid
from datetime import datetime, timezone
from decimal import Decimal

from sqlmodel import SQLModel, Field


class Offer(SQLModel, table=True):
    """
    Promotional offer: either a code a buyer types in (manual) or an
    offer the system may apply on its own (auto_apply=True).

    discount_type:
      - "percentage": discount_value in [0, 100], applied to the cart subtotal
      - "fixed": discount_value >= 0, capped at the cart subtotal

    applicable_to:
      - "all"
      - "new_users": buyers with zero non-cancelled orders (never guests)

    Counters only ever increase:
      - used_count: completed checkouts (bounded by max_uses)
      - auto_apply_count / manual_apply_count: times attached to a cart
    """

    __tablename__ = "offers"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )

    # Required for manual offers, optional for auto-apply offers.
    # Always stored upper-cased and stripped.
    code: str | None = Field(
        default=None,
        max_length=50,
        unique=True,
        index=True,
    )

    description: str = Field(description="Internal / admin description")

    display_name: str | None = Field(
        default=None,
        description="Name shown to customers when auto-applied",
    )

    # percentage | fixed
    discount_type: str = Field(default="percentage")

    discount_value: Decimal = Field(
        max_digits=12,
        decimal_places=2,
    )

    min_order_amount: Decimal = Field(
        default=Decimal("0"),
        max_digits=12,
        decimal_places=2,
    )

    valid_from: datetime | None = None
    valid_to: datetime | None = None  # None = no expiry

    max_uses: int | None = None  # None = unlimited
    used_count: int = Field(default=0, ge=0)

    # all | new_users
    applicable_to: str = Field(default="all")

    is_active: bool = Field(default=True, index=True)
    auto_apply: bool = Field(default=False, index=True)
    show_in_cart: bool = Field(
        default=True,
        description="Whether the offer may be advertised as a near-miss in the cart",
    )

    auto_apply_count: int = Field(default=0, ge=0)
    manual_apply_count: int = Field(default=0, ge=0)

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="Creation timestamp (UTC); earliest wins auto-apply ties",
    )

    @property
    def cart_code(self) -> str:
        """Code stored on the cart; auto-only offers get a synthetic one."""
        return self.code or f"AUTO_{self.id.hex[:8].upper()}"

    @property
    def label(self) -> str:
        return self.display_name or self.description
