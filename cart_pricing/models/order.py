# cart_pricing/models/order.py
import uuid
from datetime import datetime, timezone
from decimal import Decimal

from sqlmodel import SQLModel, Field


class Order(SQLModel, table=True):
    """
    Immutable price snapshot handed to order fulfilment.

    Pricing columns are copied from the cart at checkout and never
    recomputed afterwards. Fulfilment tracking is owned elsewhere;
    only `status` is kept here because cancelled orders do not count
    towards a buyer's order history.
    """

    __tablename__ = "orders"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )

    order_number: str = Field(
        unique=True,
        index=True,
        description="Human-facing order number, e.g. GL20260100042",
    )

    user_id: uuid.UUID = Field(
        foreign_key="users.id",
        index=True,
    )

    session_id: str = Field(description="Cart session this order was created from")

    note: str | None = Field(
        default=None,
        description="Optional note / special instructions",
    )

    # pending | confirmed | shipped | delivered | cancelled
    status: str = Field(
        default="pending",
        index=True,
        description="Order status lifecycle",
    )

    # ---- discount snapshot ----
    discount_code: str | None = None
    # No FK: offers may be deleted while carts/orders still reference them.
    offer_id: uuid.UUID | None = None
    discount_application_method: str = Field(default="none")

    # ---- pricing snapshot (all VAT inclusive) ----
    subtotal: Decimal = Field(max_digits=12, decimal_places=2)
    discount_amount: Decimal = Field(default=Decimal("0"), max_digits=12, decimal_places=2)
    shipping_fee: Decimal = Field(default=Decimal("0"), max_digits=12, decimal_places=2)
    tax_amount: Decimal = Field(
        default=Decimal("0"),
        max_digits=12,
        decimal_places=2,
        description="VAT contained in total (extracted, not added)",
    )
    vat_rate: Decimal = Field(default=Decimal("0"), max_digits=5, decimal_places=2)
    total_amount: Decimal = Field(
        max_digits=12,
        decimal_places=2,
        description="Final amount for this order (VAT inclusive)",
    )

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="Creation timestamp (UTC)",
    )


class OrderItem(SQLModel, table=True):
    """
    Line item inside an order, copied verbatim from the cart item.
    """

    __tablename__ = "order_items"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )

    order_id: uuid.UUID = Field(
        foreign_key="orders.id",
        index=True,
    )

    product_id: uuid.UUID = Field(
        foreign_key="products.id",
        index=True,
    )

    product_name: str
    product_code: str
    material_name: str
    size_mm: int | None = None
    finish_name: str | None = None
    include_packaging: bool = True

    material_base: Decimal = Field(max_digits=12, decimal_places=4)
    material_discount: Decimal = Field(default=Decimal("0"), max_digits=12, decimal_places=4)
    material_net: Decimal = Field(max_digits=12, decimal_places=4)
    size_cost: Decimal = Field(default=Decimal("0"), max_digits=12, decimal_places=4)
    finish_cost: Decimal = Field(default=Decimal("0"), max_digits=12, decimal_places=4)
    packaging_cost: Decimal = Field(default=Decimal("0"), max_digits=12, decimal_places=4)

    quantity: int = Field(
        gt=0,
        description="Quantity ordered (>=1)",
    )

    unit_price: Decimal = Field(
        max_digits=12,
        decimal_places=2,
        description="Unit price at time of order (VAT inclusive)",
    )

    line_total: Decimal = Field(max_digits=12, decimal_places=2)
