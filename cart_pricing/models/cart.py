# cart_pricing/models/cart.py
import uuid
from datetime import datetime, timezone
from decimal import Decimal

from sqlmodel import SQLModel, Field, Relationship

from cart_pricing.schemas.discount import DiscountState


class Cart(SQLModel, table=True):
    """
    Shopping cart for one browsing session.

    - Identified by the storefront's session_id (guests included).
    - user_id is attached when the guest logs in.
    - subtotal is always the sum of item line totals.
    - The discount columns are written together via apply_discount_state().
    """

    __tablename__ = "carts"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )

    session_id: str = Field(
        max_length=255,
        unique=True,
        index=True,
    )

    user_id: uuid.UUID | None = Field(
        default=None,
        foreign_key="users.id",
        index=True,
    )

    subtotal: Decimal = Field(
        default=Decimal("0"),
        max_digits=12,
        decimal_places=2,
    )

    # ---- discount state ----
    discount_code: str | None = None
    # No FK: offers may be deleted while carts/orders still reference them.
    offer_id: uuid.UUID | None = None
    discount_amount: Decimal = Field(
        default=Decimal("0"),
        max_digits=12,
        decimal_places=2,
    )
    is_auto_applied: bool = False
    # none | manual | auto
    discount_application_method: str = Field(default="none")
    manual_code_locked: bool = False

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
    )
    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
    )

    items: list["CartItem"] = Relationship(
        back_populates="cart",
        sa_relationship_kwargs={
            "cascade": "all, delete-orphan",
            "order_by": "CartItem.created_at",
        },
    )

    def recalculate_subtotal(self) -> Decimal:
        self.subtotal = sum((item.line_total for item in self.items), Decimal("0"))
        return self.subtotal

    def discount_state(self) -> DiscountState:
        if self.offer_id is None:
            return DiscountState.empty()
        return DiscountState(
            code=self.discount_code,
            offer_id=self.offer_id,
            amount=self.discount_amount,
            is_auto_applied=self.is_auto_applied,
            application_method=self.discount_application_method,
            manual_locked=self.manual_code_locked,
        )

    def apply_discount_state(self, state: DiscountState) -> None:
        self.discount_code = state.code
        self.offer_id = state.offer_id
        self.discount_amount = state.amount
        self.is_auto_applied = state.is_auto_applied
        self.discount_application_method = state.application_method
        self.manual_code_locked = state.manual_locked

    def touch(self) -> None:
        self.updated_at = datetime.now(timezone.utc)


class CartItem(SQLModel, table=True):
    """
    Immutable price snapshot of one configured product in a cart.

    Only quantity (and therefore line_total) changes after creation.
    Later catalog edits never touch existing rows.
    """

    __tablename__ = "cart_items"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )

    cart_id: uuid.UUID | None = Field(
        default=None,
        foreign_key="carts.id",
        index=True,
    )

    # ---- selection snapshot ----
    product_id: uuid.UUID = Field(foreign_key="products.id", index=True)
    product_name: str
    product_code: str
    material_id: uuid.UUID | None = None
    material_name: str
    size_mm: int | None = None
    size_name: str | None = None
    finish_id: uuid.UUID | None = None
    finish_name: str | None = None
    include_packaging: bool = True

    # ---- price breakdown snapshot (per unit) ----
    material_base: Decimal = Field(max_digits=12, decimal_places=4)
    material_discount: Decimal = Field(default=Decimal("0"), max_digits=12, decimal_places=4)
    material_net: Decimal = Field(max_digits=12, decimal_places=4)
    size_cost: Decimal = Field(default=Decimal("0"), max_digits=12, decimal_places=4)
    finish_cost: Decimal = Field(default=Decimal("0"), max_digits=12, decimal_places=4)
    packaging_cost: Decimal = Field(default=Decimal("0"), max_digits=12, decimal_places=4)

    # ---- final prices ----
    unit_price: Decimal = Field(max_digits=12, decimal_places=2)
    quantity: int = Field(
        gt=0,
        description="Must be >= 1",
    )
    line_total: Decimal = Field(max_digits=12, decimal_places=2)

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
    )

    cart: Cart | None = Relationship(back_populates="items")
