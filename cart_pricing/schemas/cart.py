# cart_pricing/schemas/cart.py
import uuid
from datetime import datetime
from decimal import Decimal

from pydantic import ConfigDict, field_validator
from sqlmodel import SQLModel

from cart_pricing.schemas.discount import ApplicationMethod
from cart_pricing.schemas.pricing import PriceBreakdown


class CartItemUpdate(SQLModel):
    """
    Payload for updating quantity of a cart item.
    """

    model_config = ConfigDict(extra="forbid")

    quantity: int


class CartItemRead(SQLModel):
    """
    Read model for a single cart item snapshot.
    """

    id: uuid.UUID
    product_id: uuid.UUID
    product_name: str
    product_code: str
    material_id: uuid.UUID | None = None
    material_name: str
    size_mm: int | None = None
    size_name: str | None = None
    finish_id: uuid.UUID | None = None
    finish_name: str | None = None
    include_packaging: bool
    breakdown: PriceBreakdown
    unit_price: Decimal
    quantity: int
    line_total: Decimal
    created_at: datetime


class DiscountRead(SQLModel):
    code: str | None = None
    offer_id: uuid.UUID | None = None
    amount: Decimal = Decimal("0")
    is_auto_applied: bool = False
    application_method: ApplicationMethod = "none"
    manual_locked: bool = False
    label: str | None = None


class CartRead(SQLModel):
    """
    Full cart response model: items, subtotal and the applied discount.
    """

    id: uuid.UUID
    session_id: str
    user_id: uuid.UUID | None = None
    items: list[CartItemRead]
    total_quantity: int
    subtotal: Decimal
    discount: DiscountRead
    total: Decimal
    updated_at: datetime


class ApplyCodeRequest(SQLModel):
    model_config = ConfigDict(extra="forbid")

    code: str

    @field_validator("code")
    @classmethod
    def normalize_code(cls, v: str) -> str:
        v = v.strip().upper()
        if not v:
            raise ValueError("Discount code is required")
        return v


class ApplyCodeResult(SQLModel):
    """
    Outcome of a manual code submission.

    better_offer_applied=True means the submitted code was valid but an
    automatic offer was worth more, so that one was applied instead.
    """

    cart: CartRead
    better_offer_applied: bool = False
    message: str


class NearMissOfferRead(SQLModel):
    offer_id: uuid.UUID
    code: str | None = None
    label: str
    discount_type: str
    discount_value: Decimal
    min_order_amount: Decimal
    gap_amount: Decimal
    potential_discount: Decimal


class CheckoutSummary(SQLModel):
    """
    Final price breakdown for a cart (all amounts VAT inclusive).
    tax is the VAT contained in total, shown for information.
    """

    session_id: str
    item_count: int
    total_quantity: int
    subtotal: Decimal
    discount_code: str | None = None
    discount: Decimal
    total_after_discount: Decimal
    shipping: Decimal
    tax: Decimal
    vat_rate: Decimal
    total: Decimal
    currency_symbol: str


def build_cart_read(cart, discount_label: str | None = None) -> CartRead:
    """
    Map a Cart row (with items loaded) to its response model.

    total = subtotal - discount, never below zero.
    """
    items = [
        CartItemRead(
            id=it.id,
            product_id=it.product_id,
            product_name=it.product_name,
            product_code=it.product_code,
            material_id=it.material_id,
            material_name=it.material_name,
            size_mm=it.size_mm,
            size_name=it.size_name,
            finish_id=it.finish_id,
            finish_name=it.finish_name,
            include_packaging=it.include_packaging,
            breakdown=PriceBreakdown(
                material_base=it.material_base,
                material_discount=it.material_discount,
                material_net=it.material_net,
                size=it.size_cost,
                finishes=it.finish_cost,
                packaging=it.packaging_cost,
            ),
            unit_price=it.unit_price,
            quantity=it.quantity,
            line_total=it.line_total,
            created_at=it.created_at,
        )
        for it in cart.items
    ]

    subtotal = Decimal(cart.subtotal or 0)
    discount_amount = Decimal(cart.discount_amount or 0)

    return CartRead(
        id=cart.id,
        session_id=cart.session_id,
        user_id=cart.user_id,
        items=items,
        total_quantity=sum(it.quantity for it in cart.items),
        subtotal=subtotal,
        discount=DiscountRead(
            code=cart.discount_code,
            offer_id=cart.offer_id,
            amount=discount_amount,
            is_auto_applied=cart.is_auto_applied,
            application_method=cart.discount_application_method,
            manual_locked=cart.manual_code_locked,
            label=discount_label,
        ),
        total=max(Decimal("0"), subtotal - discount_amount),
        updated_at=cart.updated_at,
    )
