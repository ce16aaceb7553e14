# cart_pricing/schemas/order.py
import uuid
from datetime import datetime
from decimal import Decimal
from typing import Literal

from pydantic import ConfigDict, field_validator
from sqlmodel import SQLModel

OrderStatus = Literal["pending", "confirmed", "shipped", "delivered", "cancelled"]


class OrderCreate(SQLModel):
    """
    Payload for creating an order from a cart session.

    Backend derives:
      - user_id from token
      - status = 'pending'
      - items, discount, shipping, VAT and total from the cart
    """

    model_config = ConfigDict(extra="forbid")

    session_id: str
    note: str | None = None

    @field_validator("session_id")
    @classmethod
    def not_empty(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("session_id cannot be empty")
        return v

    @field_validator("note")
    @classmethod
    def normalize_note(cls, v: str | None) -> str | None:
        if v is None:
            return v
        v = v.strip()
        return v or None


class OrderRead(SQLModel):
    """
    Lightweight representation of an order (without items).
    """

    id: uuid.UUID
    order_number: str
    user_id: uuid.UUID
    session_id: str
    note: str | None
    status: OrderStatus
    discount_code: str | None
    discount_application_method: str
    subtotal: Decimal
    discount_amount: Decimal
    shipping_fee: Decimal
    tax_amount: Decimal
    vat_rate: Decimal
    total_amount: Decimal
    created_at: datetime


class OrderItemRead(SQLModel):
    """
    Representation of a single order line item.
    """

    id: uuid.UUID
    order_id: uuid.UUID
    product_id: uuid.UUID
    product_name: str
    product_code: str
    material_name: str
    size_mm: int | None
    finish_name: str | None
    quantity: int
    unit_price: Decimal
    line_total: Decimal


class OrderWithItemsRead(OrderRead):
    """
    Full order view including items.
    """

    items: list[OrderItemRead]
