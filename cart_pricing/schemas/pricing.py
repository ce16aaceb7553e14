# cart_pricing/schemas/pricing.py
import uuid
from decimal import Decimal

from pydantic import ConfigDict, field_validator, model_validator
from sqlmodel import SQLModel


class Selection(SQLModel):
    """
    A buyer's chosen configuration for one product.

    The material is referenced either by material_id or by its exact name.
    quantity is validated by the price calculator (InvalidQuantity), not here.
    """

    model_config = ConfigDict(extra="forbid")

    product_id: uuid.UUID
    material_id: uuid.UUID | None = None
    material_name: str | None = None
    size_mm: int | None = None
    finish_id: uuid.UUID | None = None
    quantity: int = 1
    include_packaging: bool = True

    @field_validator("material_name")
    @classmethod
    def normalize_material_name(cls, v: str | None) -> str | None:
        if v is None:
            return v
        v = v.strip()
        return v or None

    @model_validator(mode="after")
    def material_reference_required(self) -> "Selection":
        if self.material_id is None and self.material_name is None:
            raise ValueError("material_id or material_name is required")
        return self


class PriceBreakdown(SQLModel):
    """
    Per-unit price components.

    material_net = max(0, material_base - material_discount).
    finishes may be negative.
    """

    material_base: Decimal
    material_discount: Decimal = Decimal("0")
    material_net: Decimal
    size: Decimal = Decimal("0")
    finishes: Decimal = Decimal("0")
    packaging: Decimal = Decimal("0")


class PricePreview(SQLModel):
    unit_price: Decimal
    quantity: int
    total_amount: Decimal
    breakdown: PriceBreakdown
