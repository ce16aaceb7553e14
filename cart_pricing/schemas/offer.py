# cart_pricing/schemas/offer.py
import uuid
from datetime import datetime
from decimal import Decimal
from typing import Literal

from pydantic import ConfigDict, field_validator, model_validator
from sqlmodel import SQLModel, Field

DiscountType = Literal["percentage", "fixed"]
ApplicableTo = Literal["all", "new_users"]


def _normalize_code(v: str | None) -> str | None:
    if v is None:
        return v
    v = v.strip().upper()
    return v or None


class OfferCreate(SQLModel):
    """
    Admin payload for creating an offer.

    Rules:
      - manual offers (auto_apply=False) need a code
      - percentage value in [0, 100], fixed value >= 0
      - valid_to, when given, must be after valid_from
    """

    model_config = ConfigDict(extra="forbid")

    code: str | None = None
    description: str
    display_name: str | None = None
    discount_type: DiscountType = "percentage"
    discount_value: Decimal = Field(ge=0)
    min_order_amount: Decimal = Field(default=Decimal("0"), ge=0)
    valid_from: datetime | None = None
    valid_to: datetime | None = None
    max_uses: int | None = Field(default=None, ge=0)
    applicable_to: ApplicableTo = "all"
    is_active: bool = True
    auto_apply: bool = False
    show_in_cart: bool = True

    @field_validator("code")
    @classmethod
    def normalize_code(cls, v: str | None) -> str | None:
        return _normalize_code(v)

    @model_validator(mode="after")
    def check_offer_rules(self) -> "OfferCreate":
        if not self.auto_apply and not self.code:
            raise ValueError("code is required for offers that are not auto-applied")
        if self.discount_type == "percentage" and self.discount_value > 100:
            raise ValueError("Percentage discount must be between 0 and 100")
        if self.valid_from and self.valid_to and self.valid_to <= self.valid_from:
            raise ValueError("valid_to must be after valid_from")
        return self


class OfferUpdate(SQLModel):
    """
    Partial update. Cross-field rules are re-checked by the service
    against the merged result.
    """

    model_config = ConfigDict(extra="forbid")

    code: str | None = None
    description: str | None = None
    display_name: str | None = None
    discount_type: DiscountType | None = None
    discount_value: Decimal | None = Field(default=None, ge=0)
    min_order_amount: Decimal | None = Field(default=None, ge=0)
    valid_from: datetime | None = None
    valid_to: datetime | None = None
    max_uses: int | None = Field(default=None, ge=0)
    applicable_to: ApplicableTo | None = None
    is_active: bool | None = None
    auto_apply: bool | None = None
    show_in_cart: bool | None = None

    @field_validator("code")
    @classmethod
    def normalize_code(cls, v: str | None) -> str | None:
        return _normalize_code(v)


class OfferRead(SQLModel):
    id: uuid.UUID
    code: str | None
    description: str
    display_name: str | None
    discount_type: DiscountType
    discount_value: Decimal
    min_order_amount: Decimal
    valid_from: datetime | None
    valid_to: datetime | None
    max_uses: int | None
    used_count: int
    applicable_to: ApplicableTo
    is_active: bool
    auto_apply: bool
    show_in_cart: bool
    auto_apply_count: int
    manual_apply_count: int
    created_at: datetime


class OfferValidateRequest(SQLModel):
    """
    Check a code against an arbitrary order amount (no cart involved).
    """

    model_config = ConfigDict(extra="forbid")

    code: str
    amount: Decimal = Field(ge=0)

    @field_validator("code")
    @classmethod
    def normalize_code(cls, v: str) -> str:
        v = _normalize_code(v)
        if not v:
            raise ValueError("Offer code is required")
        return v


class OfferValidateResult(SQLModel):
    valid: bool
    offer_id: uuid.UUID
    code: str
    description: str
    discount_type: DiscountType
    discount_value: Decimal
    discount_amount: Decimal
