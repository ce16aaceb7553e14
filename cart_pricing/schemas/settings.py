# cart_pricing/schemas/settings.py
from datetime import datetime
from decimal import Decimal

from pydantic import ConfigDict
from sqlmodel import SQLModel, Field


class DeliveryTierIn(SQLModel):
    model_config = ConfigDict(extra="forbid")

    min_amount: Decimal = Field(ge=0)
    max_amount: Decimal | None = Field(default=None, ge=0)
    fee: Decimal = Field(ge=0)


class DeliveryTierRead(SQLModel):
    min_amount: Decimal
    max_amount: Decimal | None = None
    fee: Decimal


class SettingsUpdate(SQLModel):
    """
    Admin payload replacing the whole pricing configuration.
    Tiers may leave gaps but must not overlap.
    """

    model_config = ConfigDict(extra="forbid")

    delivery_tiers: list[DeliveryTierIn] = []
    free_delivery_enabled: bool = True
    free_delivery_amount: Decimal = Field(default=Decimal("100.00"), ge=0)
    vat_enabled: bool = True
    vat_rate: Decimal = Field(default=Decimal("20.00"), ge=0, le=100)


class SettingsRead(SQLModel):
    """
    Effective pricing configuration.

    configured=False means no settings were ever saved and the
    built-in defaults are in effect.
    """

    configured: bool
    delivery_tiers: list[DeliveryTierRead]
    free_delivery_enabled: bool
    free_delivery_amount: Decimal
    vat_enabled: bool
    vat_rate: Decimal
    updated_at: datetime | None = None


class DeliveryInfo(SQLModel):
    """
    Delivery fee hint for the cart page.
    """

    amount: Decimal
    current_fee: Decimal
    is_free: bool
    amount_to_free_delivery: Decimal | None = None
    message: str
