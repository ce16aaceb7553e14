# cart_pricing/models/settings.py
import uuid
from datetime import datetime, timezone
from decimal import Decimal

from sqlmodel import SQLModel, Field, Relationship


class StoreSettings(SQLModel, table=True):
    """
    Runtime-editable store configuration (singleton row).

    All prices in the store are VAT inclusive; vat_rate is only used to
    extract the VAT component for display and reporting.

    No row at all means the store is "unconfigured" and the named
    defaults in services/shipping_service.py apply.
    """

    __tablename__ = "store_settings"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
    )

    free_delivery_enabled: bool = True
    free_delivery_amount: Decimal = Field(
        default=Decimal("100.00"),
        max_digits=12,
        decimal_places=2,
    )

    vat_enabled: bool = True
    vat_rate: Decimal = Field(
        default=Decimal("20.00"),
        max_digits=5,
        decimal_places=2,
        ge=0,
        le=100,
    )

    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
    )
    updated_by: str = Field(default="system")

    delivery_tiers: list["DeliveryTier"] = Relationship(
        back_populates="settings",
        sa_relationship_kwargs={
            "cascade": "all, delete-orphan",
            "order_by": "DeliveryTier.position",
        },
    )


class DeliveryTier(SQLModel, table=True):
    """
    Delivery fee band on the order amount after discount.
    max_amount NULL = no upper limit.
    """

    __tablename__ = "delivery_tiers"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
    )

    settings_id: uuid.UUID | None = Field(
        default=None,
        foreign_key="store_settings.id",
        index=True,
    )

    position: int = Field(default=0, ge=0)

    min_amount: Decimal = Field(max_digits=12, decimal_places=2, ge=0)
    max_amount: Decimal | None = Field(default=None, max_digits=12, decimal_places=2)
    fee: Decimal = Field(max_digits=12, decimal_places=2, ge=0)

    settings: StoreSettings | None = Relationship(back_populates="delivery_tiers")
