# cart_pricing/services/shipping_service.py
import logging
from dataclasses import dataclass, field
from decimal import Decimal

from sqlmodel import Session

from cart_pricing.core.config import get_settings
from cart_pricing.core.exceptions import InvalidSettings
from cart_pricing.core.money import ZERO, round2, utcnow
from cart_pricing.models.settings import DeliveryTier, StoreSettings
from cart_pricing.repositories.settings_repo import SettingsRepository
from cart_pricing.schemas.settings import (
    DeliveryInfo,
    DeliveryTierIn,
    DeliveryTierRead,
    SettingsRead,
    SettingsUpdate,
)

logger = logging.getLogger(__name__)

app_settings = get_settings()

# Used only while no store_settings row exists.
DEFAULT_VAT_RATE = Decimal("20")
DEFAULT_FREE_DELIVERY_THRESHOLD = Decimal("100")
DEFAULT_DELIVERY_TIERS: tuple[tuple[Decimal, Decimal | None, Decimal], ...] = (
    (Decimal("0"), Decimal("49.99"), Decimal("5.99")),
    (Decimal("50"), Decimal("99.99"), Decimal("3.99")),
    (Decimal("100"), None, Decimal("0")),
)


@dataclass(frozen=True)
class Tier:
    min_amount: Decimal
    max_amount: Decimal | None
    fee: Decimal


@dataclass(frozen=True)
class PricingSettings:
    """
    Plain snapshot of the store's shipping/VAT configuration.
    configured=False means the named defaults above are in use.
    """

    tiers: tuple[Tier, ...] = field(default_factory=tuple)
    free_delivery_enabled: bool = True
    free_delivery_amount: Decimal = DEFAULT_FREE_DELIVERY_THRESHOLD
    vat_enabled: bool = True
    vat_rate: Decimal = DEFAULT_VAT_RATE
    configured: bool = False


@dataclass(frozen=True)
class VatBreakdown:
    gross: Decimal
    net: Decimal
    vat: Decimal
    rate: Decimal


@dataclass(frozen=True)
class OrderPricing:
    subtotal: Decimal
    discount: Decimal
    total_after_discount: Decimal
    shipping: Decimal
    tax: Decimal
    vat_rate: Decimal
    total: Decimal


def default_pricing_settings() -> PricingSettings:
    return PricingSettings(
        tiers=tuple(Tier(lo, hi, fee) for lo, hi, fee in DEFAULT_DELIVERY_TIERS),
    )


def pricing_settings_from_row(row: StoreSettings | None) -> PricingSettings:
    if row is None:
        return default_pricing_settings()
    return PricingSettings(
        tiers=tuple(
            Tier(
                Decimal(t.min_amount),
                Decimal(t.max_amount) if t.max_amount is not None else None,
                Decimal(t.fee),
            )
            for t in row.delivery_tiers
        ),
        free_delivery_enabled=row.free_delivery_enabled,
        free_delivery_amount=Decimal(row.free_delivery_amount),
        vat_enabled=row.vat_enabled,
        vat_rate=Decimal(row.vat_rate),
        configured=True,
    )


# ---------------------------------------------------------------------------
# Calculations
# ---------------------------------------------------------------------------


def _qualifies_for_free_delivery(amount: Decimal, settings: PricingSettings) -> bool:
    return settings.free_delivery_enabled and amount >= settings.free_delivery_amount


def shipping_fee(amount_after_discount: Decimal, settings: PricingSettings) -> Decimal:
    """
    Delivery fee for an order amount (after discount).

    - free when free delivery is enabled and the threshold is reached
    - otherwise the first tier with min <= amount <= max (max None = open)
    - no tier matches (gap in the table): the tier with the highest
      max, an open-ended one counting as highest
    - no tiers at all: free
    """
    amount = Decimal(amount_after_discount)

    if _qualifies_for_free_delivery(amount, settings):
        return round2(ZERO)

    if not settings.tiers:
        return round2(ZERO)

    for tier in settings.tiers:
        if tier.min_amount <= amount and (tier.max_amount is None or amount <= tier.max_amount):
            return round2(tier.fee)

    fallback = max(
        settings.tiers,
        key=lambda t: (t.max_amount is None, t.max_amount or ZERO),
    )
    logger.warning(
        f"[Shipping] No delivery tier matches {amount}; using fallback fee {fallback.fee}"
    )
    return round2(fallback.fee)


def extract_vat(tax_inclusive_amount: Decimal, rate: Decimal) -> VatBreakdown:
    """
    Split a VAT-inclusive amount: net = gross / (1 + rate/100), vat = gross - net.

    net is rounded to cents and vat is derived from it, so the two always
    add up to gross exactly.
    """
    gross = round2(tax_inclusive_amount)
    rate = Decimal(rate)
    net = round2(gross / (Decimal("1") + rate / Decimal("100")))
    return VatBreakdown(gross=gross, net=net, vat=gross - net, rate=rate)


def calculate_order_pricing(
    subtotal: Decimal,
    discount: Decimal,
    settings: PricingSettings,
) -> OrderPricing:
    """
    Final figures for a cart. Prices are VAT inclusive, so tax is the
    VAT contained in the total, not an extra charge.
    """
    subtotal = round2(subtotal)
    discount = round2(discount)
    after_discount = max(ZERO, subtotal - discount)

    shipping = shipping_fee(after_discount, settings)
    total = after_discount + shipping

    if settings.vat_enabled:
        tax = extract_vat(total, settings.vat_rate).vat
        vat_rate = settings.vat_rate
    else:
        tax = round2(ZERO)
        vat_rate = ZERO

    return OrderPricing(
        subtotal=subtotal,
        discount=discount,
        total_after_discount=after_discount,
        shipping=shipping,
        tax=tax,
        vat_rate=vat_rate,
        total=total,
    )


def delivery_info(
    amount: Decimal,
    settings: PricingSettings,
    currency_symbol: str = "£",
) -> DeliveryInfo:
    amount = round2(amount)
    fee = shipping_fee(amount, settings)

    if _qualifies_for_free_delivery(amount, settings) or (fee == ZERO and settings.tiers):
        return DeliveryInfo(
            amount=amount,
            current_fee=fee,
            is_free=True,
            message="You qualify for free delivery",
        )

    if settings.free_delivery_enabled:
        remaining = round2(settings.free_delivery_amount - amount)
        return DeliveryInfo(
            amount=amount,
            current_fee=fee,
            is_free=False,
            amount_to_free_delivery=remaining,
            message=f"Add {currency_symbol}{remaining} more for free delivery",
        )

    return DeliveryInfo(
        amount=amount,
        current_fee=fee,
        is_free=fee == ZERO,
        message=f"Delivery: {currency_symbol}{fee}",
    )


def validate_tiers(tiers: list[DeliveryTierIn]) -> None:
    """
    Tiers must have max > min and must not overlap. Gaps are allowed.

    Raises:
        InvalidSettings
    """
    ordered = sorted(tiers, key=lambda t: t.min_amount)
    for index, tier in enumerate(ordered):
        if tier.max_amount is not None and tier.max_amount <= tier.min_amount:
            raise InvalidSettings(
                f"Delivery tier {index + 1}: maximum must be greater than minimum",
                details={"min_amount": str(tier.min_amount), "max_amount": str(tier.max_amount)},
            )

    for prev, nxt in zip(ordered, ordered[1:]):
        if prev.max_amount is None or nxt.min_amount <= prev.max_amount:
            raise InvalidSettings(
                "Delivery tiers must not overlap",
                details={
                    "tier": f"{prev.min_amount}-{prev.max_amount or 'open'}",
                    "next_tier_min": str(nxt.min_amount),
                },
            )


class SettingsService:
    """
    Read and replace the store's shipping/VAT configuration.
    """

    def __init__(self, settings_repo: SettingsRepository):
        self.settings_repo = settings_repo

    def get_pricing_settings(self, session: Session) -> PricingSettings:
        return pricing_settings_from_row(self.settings_repo.get_settings(session))

    def get_settings(self, session: Session) -> SettingsRead:
        row = self.settings_repo.get_settings(session)
        effective = pricing_settings_from_row(row)
        return SettingsRead(
            configured=effective.configured,
            delivery_tiers=[
                DeliveryTierRead(min_amount=t.min_amount, max_amount=t.max_amount, fee=t.fee)
                for t in effective.tiers
            ],
            free_delivery_enabled=effective.free_delivery_enabled,
            free_delivery_amount=effective.free_delivery_amount,
            vat_enabled=effective.vat_enabled,
            vat_rate=effective.vat_rate,
            updated_at=row.updated_at if row else None,
        )

    def update_settings(
        self,
        session: Session,
        payload: SettingsUpdate,
        updated_by: str = "system",
    ) -> SettingsRead:
        """
        Replace the whole configuration (tiers included).
        """
        validate_tiers(payload.delivery_tiers)

        row = self.settings_repo.get_settings(session)
        if row is None:
            row = StoreSettings()

        row.free_delivery_enabled = payload.free_delivery_enabled
        row.free_delivery_amount = payload.free_delivery_amount
        row.vat_enabled = payload.vat_enabled
        row.vat_rate = payload.vat_rate
        row.updated_at = utcnow()
        row.updated_by = updated_by

        ordered = sorted(payload.delivery_tiers, key=lambda t: t.min_amount)
        row.delivery_tiers.clear()
        for position, tier in enumerate(ordered):
            row.delivery_tiers.append(
                DeliveryTier(
                    position=position,
                    min_amount=tier.min_amount,
                    max_amount=tier.max_amount,
                    fee=tier.fee,
                )
            )

        self.settings_repo.save(session, row)
        logger.info(
            f"[Settings] Updated by {updated_by}: {len(ordered)} tiers, "
            f"VAT {'on' if payload.vat_enabled else 'off'} @ {payload.vat_rate}%"
        )
        return self.get_settings(session)

    def get_delivery_info(self, session: Session, amount: Decimal) -> DeliveryInfo:
        return delivery_info(
            amount,
            self.get_pricing_settings(session),
            app_settings.CURRENCY_SYMBOL,
        )
