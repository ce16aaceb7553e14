# cart_pricing/services/offer_evaluator.py
from datetime import datetime
from decimal import Decimal

from sqlmodel import SQLModel

from cart_pricing.core.money import ZERO, as_utc, round2
from cart_pricing.models.offer import Offer


class OfferCheck(SQLModel):
    """
    Result of checking an offer's own rules (not the order minimum).
    reason is a customer-facing sentence when valid is False.
    """

    valid: bool
    reason: str | None = None

    @classmethod
    def ok(cls) -> "OfferCheck":
        return cls(valid=True)

    @classmethod
    def fail(cls, reason: str) -> "OfferCheck":
        return cls(valid=False, reason=reason)


def check_offer(offer: Offer, now: datetime, buyer_is_new: bool) -> OfferCheck:
    """
    Check activity, validity window, usage limit and audience.

    Checks run in a fixed order and the first failure wins:
      1. is_active
      2. valid_from <= now
      3. now <= valid_to
      4. used_count < max_uses (when max_uses is set)
      5. applicable_to == "new_users" requires buyer_is_new

    buyer_is_new must already be False for guests.
    """
    now = as_utc(now)

    if not offer.is_active:
        return OfferCheck.fail("Offer is not active")

    if offer.valid_from is not None and now < as_utc(offer.valid_from):
        return OfferCheck.fail("Offer has not started yet")

    if offer.valid_to is not None and now > as_utc(offer.valid_to):
        return OfferCheck.fail("Offer has expired")

    if offer.max_uses is not None and offer.used_count >= offer.max_uses:
        return OfferCheck.fail("Offer has reached maximum usage limit")

    if offer.applicable_to == "new_users" and not buyer_is_new:
        return OfferCheck.fail("Offer is only valid for new users")

    return OfferCheck.ok()


def calculate_discount(offer: Offer, subtotal: Decimal) -> Decimal:
    """
    Discount the offer is worth on `subtotal`.

    percentage -> round2(subtotal * value / 100)
    fixed      -> min(value, subtotal), never more than the cart itself
    """
    subtotal = Decimal(subtotal)
    if subtotal <= ZERO:
        return round2(ZERO)

    value = Decimal(offer.discount_value)
    if offer.discount_type == "percentage":
        return round2(subtotal * value / Decimal("100"))
    return round2(min(value, subtotal))


def meets_minimum(offer: Offer, subtotal: Decimal) -> bool:
    return Decimal(subtotal) >= Decimal(offer.min_order_amount or ZERO)


def minimum_not_met_message(offer: Offer, currency_symbol: str = "£") -> str:
    return (
        f"Minimum order amount of {currency_symbol}"
        f"{round2(offer.min_order_amount)} is required for this offer"
    )
