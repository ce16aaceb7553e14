# cart_pricing/services/offer_service.py
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from pydantic import ValidationError
from sqlmodel import Session

from cart_pricing.core.config import get_settings
from cart_pricing.core.exceptions import (
    CartNotFound,
    InvalidOfferDefinition,
    OfferCodeConflict,
    OfferIneligible,
    OfferNotFound,
)
from cart_pricing.core.money import ZERO, as_utc, round2, utcnow
from cart_pricing.models.cart import Cart
from cart_pricing.models.offer import Offer
from cart_pricing.repositories.cart_repo import CartRepository
from cart_pricing.repositories.offer_repo import OfferRepository
from cart_pricing.repositories.order_repo import OrderRepository
from cart_pricing.schemas.cart import ApplyCodeResult, NearMissOfferRead, build_cart_read
from cart_pricing.schemas.discount import DiscountState
from cart_pricing.schemas.offer import (
    OfferCreate,
    OfferUpdate,
    OfferValidateResult,
)
from cart_pricing.services.offer_evaluator import (
    calculate_discount,
    check_offer,
    meets_minimum,
    minimum_not_met_message,
)

logger = logging.getLogger(__name__)

settings = get_settings()


@dataclass(frozen=True)
class BestAutoOffer:
    offer: Offer
    amount: Decimal


@dataclass(frozen=True)
class NearMissOffer:
    offer: Offer
    gap_amount: Decimal
    potential_discount: Decimal


@dataclass(frozen=True)
class DiscountResolution:
    """
    Outcome of re-running discount resolution on a cart.

    newly_auto_applied_offer is set only when an automatic offer replaced
    whatever the cart held before (its auto_apply_count must be bumped).
    cleared_reason explains why a previously applied discount was dropped.
    """

    state: DiscountState
    newly_auto_applied_offer: Offer | None = None
    cleared_reason: str | None = None


# ---------------------------------------------------------------------------
# Pure resolution logic (no DB access)
# ---------------------------------------------------------------------------


def _is_auto_candidate(offer: Offer) -> bool:
    return offer.auto_apply and offer.is_active


def best_auto_offer(
    subtotal: Decimal,
    auto_offers: list[Offer],
    now: datetime,
    buyer_is_new: bool,
) -> BestAutoOffer | None:
    """
    Largest automatic discount the subtotal qualifies for.

    Ties go to the earliest-created offer. Offers worth nothing are ignored.
    """
    best: BestAutoOffer | None = None
    for offer in sorted(auto_offers, key=lambda o: as_utc(o.created_at)):
        if not _is_auto_candidate(offer):
            continue
        if not check_offer(offer, now, buyer_is_new).valid:
            continue
        if not meets_minimum(offer, subtotal):
            continue

        amount = calculate_discount(offer, subtotal)
        if amount <= ZERO:
            continue
        if best is None or amount > best.amount:
            best = BestAutoOffer(offer=offer, amount=amount)
    return best


def _revalidate(
    state: DiscountState,
    current_offer: Offer | None,
    subtotal: Decimal,
    now: datetime,
    buyer_is_new: bool,
) -> tuple[DiscountState, str | None]:
    """
    Keep the applied discount only if its offer still applies to the
    current subtotal; recompute the amount when it does.
    """
    if current_offer is None or current_offer.id != state.offer_id:
        return DiscountState.empty(), "Offer no longer exists"

    if subtotal <= ZERO:
        return DiscountState.empty(), "Cart is empty"

    check = check_offer(current_offer, now, buyer_is_new)
    if not check.valid:
        return DiscountState.empty(), check.reason

    if not meets_minimum(current_offer, subtotal):
        return DiscountState.empty(), minimum_not_met_message(
            current_offer, settings.CURRENCY_SYMBOL
        )

    amount = calculate_discount(current_offer, subtotal)
    return state.model_copy(update={"amount": amount}), None


def resolve_discount(
    cart: Cart,
    current_offer: Offer | None,
    auto_offers: list[Offer],
    now: datetime,
    buyer_is_new: bool,
) -> DiscountResolution:
    """
    Decide which discount the cart should carry for its current subtotal.

    1. Revalidate the applied discount; clear it entirely if it no longer
       applies, otherwise recompute its amount.
    2. Unless a manual code is locked in, switch to the best automatic
       offer when it is worth strictly more than what the cart has.
    """
    subtotal = Decimal(cart.subtotal or ZERO)
    state = cart.discount_state()
    cleared_reason: str | None = None

    if not state.is_empty:
        state, cleared_reason = _revalidate(state, current_offer, subtotal, now, buyer_is_new)
        if cleared_reason:
            logger.info(
                f"[Offers] Cleared discount {cart.discount_code} on cart "
                f"{cart.session_id}: {cleared_reason}"
            )

    if state.manual_locked:
        return DiscountResolution(state=state, cleared_reason=cleared_reason)

    best = best_auto_offer(subtotal, auto_offers, now, buyer_is_new)
    if best is not None and best.amount > state.amount:
        newly_applied = best.offer if best.offer.id != state.offer_id else None
        state = DiscountState.auto(best.offer.cart_code, best.offer.id, best.amount)
        return DiscountResolution(
            state=state,
            newly_auto_applied_offer=newly_applied,
            cleared_reason=cleared_reason,
        )

    return DiscountResolution(state=state, cleared_reason=cleared_reason)


def near_miss_offers(
    subtotal: Decimal,
    auto_offers: list[Offer],
    now: datetime,
    buyer_is_new: bool,
    limit: int | None = None,
) -> list[NearMissOffer]:
    """
    Automatic offers the buyer would get by spending a bit more.

    Only offers flagged show_in_cart that pass every other check are listed,
    closest (smallest gap) first.
    """
    subtotal = Decimal(subtotal)
    results: list[NearMissOffer] = []

    for offer in auto_offers:
        if not _is_auto_candidate(offer) or not offer.show_in_cart:
            continue
        if not check_offer(offer, now, buyer_is_new).valid:
            continue

        minimum = Decimal(offer.min_order_amount or ZERO)
        if subtotal >= minimum:
            continue

        results.append(
            NearMissOffer(
                offer=offer,
                gap_amount=round2(minimum - subtotal),
                potential_discount=calculate_discount(offer, minimum),
            )
        )

    results.sort(key=lambda nm: (nm.gap_amount, as_utc(nm.offer.created_at)))
    if limit is not None:
        results = results[:limit]
    return results


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------


class OfferService:
    """
    Offer lookup, cart discount resolution and offer administration.

    Cart-facing operations load the cart, mutate its discount state and
    commit. refresh_discount() is the no-commit building block that
    CartService and OrderService call inside their own transactions.
    """

    def __init__(
        self,
        offer_repo: OfferRepository,
        cart_repo: CartRepository,
        order_repo: OrderRepository,
    ):
        self.offer_repo = offer_repo
        self.cart_repo = cart_repo
        self.order_repo = order_repo

    # ---- helpers ----

    def _get_cart(self, session: Session, session_id: str) -> Cart:
        cart = self.cart_repo.get_by_session_id(session, session_id)
        if cart is None:
            raise CartNotFound(session_id)
        return cart

    def is_new_buyer(self, session: Session, buyer_id: uuid.UUID | None) -> bool:
        """
        A buyer is "new" with zero non-cancelled orders. Guests never are.
        """
        if buyer_id is None:
            return False
        return self.order_repo.count_active_for_user(session, buyer_id) == 0

    def discount_label(self, session: Session, cart: Cart) -> str | None:
        if cart.offer_id is None:
            return None
        offer = self.offer_repo.get_by_id(session, cart.offer_id)
        return offer.label if offer else None

    def _to_cart_read(self, session: Session, cart: Cart):
        return build_cart_read(cart, self.discount_label(session, cart))

    # ---- resolution ----

    def refresh_discount(
        self,
        session: Session,
        cart: Cart,
        buyer_id: uuid.UUID | None = None,
    ) -> DiscountResolution:
        """
        Re-run resolution against the cart's current subtotal and write
        the result onto the cart. Does not commit.

        Eligibility is judged for the cart's linked user; buyer_id only
        counts while the cart is still a guest cart.
        """
        buyer_id = cart.user_id or buyer_id
        current_offer = (
            self.offer_repo.get_by_id(session, cart.offer_id) if cart.offer_id else None
        )
        auto_offers = self.offer_repo.list_active_auto_offers(session)

        resolution = resolve_discount(
            cart,
            current_offer,
            auto_offers,
            utcnow(),
            self.is_new_buyer(session, buyer_id),
        )
        cart.apply_discount_state(resolution.state)

        if resolution.newly_auto_applied_offer is not None:
            offer = resolution.newly_auto_applied_offer
            self.offer_repo.increment_usage(session, offer.id, "auto_apply_count")
            logger.info(
                f"[Offers] Auto-applied {offer.cart_code} to cart {cart.session_id} "
                f"(discount {resolution.state.amount})"
            )

        return resolution

    def refresh_discount_safely(
        self,
        session: Session,
        cart: Cart,
        buyer_id: uuid.UUID | None = None,
    ) -> DiscountResolution | None:
        """
        refresh_discount() for cart mutations: any failure degrades to
        "no discount" so the item change itself still goes through.
        """
        try:
            return self.refresh_discount(session, cart, buyer_id)
        except Exception:
            logger.exception(
                f"[Offers] Discount resolution failed for cart {cart.session_id}; "
                "clearing discount"
            )
            cart.apply_discount_state(DiscountState.empty())
            return None

    # ---- cart discount operations ----

    def apply_code(
        self,
        session: Session,
        session_id: str,
        code: str,
        buyer_id: uuid.UUID | None = None,
    ) -> ApplyCodeResult:
        """
        Apply a code the buyer typed in.

        Rules:
          - unknown code -> OfferNotFound
          - another manual code already applied -> OfferCodeConflict
            (an automatic offer never blocks a manual code)
          - offer rules or minimum not met -> OfferIneligible(reason)
          - an automatic offer worth strictly more wins instead,
            reported via better_offer_applied
          - otherwise the code is applied and locked in
        Re-submitting the applied code just recomputes the amount.
        """
        cart = self._get_cart(session, session_id)
        buyer_id = cart.user_id or buyer_id
        code = code.strip().upper()

        offer = self.offer_repo.get_by_code(session, code)
        if offer is None:
            raise OfferNotFound(code)

        current = cart.discount_state()
        if current.application_method == "manual" and current.code != offer.cart_code:
            raise OfferCodeConflict(current.code, code)

        now = utcnow()
        buyer_is_new = self.is_new_buyer(session, buyer_id)

        check = check_offer(offer, now, buyer_is_new)
        if not check.valid:
            raise OfferIneligible(code, check.reason)

        subtotal = Decimal(cart.subtotal or ZERO)
        if not meets_minimum(offer, subtotal):
            raise OfferIneligible(code, minimum_not_met_message(offer, settings.CURRENCY_SYMBOL))

        manual_amount = calculate_discount(offer, subtotal)
        auto_offers = self.offer_repo.list_active_auto_offers(session)
        best = best_auto_offer(subtotal, auto_offers, now, buyer_is_new)

        if best is not None and best.amount > manual_amount:
            already_applied = (
                current.offer_id == best.offer.id and current.application_method == "auto"
            )
            cart.apply_discount_state(
                DiscountState.auto(best.offer.cart_code, best.offer.id, best.amount)
            )
            if not already_applied:
                self.offer_repo.increment_usage(session, best.offer.id, "auto_apply_count")

            better_offer_applied = True
            message = (
                f"{best.offer.label} gives you a bigger discount "
                f"({settings.CURRENCY_SYMBOL}{best.amount}), so it was applied instead of {code}"
            )
            logger.info(
                f"[Offers] Code {code} on cart {session_id} beaten by "
                f"{best.offer.cart_code} ({best.amount} > {manual_amount})"
            )
        else:
            newly_applied = not (
                current.offer_id == offer.id and current.application_method == "manual"
            )
            cart.apply_discount_state(DiscountState.manual(offer.cart_code, offer.id, manual_amount))
            if newly_applied:
                self.offer_repo.increment_usage(session, offer.id, "manual_apply_count")

            better_offer_applied = False
            message = f"Discount code {code} applied"
            logger.info(f"[Offers] Applied code {code} to cart {session_id} ({manual_amount})")

        cart.touch()
        cart = self.cart_repo.save(session, cart)

        return ApplyCodeResult(
            cart=self._to_cart_read(session, cart),
            better_offer_applied=better_offer_applied,
            message=message,
        )

    def remove_code(
        self,
        session: Session,
        session_id: str,
        buyer_id: uuid.UUID | None = None,
    ):
        """
        Drop the applied discount and its lock; the best automatic
        offer (if any) takes over.
        """
        cart = self._get_cart(session, session_id)
        if cart.discount_code:
            logger.info(f"[Offers] Removed {cart.discount_code} from cart {session_id}")

        cart.apply_discount_state(DiscountState.empty())
        self.refresh_discount_safely(session, cart, buyer_id)
        cart.touch()
        cart = self.cart_repo.save(session, cart)
        return self._to_cart_read(session, cart)

    def unlock_code(
        self,
        session: Session,
        session_id: str,
        buyer_id: uuid.UUID | None = None,
    ):
        """
        Keep the manual code but let automatic offers compete with it again.
        """
        cart = self._get_cart(session, session_id)
        state = cart.discount_state()
        if not state.is_empty:
            cart.apply_discount_state(state.model_copy(update={"manual_locked": False}))
        else:
            cart.manual_code_locked = False

        self.refresh_discount_safely(session, cart, buyer_id)
        cart.touch()
        cart = self.cart_repo.save(session, cart)
        return self._to_cart_read(session, cart)

    def get_near_miss_offers(
        self,
        session: Session,
        session_id: str,
        buyer_id: uuid.UUID | None = None,
        limit: int | None = None,
    ) -> list[NearMissOfferRead]:
        cart = self._get_cart(session, session_id)
        buyer_id = cart.user_id or buyer_id

        near_misses = near_miss_offers(
            Decimal(cart.subtotal or ZERO),
            self.offer_repo.list_active_auto_offers(session),
            utcnow(),
            self.is_new_buyer(session, buyer_id),
            limit=limit,
        )
        return [
            NearMissOfferRead(
                offer_id=nm.offer.id,
                code=nm.offer.code,
                label=nm.offer.label,
                discount_type=nm.offer.discount_type,
                discount_value=nm.offer.discount_value,
                min_order_amount=nm.offer.min_order_amount,
                gap_amount=nm.gap_amount,
                potential_discount=nm.potential_discount,
            )
            for nm in near_misses
        ]

    def validate_code(
        self,
        session: Session,
        code: str,
        amount: Decimal,
        buyer_id: uuid.UUID | None = None,
    ) -> OfferValidateResult:
        """
        Check a code against an order amount without touching any cart.
        """
        offer = self.offer_repo.get_by_code(session, code)
        if offer is None:
            raise OfferNotFound(code)

        check = check_offer(offer, utcnow(), self.is_new_buyer(session, buyer_id))
        if not check.valid:
            raise OfferIneligible(code, check.reason)

        if not meets_minimum(offer, amount):
            raise OfferIneligible(code, minimum_not_met_message(offer, settings.CURRENCY_SYMBOL))

        return OfferValidateResult(
            valid=True,
            offer_id=offer.id,
            code=offer.cart_code,
            description=offer.label,
            discount_type=offer.discount_type,
            discount_value=offer.discount_value,
            discount_amount=calculate_discount(offer, amount),
        )

    # ---- admin ----

    def _ensure_code_free(
        self,
        session: Session,
        code: str | None,
        offer_id: uuid.UUID | None = None,
    ) -> None:
        if not code:
            return
        existing = self.offer_repo.get_by_code(session, code)
        if existing is not None and existing.id != offer_id:
            raise InvalidOfferDefinition(
                "Offer code already exists", details={"code": code}
            )

    def create_offer(self, session: Session, payload: OfferCreate) -> Offer:
        self._ensure_code_free(session, payload.code)
        offer = Offer(**payload.model_dump())
        offer = self.offer_repo.create(session, offer)
        logger.info(f"[Offers] Created offer {offer.cart_code} ({offer.id})")
        return offer

    def list_offers(
        self,
        session: Session,
        skip: int = 0,
        limit: int = 50,
        only_active: bool = False,
    ) -> list[Offer]:
        return self.offer_repo.list_offers(
            session, skip=skip, limit=limit, only_active=only_active
        )

    def get_offer(self, session: Session, offer_id: uuid.UUID) -> Offer:
        offer = self.offer_repo.get_by_id(session, offer_id)
        if offer is None:
            raise OfferNotFound(offer_id)
        return offer

    def update_offer(
        self,
        session: Session,
        offer_id: uuid.UUID,
        payload: OfferUpdate,
    ) -> Offer:
        """
        Partial update; the merged offer must still satisfy OfferCreate rules.
        Counters are never touched here.
        """
        offer = self.offer_repo.get_by_id(session, offer_id)
        if offer is None:
            raise OfferNotFound(offer_id)

        changes = payload.model_dump(exclude_unset=True)
        merged = offer.model_dump(include=set(OfferCreate.model_fields))
        merged.update(changes)

        try:
            validated = OfferCreate.model_validate(merged)
        except ValidationError as exc:
            raise InvalidOfferDefinition(
                "Invalid offer definition",
                details={"errors": [e["msg"] for e in exc.errors()]},
            )

        self._ensure_code_free(session, validated.code, offer_id=offer.id)

        for field in changes:
            setattr(offer, field, getattr(validated, field))

        offer = self.offer_repo.update(session, offer)
        logger.info(f"[Offers] Updated offer {offer.cart_code}: {sorted(changes)}")
        return offer

    def delete_offer(self, session: Session, offer_id: uuid.UUID) -> None:
        offer = self.offer_repo.get_by_id(session, offer_id)
        if offer is None:
            raise OfferNotFound(offer_id)
        self.offer_repo.delete(session, offer)
        logger.info(f"[Offers] Deleted offer {offer_id}")
