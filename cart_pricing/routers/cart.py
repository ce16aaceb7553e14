# cart_pricing/routers/cart.py
import uuid

from fastapi import APIRouter, Depends, Query
from sqlmodel import Session

from cart_pricing.core.auth import get_current_user, require_auth
from cart_pricing.database import get_session
from cart_pricing.models.user import User
from cart_pricing.repositories.cart_repo import CartRepository
from cart_pricing.repositories.offer_repo import OfferRepository
from cart_pricing.repositories.order_repo import OrderRepository
from cart_pricing.repositories.product_repo import ProductRepository
from cart_pricing.repositories.settings_repo import SettingsRepository
from cart_pricing.schemas.cart import (
    ApplyCodeRequest,
    ApplyCodeResult,
    CartItemUpdate,
    CartRead,
    CheckoutSummary,
    NearMissOfferRead,
)
from cart_pricing.schemas.pricing import Selection
from cart_pricing.services.cart_service import CartService
from cart_pricing.services.offer_service import OfferService
from cart_pricing.services.order_service import OrderService
from cart_pricing.services.pricing_service import PricingService
from cart_pricing.services.shipping_service import SettingsService

router = APIRouter(prefix="/cart", tags=["Cart"])

cart_repo = CartRepository()
offer_repo = OfferRepository()
order_repo = OrderRepository()
product_repo = ProductRepository()

offer_service = OfferService(offer_repo, cart_repo, order_repo)
service = CartService(cart_repo, PricingService(product_repo), offer_service)
order_service = OrderService(
    order_repo,
    cart_repo,
    offer_repo,
    offer_service,
    SettingsService(SettingsRepository()),
)


def _buyer_id(user: User | None) -> uuid.UUID | None:
    return user.id if user else None


# -------- Items --------


@router.get("/{session_id}", response_model=CartRead)
def get_cart(
    session_id: str,
    session: Session = Depends(get_session),
):
    """
    Get the cart for a browsing session (guests included).
    """
    return service.get_cart(session, session_id)


@router.post("/{session_id}/items", response_model=CartRead)
def add_item(
    session_id: str,
    payload: Selection,
    session: Session = Depends(get_session),
    current_user: User | None = Depends(get_current_user),
):
    """
    Price a selection and add it to the cart (created on first add).

    Returns the updated cart with its re-resolved discount.
    """
    return service.add_item(session, session_id, payload, _buyer_id(current_user))


@router.patch("/{session_id}/items/{item_id}", response_model=CartRead)
def update_item_quantity(
    session_id: str,
    item_id: uuid.UUID,
    payload: CartItemUpdate,
    session: Session = Depends(get_session),
    current_user: User | None = Depends(get_current_user),
):
    return service.update_item_quantity(
        session=session,
        session_id=session_id,
        item_id=item_id,
        quantity=payload.quantity,
        buyer_id=_buyer_id(current_user),
    )


@router.delete("/{session_id}/items/{item_id}", response_model=CartRead)
def remove_item(
    session_id: str,
    item_id: uuid.UUID,
    session: Session = Depends(get_session),
    current_user: User | None = Depends(get_current_user),
):
    return service.remove_item(session, session_id, item_id, _buyer_id(current_user))


@router.delete("/{session_id}", response_model=CartRead)
def clear_cart(
    session_id: str,
    session: Session = Depends(get_session),
):
    """
    Remove every item and any applied discount.
    """
    return service.clear_cart(session, session_id)


@router.post("/{session_id}/link", response_model=CartRead)
def link_cart(
    session_id: str,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_auth),
):
    """
    Attach a guest cart to the user who just logged in.

    Discount eligibility is re-evaluated for the user.
    """
    return service.link_to_user(session, session_id, current_user.id)


# -------- Discount --------


@router.post("/{session_id}/discount", response_model=ApplyCodeResult)
def apply_code(
    session_id: str,
    payload: ApplyCodeRequest,
    session: Session = Depends(get_session),
    current_user: User | None = Depends(get_current_user),
):
    """
    Apply a discount code.

    If an automatic offer is worth more, that one is applied instead and
    `better_offer_applied` is true.
    """
    return offer_service.apply_code(session, session_id, payload.code, _buyer_id(current_user))


@router.delete("/{session_id}/discount", response_model=CartRead)
def remove_code(
    session_id: str,
    session: Session = Depends(get_session),
    current_user: User | None = Depends(get_current_user),
):
    return offer_service.remove_code(session, session_id, _buyer_id(current_user))


@router.post("/{session_id}/discount/unlock", response_model=CartRead)
def unlock_code(
    session_id: str,
    session: Session = Depends(get_session),
    current_user: User | None = Depends(get_current_user),
):
    """
    Let automatic offers compete with the applied manual code again.
    """
    return offer_service.unlock_code(session, session_id, _buyer_id(current_user))


@router.get("/{session_id}/near-miss-offers", response_model=list[NearMissOfferRead])
def get_near_miss_offers(
    session_id: str,
    session: Session = Depends(get_session),
    current_user: User | None = Depends(get_current_user),
    limit: int | None = Query(default=None, ge=1),
):
    """
    Automatic offers the cart is close to qualifying for, closest first.
    """
    return offer_service.get_near_miss_offers(
        session, session_id, _buyer_id(current_user), limit=limit
    )


@router.get("/{session_id}/summary", response_model=CheckoutSummary)
def get_summary(
    session_id: str,
    session: Session = Depends(get_session),
    current_user: User | None = Depends(get_current_user),
):
    """
    Final price breakdown: subtotal, discount, shipping, VAT and total.
    """
    return order_service.finalize(session, session_id, _buyer_id(current_user))
