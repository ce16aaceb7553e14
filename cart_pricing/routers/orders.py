# cart_pricing/routers/orders.py
import uuid

from fastapi import APIRouter, Depends, status
from sqlmodel import Session

from cart_pricing.core.auth import require_user
from cart_pricing.database import get_session
from cart_pricing.models.user import User
from cart_pricing.repositories.cart_repo import CartRepository
from cart_pricing.repositories.offer_repo import OfferRepository
from cart_pricing.repositories.order_repo import OrderRepository
from cart_pricing.repositories.settings_repo import SettingsRepository
from cart_pricing.schemas.order import (
    OrderCreate,
    OrderRead,
    OrderWithItemsRead,
)
from cart_pricing.services.offer_service import OfferService
from cart_pricing.services.order_service import OrderService
from cart_pricing.services.shipping_service import SettingsService

router = APIRouter(prefix="/orders", tags=["Orders"])

order_repo = OrderRepository()
cart_repo = CartRepository()
offer_repo = OfferRepository()
service = OrderService(
    order_repo,
    cart_repo,
    offer_repo,
    OfferService(offer_repo, cart_repo, order_repo),
    SettingsService(SettingsRepository()),
)


@router.post(
    "/checkout",
    response_model=OrderWithItemsRead,
    status_code=status.HTTP_201_CREATED,
)
def checkout(
    payload: OrderCreate,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_user),
):
    """
    Create an order from a session cart.

    Auth:
      - Only role='user' (customer) can checkout.
    """
    return service.checkout(session, current_user, payload)


@router.get(
    "/me",
    response_model=list[OrderRead],
)
def list_my_orders(
    session: Session = Depends(get_session),
    current_user: User = Depends(require_user),
    skip: int = 0,
    limit: int = 50,
):
    """
    List the current user's orders (newest first, without items).
    """
    return service.list_user_orders(session, current_user.id, skip, limit)


@router.get(
    "/me/{order_id}",
    response_model=OrderWithItemsRead,
)
def get_my_order(
    order_id: uuid.UUID,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_user),
):
    return service.get_user_order(session, current_user.id, order_id)
