# cart_pricing/routers/offers.py
import uuid

from fastapi import APIRouter, Depends, status
from sqlmodel import Session

from cart_pricing.core.auth import get_current_user, require_admin
from cart_pricing.database import get_session
from cart_pricing.models.user import User
from cart_pricing.repositories.cart_repo import CartRepository
from cart_pricing.repositories.offer_repo import OfferRepository
from cart_pricing.repositories.order_repo import OrderRepository
from cart_pricing.schemas.offer import (
    OfferCreate,
    OfferRead,
    OfferUpdate,
    OfferValidateRequest,
    OfferValidateResult,
)
from cart_pricing.services.offer_service import OfferService

router = APIRouter(prefix="/offers", tags=["Offers"])

service = OfferService(OfferRepository(), CartRepository(), OrderRepository())


# -------- Public endpoints --------


@router.post("/validate", response_model=OfferValidateResult)
def validate_code(
    payload: OfferValidateRequest,
    session: Session = Depends(get_session),
    current_user: User | None = Depends(get_current_user),
):
    """
    Check a code against an order amount without applying it to a cart.

    - 404 for unknown codes, 400 with the reason when not eligible.
    """
    return service.validate_code(
        session,
        payload.code,
        payload.amount,
        current_user.id if current_user else None,
    )


# -------- Admin endpoints --------


@router.post(
    "",
    response_model=OfferRead,
    status_code=status.HTTP_201_CREATED,
)
def create_offer(
    payload: OfferCreate,
    session: Session = Depends(get_session),
    _: User = Depends(require_admin),
):
    return service.create_offer(session, payload)


@router.get("", response_model=list[OfferRead])
def list_offers(
    session: Session = Depends(get_session),
    _: User = Depends(require_admin),
    skip: int = 0,
    limit: int = 50,
    only_active: bool = False,
):
    """
    List offers, newest first (admin only).
    """
    return service.list_offers(session, skip=skip, limit=limit, only_active=only_active)


@router.get("/{offer_id}", response_model=OfferRead)
def get_offer(
    offer_id: uuid.UUID,
    session: Session = Depends(get_session),
    _: User = Depends(require_admin),
):
    return service.get_offer(session, offer_id)


@router.patch("/{offer_id}", response_model=OfferRead)
def update_offer(
    offer_id: uuid.UUID,
    payload: OfferUpdate,
    session: Session = Depends(get_session),
    _: User = Depends(require_admin),
):
    """
    Partial update; the merged offer is re-validated.
    """
    return service.update_offer(session, offer_id, payload)


@router.delete("/{offer_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_offer(
    offer_id: uuid.UUID,
    session: Session = Depends(get_session),
    _: User = Depends(require_admin),
):
    """
    Delete an offer. Carts still holding it lose the discount on their
    next change.
    """
    service.delete_offer(session, offer_id)
