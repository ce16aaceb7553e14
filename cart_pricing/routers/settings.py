# cart_pricing/routers/settings.py
from decimal import Decimal

from fastapi import APIRouter, Depends, Query
from sqlmodel import Session

from cart_pricing.core.auth import require_admin
from cart_pricing.database import get_session
from cart_pricing.models.user import User
from cart_pricing.repositories.settings_repo import SettingsRepository
from cart_pricing.schemas.settings import DeliveryInfo, SettingsRead, SettingsUpdate
from cart_pricing.services.shipping_service import SettingsService

router = APIRouter(prefix="/settings", tags=["Settings"])

service = SettingsService(SettingsRepository())


@router.get("", response_model=SettingsRead)
def get_settings(session: Session = Depends(get_session)):
    """
    Effective delivery and VAT configuration.

    - Public endpoint.
    - `configured=false` means built-in defaults are in effect.
    """
    return service.get_settings(session)


@router.get("/delivery-info", response_model=DeliveryInfo)
def get_delivery_info(
    amount: Decimal = Query(ge=0),
    session: Session = Depends(get_session),
):
    """
    Delivery fee for an amount plus how much more is needed for free delivery.
    """
    return service.get_delivery_info(session, amount)


@router.put("", response_model=SettingsRead)
def update_settings(
    payload: SettingsUpdate,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_admin),
):
    """
    Replace the delivery tiers, free delivery threshold and VAT settings.

    - Admin only.
    - Tiers must not overlap; max must be greater than min.
    """
    return service.update_settings(session, payload, updated_by=current_user.email)
