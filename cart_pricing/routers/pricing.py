# cart_pricing/routers/pricing.py
from fastapi import APIRouter, Depends
from sqlmodel import Session

from cart_pricing.database import get_session
from cart_pricing.repositories.product_repo import ProductRepository
from cart_pricing.schemas.pricing import PricePreview, Selection
from cart_pricing.services.pricing_service import PricingService

router = APIRouter(prefix="/pricing", tags=["Pricing"])

service = PricingService(ProductRepository())


@router.post("/preview", response_model=PricePreview)
def preview_price(
    payload: Selection,
    session: Session = Depends(get_session),
):
    """
    Price a product configuration without touching any cart.

    - Public endpoint.
    """
    return service.preview_price(session, payload)
