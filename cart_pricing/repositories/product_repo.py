# cart_pricing/repositories/product_repo.py
import uuid

from sqlmodel import Session

from cart_pricing.models.product import Product


class ProductRepository:
    """
    Read-only access to catalog master data.

    - Pure DB operations.
    - No FastAPI, no business logic.
    """

    def get_by_id(self, session: Session, product_id: uuid.UUID) -> Product | None:
        return session.get(Product, product_id)
