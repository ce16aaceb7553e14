# cart_pricing/repositories/cart_repo.py
from sqlmodel import Session, select

from cart_pricing.models.cart import Cart


class CartRepository:
    """
    Data access layer for carts and their items.

    Items are persisted through the Cart.items relationship
    (cascade "all, delete-orphan"), so there is no separate item CRUD.
    """

    def get_by_session_id(self, session: Session, session_id: str) -> Cart | None:
        stmt = select(Cart).where(Cart.session_id == session_id)
        return session.exec(stmt).first()

    def create(self, session: Session, session_id: str) -> Cart:
        """
        Insert an empty Cart without committing, but ensure id is populated.
        """
        cart = Cart(session_id=session_id)
        session.add(cart)
        session.flush()
        return cart

    def save(self, session: Session, cart: Cart) -> Cart:
        session.add(cart)
        session.commit()
        session.refresh(cart)
        return cart
