# cart_pricing/services/cart_service.py
import logging
import uuid
from decimal import Decimal

from sqlmodel import Session

from cart_pricing.core.exceptions import CartItemNotFound, CartNotFound, InvalidQuantity
from cart_pricing.models.cart import Cart, CartItem
from cart_pricing.repositories.cart_repo import CartRepository
from cart_pricing.schemas.cart import CartRead, build_cart_read
from cart_pricing.schemas.discount import DiscountState
from cart_pricing.schemas.pricing import Selection
from cart_pricing.services.offer_service import OfferService
from cart_pricing.services.pricing_service import PriceQuote, PricingService

logger = logging.getLogger(__name__)


class CartService:
    """
    Business logic for session carts.

    Responsibilities:
      - create the cart on first add (guests included)
      - price selections and store immutable item snapshots
      - keep subtotal = sum of line totals after every mutation
      - re-run discount resolution before returning the cart

    A failing discount resolution never rolls back the item change:
    the cart just ends up without a discount (see
    OfferService.refresh_discount_safely).
    """

    def __init__(
        self,
        cart_repo: CartRepository,
        pricing_service: PricingService,
        offer_service: OfferService,
    ):
        self.cart_repo = cart_repo
        self.pricing_service = pricing_service
        self.offer_service = offer_service

    # ---- internal helpers ----

    def _get_cart(self, session: Session, session_id: str) -> Cart:
        cart = self.cart_repo.get_by_session_id(session, session_id)
        if cart is None:
            raise CartNotFound(session_id)
        return cart

    def _get_item(self, cart: Cart, item_id: uuid.UUID) -> CartItem:
        item = next((it for it in cart.items if it.id == item_id), None)
        if item is None:
            raise CartItemNotFound(item_id)
        return item

    def _finish_mutation(
        self,
        session: Session,
        cart: Cart,
        buyer_id: uuid.UUID | None,
    ) -> CartRead:
        cart.recalculate_subtotal()
        self.offer_service.refresh_discount_safely(session, cart, buyer_id)
        cart.touch()
        cart = self.cart_repo.save(session, cart)
        return self.to_read(session, cart)

    @staticmethod
    def _snapshot(quote: PriceQuote, include_packaging: bool) -> CartItem:
        resolved = quote.resolved
        return CartItem(
            product_id=resolved.product.id,
            product_name=resolved.product.name,
            product_code=resolved.product.code,
            material_id=resolved.material.material_id,
            material_name=resolved.material.name,
            size_mm=resolved.size.size_mm if resolved.size else None,
            size_name=resolved.size.name if resolved.size else None,
            finish_id=resolved.finish.finish_id if resolved.finish else None,
            finish_name=resolved.finish.name if resolved.finish else None,
            include_packaging=include_packaging,
            material_base=quote.breakdown.material_base,
            material_discount=quote.breakdown.material_discount,
            material_net=quote.breakdown.material_net,
            size_cost=quote.breakdown.size,
            finish_cost=quote.breakdown.finishes,
            packaging_cost=quote.breakdown.packaging,
            unit_price=quote.unit_price,
            quantity=quote.quantity,
            line_total=quote.total_amount,
        )

    def to_read(self, session: Session, cart: Cart) -> CartRead:
        return build_cart_read(cart, self.offer_service.discount_label(session, cart))

    # ---- public operations ----

    def get_cart(self, session: Session, session_id: str) -> CartRead:
        """
        Return the cart with its discount re-resolved.

        The applied offer may have expired, run out or been deleted since
        the last mutation; the corrected state is saved.
        """
        cart = self._get_cart(session, session_id)
        before = cart.discount_state()
        self.offer_service.refresh_discount_safely(session, cart)
        if cart.discount_state() != before:
            logger.info(f"[Cart] Discount on cart {session_id} changed on read")
            cart.touch()
            cart = self.cart_repo.save(session, cart)
        return self.to_read(session, cart)

    def add_item(
        self,
        session: Session,
        session_id: str,
        selection: Selection,
        buyer_id: uuid.UUID | None = None,
    ) -> CartRead:
        """
        Price the selection and append it as a new line.

        The cart is created on the first add. Pricing errors
        (SelectionInvalid, ProductNotFound, InvalidQuantity) leave
        nothing behind.
        """
        quote = self.pricing_service.quote(session, selection)

        cart = self.cart_repo.get_by_session_id(session, session_id)
        if cart is None:
            cart = self.cart_repo.create(session, session_id)
            logger.info(f"[Cart] Created cart for session {session_id}")

        if buyer_id is not None and cart.user_id is None:
            cart.user_id = buyer_id

        cart.items.append(self._snapshot(quote, selection.include_packaging))
        logger.info(
            f"[Cart] Added {quote.resolved.product.code} x{quote.quantity} "
            f"@ {quote.unit_price} to cart {session_id}"
        )
        return self._finish_mutation(session, cart, buyer_id)

    def update_item_quantity(
        self,
        session: Session,
        session_id: str,
        item_id: uuid.UUID,
        quantity: int,
        buyer_id: uuid.UUID | None = None,
    ) -> CartRead:
        """
        Change a line's quantity. The stored unit price is reused;
        the selection is not re-priced against the current catalog.
        """
        if quantity < 1:
            raise InvalidQuantity(quantity)

        cart = self._get_cart(session, session_id)
        item = self._get_item(cart, item_id)

        item.quantity = quantity
        item.line_total = Decimal(item.unit_price) * quantity
        return self._finish_mutation(session, cart, buyer_id)

    def remove_item(
        self,
        session: Session,
        session_id: str,
        item_id: uuid.UUID,
        buyer_id: uuid.UUID | None = None,
    ) -> CartRead:
        cart = self._get_cart(session, session_id)
        item = self._get_item(cart, item_id)

        cart.items.remove(item)
        logger.info(f"[Cart] Removed item {item_id} from cart {session_id}")
        return self._finish_mutation(session, cart, buyer_id)

    def clear_cart(self, session: Session, session_id: str) -> CartRead:
        """
        Remove all items and any discount (lock included).
        """
        cart = self._get_cart(session, session_id)
        cart.items.clear()
        cart.recalculate_subtotal()
        cart.apply_discount_state(DiscountState.empty())
        cart.touch()
        cart = self.cart_repo.save(session, cart)
        logger.info(f"[Cart] Cleared cart {session_id}")
        return self.to_read(session, cart)

    def link_to_user(
        self,
        session: Session,
        session_id: str,
        user_id: uuid.UUID,
    ) -> CartRead:
        """
        Attach a guest cart to the user who just logged in.

        Offer eligibility can change with identity (new_users offers),
        so resolution runs again for the linked buyer.
        """
        cart = self._get_cart(session, session_id)
        if cart.user_id != user_id:
            logger.info(f"[Cart] Linked cart {session_id} to user {user_id}")
        cart.user_id = user_id
        return self._finish_mutation(session, cart, user_id)
