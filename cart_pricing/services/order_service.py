# cart_pricing/services/order_service.py
import logging
import uuid
from decimal import Decimal

from fastapi import HTTPException, status
from sqlmodel import Session

from cart_pricing.core.config import get_settings
from cart_pricing.core.exceptions import CartEmpty, CartNotFound
from cart_pricing.core.money import utcnow
from cart_pricing.models.cart import Cart
from cart_pricing.models.order import Order, OrderItem
from cart_pricing.models.user import User
from cart_pricing.repositories.cart_repo import CartRepository
from cart_pricing.repositories.offer_repo import OfferRepository
from cart_pricing.repositories.order_repo import OrderRepository
from cart_pricing.schemas.cart import CheckoutSummary
from cart_pricing.schemas.discount import DiscountState
from cart_pricing.schemas.order import (
    OrderCreate,
    OrderItemRead,
    OrderRead,
    OrderWithItemsRead,
)
from cart_pricing.services.offer_service import OfferService
from cart_pricing.services.shipping_service import (
    OrderPricing,
    SettingsService,
    calculate_order_pricing,
)

logger = logging.getLogger(__name__)

settings = get_settings()

ORDER_NUMBER_PREFIX = "GL"


class OrderService:
    """
    Business logic for checkout.

    Responsibilities:
      - Final price summary for a cart (discount, shipping, VAT)
      - Convert the cart into an immutable Order snapshot
      - Count the offer use (bounded by max_uses)
      - Clear the cart after success
    """

    def __init__(
        self,
        order_repo: OrderRepository,
        cart_repo: CartRepository,
        offer_repo: OfferRepository,
        offer_service: OfferService,
        settings_service: SettingsService,
    ):
        self.order_repo = order_repo
        self.cart_repo = cart_repo
        self.offer_repo = offer_repo
        self.offer_service = offer_service
        self.settings_service = settings_service

    # -------- internal helpers --------

    def _get_cart(self, session: Session, session_id: str) -> Cart:
        cart = self.cart_repo.get_by_session_id(session, session_id)
        if cart is None:
            raise CartNotFound(session_id)
        return cart

    def _price_cart(
        self,
        session: Session,
        cart: Cart,
        buyer_id: uuid.UUID | None,
    ) -> OrderPricing:
        """
        Re-run discount resolution, then compute shipping and VAT.
        Does not commit.
        """
        self.offer_service.refresh_discount(session, cart, buyer_id)
        if not cart.items:
            raise CartEmpty(cart.session_id)

        return calculate_order_pricing(
            cart.subtotal,
            cart.discount_amount,
            self.settings_service.get_pricing_settings(session),
        )

    def _next_order_number(self, session: Session) -> str:
        now = utcnow()
        sequence = self.order_repo.count_all(session) + 1
        return f"{ORDER_NUMBER_PREFIX}{now.year}{now.month:02d}{sequence:05d}"

    # -------- public operations --------

    def finalize(
        self,
        session: Session,
        session_id: str,
        buyer_id: uuid.UUID | None = None,
    ) -> CheckoutSummary:
        """
        Final price breakdown for the cart page / checkout screen.

        Any discount change found by the re-resolution is saved.
        """
        cart = self._get_cart(session, session_id)
        pricing = self._price_cart(session, cart, buyer_id)
        cart = self.cart_repo.save(session, cart)

        return CheckoutSummary(
            session_id=cart.session_id,
            item_count=len(cart.items),
            total_quantity=sum(it.quantity for it in cart.items),
            subtotal=pricing.subtotal,
            discount_code=cart.discount_code,
            discount=pricing.discount,
            total_after_discount=pricing.total_after_discount,
            shipping=pricing.shipping,
            tax=pricing.tax,
            vat_rate=pricing.vat_rate,
            total=pricing.total,
            currency_symbol=settings.CURRENCY_SYMBOL,
        )

    def checkout(
        self,
        session: Session,
        user: User,
        payload: OrderCreate,
    ) -> OrderWithItemsRead:
        """
        Convert the session's cart into an Order.

        Steps:
          1. Link the cart to the user and re-resolve the discount.
          2. Compute subtotal, discount, shipping, VAT and total.
          3. Create Order row (status='pending') + OrderItem snapshots.
          4. Count the offer use (only while used_count < max_uses).
          5. Clear the cart (items + discount).
          6. Commit everything at once.
        """
        cart = self._get_cart(session, payload.session_id)
        cart.user_id = user.id

        pricing = self._price_cart(session, cart, user.id)

        order = Order(
            order_number=self._next_order_number(session),
            user_id=user.id,
            session_id=cart.session_id,
            note=payload.note,
            status="pending",
            discount_code=cart.discount_code,
            offer_id=cart.offer_id,
            discount_application_method=cart.discount_application_method,
            subtotal=pricing.subtotal,
            discount_amount=pricing.discount,
            shipping_fee=pricing.shipping,
            tax_amount=pricing.tax,
            vat_rate=pricing.vat_rate,
            total_amount=pricing.total,
        )
        order = self.order_repo.create_order(session, order)

        order_items = [
            OrderItem(
                order_id=order.id,
                product_id=ci.product_id,
                product_name=ci.product_name,
                product_code=ci.product_code,
                material_name=ci.material_name,
                size_mm=ci.size_mm,
                finish_name=ci.finish_name,
                include_packaging=ci.include_packaging,
                material_base=ci.material_base,
                material_discount=ci.material_discount,
                material_net=ci.material_net,
                size_cost=ci.size_cost,
                finish_cost=ci.finish_cost,
                packaging_cost=ci.packaging_cost,
                quantity=ci.quantity,
                unit_price=ci.unit_price,
                line_total=ci.line_total,
            )
            for ci in cart.items
        ]
        order_items = self.order_repo.create_items(session, order_items)

        if cart.offer_id is not None:
            counted = self.offer_repo.increment_used_if_available(session, cart.offer_id)
            if not counted:
                logger.warning(
                    f"[Checkout] Offer {cart.discount_code} could not be counted for "
                    f"order {order.order_number} (missing or usage limit reached)"
                )

        cart.items.clear()
        cart.recalculate_subtotal()
        cart.apply_discount_state(DiscountState.empty())
        cart.touch()
        session.add(cart)

        session.commit()
        session.refresh(order)

        logger.info(
            f"[Checkout] Order {order.order_number} created for user {user.id}: "
            f"total {order.total_amount} ({len(order_items)} items)"
        )
        return self._build_order_with_items_dto(order, order_items)

    def list_user_orders(
        self,
        session: Session,
        user_id: uuid.UUID,
        skip: int = 0,
        limit: int = 50,
    ) -> list[OrderRead]:
        """
        List orders for the given user (without items).
        """
        orders = self.order_repo.list_for_user(session, user_id, skip, limit)
        # Mapped to OrderRead by the router's response_model.
        return orders  # type: ignore[return-value]

    def get_user_order(
        self,
        session: Session,
        user_id: uuid.UUID,
        order_id: uuid.UUID,
    ) -> OrderWithItemsRead:
        """
        Get a single order for the user, including items.

        - 404 if order not found or does not belong to this user.
        """
        order = self.order_repo.get_by_id(session, order_id)
        if not order or order.user_id != user_id:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Order not found",
            )

        items = self.order_repo.list_items_for_order(session, order.id)
        return self._build_order_with_items_dto(order, items)

    # -------- Helper DTO builder --------

    def _build_order_with_items_dto(
        self,
        order: Order,
        items: list[OrderItem],
    ) -> OrderWithItemsRead:
        item_dtos = [
            OrderItemRead(
                id=it.id,
                order_id=it.order_id,
                product_id=it.product_id,
                product_name=it.product_name,
                product_code=it.product_code,
                material_name=it.material_name,
                size_mm=it.size_mm,
                finish_name=it.finish_name,
                quantity=it.quantity,
                unit_price=it.unit_price,
                line_total=it.line_total,
            )
            for it in items
        ]

        return OrderWithItemsRead(
            id=order.id,
            order_number=order.order_number,
            user_id=order.user_id,
            session_id=order.session_id,
            note=order.note,
            status=order.status,  # Literal
            discount_code=order.discount_code,
            discount_application_method=order.discount_application_method,
            subtotal=Decimal(order.subtotal),
            discount_amount=Decimal(order.discount_amount),
            shipping_fee=Decimal(order.shipping_fee),
            tax_amount=Decimal(order.tax_amount),
            vat_rate=Decimal(order.vat_rate),
            total_amount=Decimal(order.total_amount),
            created_at=order.created_at,
            items=item_dtos,
        )
