# cart_pricing/core/exceptions.py
"""
Client-facing errors for pricing, cart and offer operations.

Hierarchy:

    CartPricingError (base)
    ├── SelectionInvalid
    │   └── ProductNotFound
    ├── InvalidQuantity
    ├── CartNotFound
    ├── CartItemNotFound
    ├── CartEmpty
    ├── OfferNotFound
    ├── OfferIneligible
    ├── OfferCodeConflict
    ├── InvalidOfferDefinition
    └── InvalidSettings

None of these represent corrupted internal state. Services raise them,
and `register_exception_handlers` renders them as
`{"detail": message}` with the class's HTTP status, the same body shape
FastAPI uses for HTTPException.

An offer that silently stopped applying (expired, deleted, subtotal too low)
is NOT an error: the resolver clears the discount and logs it.
"""

import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class CartPricingError(Exception):
    """
    Base exception for all pricing/cart/offer errors.

    Attributes:
        message: Human-readable error message
        details: Optional dict with additional context (entity IDs, amounts, ...)
    """

    status_code: int = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        return self.message

    def __repr__(self) -> str:
        if self.details:
            details_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            return f"{self.__class__.__name__}('{self.message}', {details_str})"
        return f"{self.__class__.__name__}('{self.message}')"


# ----- Catalog / pricing -----


class SelectionInvalid(CartPricingError):
    """Requested material/size/finish combination does not exist for the product."""


class ProductNotFound(SelectionInvalid):
    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, product_id):
        super().__init__("Product not found", details={"product_id": str(product_id)})
        self.product_id = product_id


class InvalidQuantity(CartPricingError):
    def __init__(self, quantity: int):
        super().__init__(
            "Quantity must be at least 1", details={"quantity": quantity}
        )
        self.quantity = quantity


# ----- Cart -----


class CartNotFound(CartPricingError):
    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, session_id: str):
        super().__init__("Cart not found", details={"session_id": session_id})
        self.session_id = session_id


class CartItemNotFound(CartPricingError):
    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, item_id):
        super().__init__("Item not found in cart", details={"item_id": str(item_id)})
        self.item_id = item_id


class CartEmpty(CartPricingError):
    """Raised at checkout time only."""

    def __init__(self, session_id: str):
        super().__init__("Cart is empty", details={"session_id": session_id})
        self.session_id = session_id


# ----- Offers -----


class OfferNotFound(CartPricingError):
    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, code_or_id):
        super().__init__("Invalid discount code", details={"offer": str(code_or_id)})
        self.code_or_id = code_or_id


class OfferIneligible(CartPricingError):
    """Carries the evaluator's human-readable reason as the message."""

    def __init__(self, code: str, reason: str):
        super().__init__(reason, details={"code": code})
        self.code = code
        self.reason = reason


class OfferCodeConflict(CartPricingError):
    status_code = status.HTTP_409_CONFLICT

    def __init__(self, applied_code: str, submitted_code: str):
        super().__init__(
            f"A discount code ({applied_code}) is already applied. "
            "Please remove it first to apply a new one.",
            details={"applied_code": applied_code, "submitted_code": submitted_code},
        )
        self.applied_code = applied_code
        self.submitted_code = submitted_code


class InvalidOfferDefinition(CartPricingError):
    status_code = 422


# ----- Store settings -----


class InvalidSettings(CartPricingError):
    status_code = 422


def register_exception_handlers(app: FastAPI) -> None:
    """Render CartPricingError subclasses as JSON error responses."""

    @app.exception_handler(CartPricingError)
    async def _handle_cart_pricing_error(request: Request, exc: CartPricingError):
        logger.info(f"[Errors] {request.method} {request.url.path} -> {exc!r}")
        return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})
