# cart_pricing/services/pricing_service.py
import logging
from dataclasses import dataclass
from decimal import Decimal

from sqlmodel import Session

from cart_pricing.core.exceptions import InvalidQuantity, ProductNotFound, SelectionInvalid
from cart_pricing.core.money import ZERO, round2
from cart_pricing.models.product import (
    MaterialSizeOption,
    Product,
    ProductFinish,
    ProductMaterial,
)
from cart_pricing.repositories.product_repo import ProductRepository
from cart_pricing.schemas.pricing import PriceBreakdown, PricePreview, Selection

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ResolvedSelection:
    """A selection matched against one product's own option lists."""

    product: Product
    material: ProductMaterial
    size: MaterialSizeOption | None = None
    finish: ProductFinish | None = None


@dataclass(frozen=True)
class PriceQuote:
    resolved: ResolvedSelection
    breakdown: PriceBreakdown
    unit_price: Decimal
    quantity: int
    total_amount: Decimal


# ---------------------------------------------------------------------------
# Catalog resolution
# ---------------------------------------------------------------------------


def resolve_selection(product: Product, selection: Selection) -> ResolvedSelection:
    """
    Match material, size and finish against the product's own options.

    - material: by material_id when given, otherwise by exact name
    - size_mm: must be one of that material's size options
    - finish_id: must be one of the product's finishes

    Raises:
        SelectionInvalid: on any reference that does not belong to the product.
    """
    material: ProductMaterial | None = None
    if selection.material_id is not None:
        material = next(
            (m for m in product.materials if m.material_id == selection.material_id),
            None,
        )
        if material is None:
            raise SelectionInvalid(
                "Material is not available for this product",
                {"material_id": str(selection.material_id)},
            )
    else:
        material = next(
            (m for m in product.materials if m.name == selection.material_name),
            None,
        )
        if material is None:
            raise SelectionInvalid(
                f"Material '{selection.material_name}' is not available for this product",
                {"material_name": selection.material_name},
            )

    size: MaterialSizeOption | None = None
    if selection.size_mm is not None:
        size = next(
            (s for s in material.size_options if s.size_mm == selection.size_mm),
            None,
        )
        if size is None:
            raise SelectionInvalid(
                f"Size {selection.size_mm}mm is not available for {material.name}",
                {"size_mm": selection.size_mm},
            )

    finish: ProductFinish | None = None
    if selection.finish_id is not None:
        finish = next(
            (f for f in product.finishes if f.finish_id == selection.finish_id),
            None,
        )
        if finish is None:
            raise SelectionInvalid(
                "Finish is not available for this product",
                {"finish_id": str(selection.finish_id)},
            )

    return ResolvedSelection(product=product, material=material, size=size, finish=finish)


# ---------------------------------------------------------------------------
# Price calculation
# ---------------------------------------------------------------------------


def calculate_price(
    resolved: ResolvedSelection,
    quantity: int,
    include_packaging: bool = True,
) -> PriceQuote:
    """
    Price one configured unit and the requested quantity.

    unit_price = round2(material_net + size + finishes + packaging), floored at 0.
    Breakdown components stay unrounded; cents rounding happens once,
    on the unit price.

    Raises:
        InvalidQuantity: if quantity < 1.
    """
    if quantity < 1:
        raise InvalidQuantity(quantity)

    product = resolved.product
    material_base = Decimal(resolved.material.base_price)

    pct = Decimal(product.discount_percentage or ZERO)
    material_discount = material_base * pct / Decimal("100") if pct > 0 else ZERO
    material_net = max(ZERO, material_base - material_discount)

    size_cost = Decimal(resolved.size.additional_cost) if resolved.size else ZERO
    finish_cost = Decimal(resolved.finish.price_adjustment) if resolved.finish else ZERO
    packaging_cost = Decimal(product.packaging_price or ZERO) if include_packaging else ZERO

    unit_price = round2(max(ZERO, material_net + size_cost + finish_cost + packaging_cost))
    total_amount = unit_price * quantity

    breakdown = PriceBreakdown(
        material_base=material_base,
        material_discount=material_discount,
        material_net=material_net,
        size=size_cost,
        finishes=finish_cost,
        packaging=packaging_cost,
    )

    return PriceQuote(
        resolved=resolved,
        breakdown=breakdown,
        unit_price=unit_price,
        quantity=quantity,
        total_amount=total_amount,
    )


class PricingService:
    """
    Catalog lookup + resolution + price calculation for one selection.
    Read-only; nothing is persisted.
    """

    def __init__(self, product_repo: ProductRepository):
        self.product_repo = product_repo

    def quote(self, session: Session, selection: Selection) -> PriceQuote:
        product = self.product_repo.get_by_id(session, selection.product_id)
        if product is None:
            raise ProductNotFound(selection.product_id)

        resolved = resolve_selection(product, selection)
        return calculate_price(resolved, selection.quantity, selection.include_packaging)

    def preview_price(self, session: Session, selection: Selection) -> PricePreview:
        quote = self.quote(session, selection)
        logger.debug(
            f"[Pricing] {quote.resolved.product.code} x{quote.quantity} "
            f"-> unit {quote.unit_price}, total {quote.total_amount}"
        )
        return PricePreview(
            unit_price=quote.unit_price,
            quantity=quote.quantity,
            total_amount=quote.total_amount,
            breakdown=quote.breakdown,
        )
