# cart_pricing/models/product.py
import uuid
from datetime import datetime, timezone
from decimal import Decimal

from sqlmodel import SQLModel, Field, Relationship


class Product(SQLModel, table=True):
    """
    Configurable catalog product (read-only for this service).

    A product is priced from:
      - one material variant (base price, optionally with size options)
      - one finish option (price adjustment, may be negative)
      - optional packaging
      - a product-level percentage discount applied to the material base

    Catalog maintenance happens elsewhere; here we only read.
    """

    __tablename__ = "products"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )

    code: str = Field(
        max_length=50,
        unique=True,
        index=True,
        description="Human-facing product code (e.g. GL-1042)",
    )

    name: str = Field(
        max_length=255,
        description="Display name of the product",
    )

    packaging_price: Decimal = Field(
        default=Decimal("0"),
        max_digits=12,
        decimal_places=2,
        description="Price of optional packaging per unit",
    )

    discount_percentage: Decimal = Field(
        default=Decimal("0"),
        max_digits=5,
        decimal_places=2,
        description="Product-level discount applied to the material base price (0-100)",
    )

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="Creation timestamp (UTC)",
    )

    materials: list["ProductMaterial"] = Relationship(back_populates="product")
    finishes: list["ProductFinish"] = Relationship(back_populates="product")


class ProductMaterial(SQLModel, table=True):
    """
    Material variant offered for a product (e.g. Brass, Stainless Steel).
    """

    __tablename__ = "product_materials"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )

    product_id: uuid.UUID | None = Field(
        default=None,
        foreign_key="products.id",
        index=True,
    )

    material_id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        index=True,
        description="Material master id shared across products",
    )

    name: str = Field(max_length=100)

    base_price: Decimal = Field(
        max_digits=12,
        decimal_places=2,
        description="Material base price per unit (VAT inclusive)",
    )

    product: Product | None = Relationship(back_populates="materials")
    size_options: list["MaterialSizeOption"] = Relationship(back_populates="material")


class MaterialSizeOption(SQLModel, table=True):
    """
    Size option available for one material of one product.
    """

    __tablename__ = "material_size_options"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )

    material_pk: uuid.UUID | None = Field(
        default=None,
        foreign_key="product_materials.id",
        index=True,
    )

    name: str | None = None

    size_mm: int = Field(description="Size in millimetres")

    additional_cost: Decimal = Field(
        default=Decimal("0"),
        max_digits=12,
        decimal_places=2,
    )

    material: ProductMaterial | None = Relationship(back_populates="size_options")


class ProductFinish(SQLModel, table=True):
    """
    Finish allowed for a product, with its product-specific price adjustment.
    """

    __tablename__ = "product_finishes"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )

    product_id: uuid.UUID | None = Field(
        default=None,
        foreign_key="products.id",
        index=True,
    )

    finish_id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        index=True,
        description="Finish master id shared across products",
    )

    name: str | None = None

    # Can be negative (cheaper finish than the reference one)
    price_adjustment: Decimal = Field(
        default=Decimal("0"),
        max_digits=12,
        decimal_places=2,
    )

    product: Product | None = Relationship(back_populates="finishes")
