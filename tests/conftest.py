"""
Pytest configuration and fixtures for tests.

Environment variables are set before any cart_pricing import so that
Settings() can be built without a .env file.
"""

import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("JWT_SECRET", "test-secret-for-pytest")

import uuid
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from jose import jwt
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

from cart_pricing.core.config import get_settings
from cart_pricing.database import get_session
from cart_pricing.main import app
from cart_pricing.models.offer import Offer
from cart_pricing.models.product import (
    MaterialSizeOption,
    Product,
    ProductFinish,
    ProductMaterial,
)
from cart_pricing.models.user import User


# ============================================================================
# Database Fixtures
# ============================================================================


@pytest.fixture
def engine():
    """In-memory SQLite shared by every connection of one test."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    SQLModel.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def session(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture
def client(session):
    """TestClient whose requests run on the test's Session."""

    def _get_test_session():
        return session

    app.dependency_overrides[get_session] = _get_test_session
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


# ============================================================================
# Auth Fixtures
# ============================================================================


def make_token(user_id: uuid.UUID, email: str) -> str:
    settings = get_settings()
    claims = {
        "sub": str(user_id),
        "email": email,
        "exp": datetime.now(timezone.utc) + timedelta(hours=1),
    }
    return jwt.encode(claims, settings.JWT_SECRET, algorithm=settings.JWT_ALG)


@pytest.fixture
def customer_headers():
    """Bearer header for a customer; the profile is provisioned on first use."""
    return {"Authorization": f"Bearer {make_token(uuid.uuid4(), 'buyer@example.com')}"}


@pytest.fixture
def second_customer_headers():
    return {"Authorization": f"Bearer {make_token(uuid.uuid4(), 'other@example.com')}"}


@pytest.fixture
def admin_headers(session):
    admin = User(id=uuid.uuid4(), email="admin@example.com", name="admin", role="admin")
    session.add(admin)
    session.commit()
    return {"Authorization": f"Bearer {make_token(admin.id, admin.email)}"}


# ============================================================================
# Catalog / Offer Fixtures
# ============================================================================


@pytest.fixture
def product(session):
    """
    Plaque with two materials:
      - Brass: base 100, size 300mm (+10)
      - Steel: base 50, no sizes
    one finish (+5) and packaging at 2.
    """
    product = Product(
        code="GL-100",
        name="House Plaque",
        packaging_price=Decimal("2.00"),
        discount_percentage=Decimal("0"),
    )
    brass = ProductMaterial(name="Brass", base_price=Decimal("100.00"))
    brass.size_options.append(
        MaterialSizeOption(name="Large", size_mm=300, additional_cost=Decimal("10.00"))
    )
    steel = ProductMaterial(name="Steel", base_price=Decimal("50.00"))
    product.materials.extend([brass, steel])
    product.finishes.append(ProductFinish(name="Polished", price_adjustment=Decimal("5.00")))

    session.add(product)
    session.commit()
    session.refresh(product)
    return product


@pytest.fixture
def make_offer(session):
    """Factory persisting an Offer with sensible defaults."""

    def _make_offer(**overrides) -> Offer:
        values = {
            "description": "Test offer",
            "discount_type": "percentage",
            "discount_value": Decimal("10"),
            "min_order_amount": Decimal("0"),
        }
        values.update(overrides)
        offer = Offer(**values)
        session.add(offer)
        session.commit()
        session.refresh(offer)
        return offer

    return _make_offer
