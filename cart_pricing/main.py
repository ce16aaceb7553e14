# cart_pricing/main.py
from contextlib import asynccontextmanager
import logging

from fastapi.middleware.cors import CORSMiddleware
from fastapi import FastAPI

from cart_pricing.core.config import get_settings
from cart_pricing.core.exceptions import register_exception_handlers
from cart_pricing.database import create_db_and_tables

# Import models so SQLModel metadata is populated before create_all()
from cart_pricing.models import user as _user_models  # noqa: F401
from cart_pricing.models import product as _product_models  # noqa: F401
from cart_pricing.models import offer as _offer_models  # noqa: F401
from cart_pricing.models import cart as _cart_models  # noqa: F401
from cart_pricing.models import order as _order_models  # noqa: F401
from cart_pricing.models import settings as _settings_models  # noqa: F401

# Routers
from cart_pricing.routers.pricing import router as pricing_router
from cart_pricing.routers.cart import router as cart_router
from cart_pricing.routers.offers import router as offers_router
from cart_pricing.routers.orders import router as orders_router
from cart_pricing.routers.settings import router as settings_router

settings = get_settings()

logging.basicConfig(level=settings.LOG_LEVEL)
logger = logging.getLogger("uvicorn")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    Startup:
      - Verify DB connectivity and create tables.

    Shutdown:
      - No special cleanup needed for sync engine.
    """
    logger.info("Startup: connecting to database...")
    try:
        create_db_and_tables()
        logger.info("Startup: DB connection OK, tables verified.")
    except Exception as e:
        logger.error(f"Startup: DB connection FAILED: {e}")
        raise
    yield


app = FastAPI(
    title=settings.PROJECT_NAME,
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)

# Versioned API prefix, e.g. /api/v1
app.include_router(pricing_router, prefix=settings.API_V1_STR)
app.include_router(cart_router, prefix=settings.API_V1_STR)
app.include_router(offers_router, prefix=settings.API_V1_STR)
app.include_router(orders_router, prefix=settings.API_V1_STR)
app.include_router(settings_router, prefix=settings.API_V1_STR)


@app.get("/")
def root():
    """Health check endpoint."""
    return {"status": "ok", "service": "cart-pricing"}
