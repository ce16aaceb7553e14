# cart_pricing/database.py
from sqlmodel import SQLModel, create_engine, Session

from cart_pricing.core.config import get_settings

settings = get_settings()

# ---------------------------------------------------------
# Postgres connection (production) / SQLite (local dev, tests)
#
# - sslmode       : enforced for Postgres when running in the cloud
# - pool_pre_ping : validate connections before using them
#
# SQLite connections are shared across FastAPI's threadpool workers,
# so check_same_thread has to be disabled.
# ---------------------------------------------------------

db_url = settings.DATABASE_URL

connect_args: dict = {}
engine_kwargs: dict = {"pool_pre_ping": True}

if db_url.startswith("sqlite"):
    connect_args["check_same_thread"] = False
elif "sslmode=" not in db_url:
    separator = "&" if "?" in db_url else "?"
    db_url = f"{db_url}{separator}sslmode={settings.DB_SSLMODE}"

engine = create_engine(
    db_url,
    echo=False,  # set to True if you want to debug SQL queries
    connect_args=connect_args,
    **engine_kwargs,
)


def create_db_and_tables() -> None:
    """
    Create all tables defined in SQLModel metadata if they do not exist.

    This is called once on application startup.
    """
    SQLModel.metadata.create_all(engine)


def get_session():
    """
    FastAPI dependency that yields a SQLModel Session.

    One session per request: the cart is loaded fresh, mutated,
    and committed inside the same request.

    Usage:

        from fastapi import Depends

        @router.get("/example")
        def example_endpoint(session: Session = Depends(get_session)):
            ...
    """
    with Session(engine) as session:
        yield session
