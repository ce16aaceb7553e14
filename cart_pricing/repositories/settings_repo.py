# cart_pricing/repositories/settings_repo.py
from sqlmodel import Session, select

from cart_pricing.models.settings import StoreSettings


class SettingsRepository:
    """
    Access to the singleton store_settings row.

    get_settings() returning None means "unconfigured": callers fall back
    to the named defaults instead of inventing values.
    """

    def get_settings(self, session: Session) -> StoreSettings | None:
        stmt = select(StoreSettings).order_by(StoreSettings.updated_at.desc())
        return session.exec(stmt).first()

    def save(self, session: Session, settings: StoreSettings) -> StoreSettings:
        session.add(settings)
        session.commit()
        session.refresh(settings)
        return settings
