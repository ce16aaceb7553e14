# cart_pricing/repositories/offer_repo.py
import logging
import uuid

from sqlmodel import Session, select

from cart_pricing.models.offer import Offer

logger = logging.getLogger(__name__)

# Counters that may be bumped through increment_usage()
USAGE_COUNTERS = ("auto_apply_count", "manual_apply_count")


class OfferRepository:
    """
    Data access layer for offers.

    NOTE:
      - No commits here; counters are bumped inside the caller's
        transaction (cart mutation or checkout). The service commits.
    """

    def get_by_id(self, session: Session, offer_id: uuid.UUID) -> Offer | None:
        return session.get(Offer, offer_id)

    def get_by_code(self, session: Session, code: str) -> Offer | None:
        stmt = select(Offer).where(Offer.code == code.strip().upper())
        return session.exec(stmt).first()

    def list_offers(
        self,
        session: Session,
        skip: int = 0,
        limit: int = 50,
        only_active: bool = False,
    ) -> list[Offer]:
        stmt = select(Offer)
        if only_active:
            stmt = stmt.where(Offer.is_active == True)  # noqa: E712
        stmt = stmt.order_by(Offer.created_at.desc()).offset(skip).limit(limit)
        return session.exec(stmt).all()

    def list_active_auto_offers(self, session: Session) -> list[Offer]:
        """
        Active auto-apply offers, oldest first.

        Date/usage/buyer checks are left to the offer evaluator so that
        every rule lives in one place.
        """
        stmt = (
            select(Offer)
            .where(Offer.auto_apply == True, Offer.is_active == True)  # noqa: E712
            .order_by(Offer.created_at.asc())
        )
        return session.exec(stmt).all()

    def create(self, session: Session, offer: Offer) -> Offer:
        session.add(offer)
        session.commit()
        session.refresh(offer)
        return offer

    def update(self, session: Session, offer: Offer) -> Offer:
        session.add(offer)
        session.commit()
        session.refresh(offer)
        return offer

    def delete(self, session: Session, offer: Offer) -> None:
        session.delete(offer)
        session.commit()

    # ----- Usage counters -----

    def increment_usage(self, session: Session, offer_id: uuid.UUID, counter: str) -> None:
        """
        Bump an application counter (auto_apply_count / manual_apply_count).
        """
        if counter not in USAGE_COUNTERS:
            raise ValueError(f"Unknown offer counter: {counter}")

        offer = session.get(Offer, offer_id)
        if offer is None:
            logger.warning(f"[Offers] Cannot increment {counter}: offer {offer_id} not found")
            return

        setattr(offer, counter, getattr(offer, counter) + 1)
        session.add(offer)

    def increment_used_if_available(self, session: Session, offer_id: uuid.UUID) -> bool:
        """
        Increment used_count only while used_count < max_uses.

        The row is locked (SELECT ... FOR UPDATE) for the rest of the
        transaction on backends that support it. SQLite ignores the lock,
        so concurrent checkouts there can still race past max_uses.

        Returns:
            True if the counter was incremented, False if the offer is
            missing or exhausted.
        """
        stmt = (
            select(Offer)
            .where(Offer.id == offer_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        offer = session.exec(stmt).first()
        if offer is None:
            return False

        if offer.max_uses is not None and offer.used_count >= offer.max_uses:
            return False

        offer.used_count += 1
        session.add(offer)
        return True
