"""
catalog/services/offer_service.py
Promotional offers

Seats are claimed with a single conditional UPDATE so concurrent claims can
never drive seats_available below zero.
"""
import logging
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import List, Optional

from sqlalchemy import select, update, case, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from catalog.exceptions import NotFoundError, OfferUnavailableError, UniquenessError, ValidationError
from catalog.orm.base import utcnow
from catalog.orm.course import Course
from catalog.orm.offer import Offer
from catalog.schemas.course import OfferInput, parse_input

logger = logging.getLogger(__name__)


class OfferService:
    """Create, look up and redeem offers."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def create_offer(self, data) -> Offer:
        payload = parse_input(OfferInput, data)
        offer = Offer(**payload.model_dump())
        self.db.add(offer)
        try:
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            raise UniquenessError(
                f"Offer code '{payload.code}' already exists",
                {"code": payload.code}
            ) from e
        logger.info(f"[OFFER CREATED] code={offer.code} seats={offer.seats_available}")
        return offer

    async def get_offer(self, offer_id: int) -> Offer:
        offer = await self.db.get(Offer, offer_id)
        if offer is None:
            raise NotFoundError("Offer", offer_id)
        return offer

    async def find_by_code(self, code: str) -> Optional[Offer]:
        result = await self.db.execute(select(Offer).where(Offer.code == code.strip().upper()))
        return result.scalar_one_or_none()

    async def find_active_offers(self, now: Optional[datetime] = None) -> List[Offer]:
        now = now or utcnow()
        result = await self.db.execute(
            select(Offer)
            .where(
                Offer.is_active.is_(True),
                Offer.seats_available > 0,
                Offer.valid_until >= now
            )
            .order_by(Offer.valid_until.asc())
        )
        return list(result.scalars().all())

    async def find_expired_offers(self, now: Optional[datetime] = None) -> List[Offer]:
        """Offers that can no longer be redeemed; the complement of find_active_offers."""
        now = now or utcnow()
        result = await self.db.execute(
            select(Offer)
            .where(or_(
                Offer.is_active.is_(False),
                Offer.seats_available <= 0,
                Offer.valid_until < now
            ))
            .order_by(Offer.valid_until.desc(), Offer.id.asc())
        )
        return list(result.scalars().all())

    async def claim_offer_seats(self, offer_id: int, amount: int = 1, now: Optional[datetime] = None) -> Offer:
        """
        Atomically take `amount` seats; the offer deactivates at zero.

        Raises:
            ValidationError: amount < 1
            NotFoundError: unknown offer
            OfferUnavailableError: inactive, expired or not enough seats
        """
        if amount < 1:
            raise ValidationError("amount must be >= 1", {"amount": amount})
        now = now or utcnow()

        result = await self.db.execute(
            update(Offer)
            .where(
                Offer.id == offer_id,
                Offer.is_active.is_(True),
                Offer.valid_until >= now,
                Offer.seats_available >= amount
            )
            .values(
                seats_available=Offer.seats_available - amount,
                is_active=case((Offer.seats_available - amount > 0, True), else_=False),
            )
            .execution_options(synchronize_session=False)
        )

        if result.rowcount == 0:
            await self.db.rollback()
            offer = await self.get_offer(offer_id)
            logger.warning(
                f"[OFFER BLOCKED] offer={offer_id} requested={amount} seats={offer.seats_available} "
                f"active={offer.is_active}"
            )
            raise OfferUnavailableError(offer_id, f"Offer {offer.code} cannot provide {amount} seat(s)")

        await self.db.commit()
        offer = await self.db.get(Offer, offer_id, populate_existing=True)
        logger.info(f"[OFFER CLAIMED] offer={offer_id} amount={amount} seats_left={offer.seats_available}")
        return offer


def is_offer_valid(offer: Offer, now: Optional[datetime] = None) -> bool:
    now = now or utcnow()
    return bool(offer.is_active and offer.seats_available > 0 and offer.valid_until >= now)


def effective_price(course: Course, offer: Optional[Offer], now: Optional[datetime] = None) -> Optional[Decimal]:
    """Base price after the offer discount, when the offer is currently valid."""
    if course.base_price is None:
        return None
    price = Decimal(course.base_price)
    if offer is None or not course.is_on_offer or not is_offer_valid(offer, now):
        return price
    discounted = price * (Decimal(100) - Decimal(offer.discount_percentage)) / Decimal(100)
    return discounted.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
