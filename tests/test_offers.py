"""
Offer tests: creation rules, atomic seat claims and discounted pricing.
"""
import asyncio
from datetime import timedelta
from decimal import Decimal

import pytest

from catalog.exceptions import NotFoundError, OfferUnavailableError, UniquenessError, ValidationError
from catalog.orm.base import utcnow
from tests.conftest import course_draft


def offer_payload(code="SPRING24", seats=10, discount=20, valid_days=30, **overrides):
    payload = {
        "code": code,
        "description": "Spring sale",
        "discount_percentage": discount,
        "seats_available": seats,
        "valid_until": utcnow() + timedelta(days=valid_days),
    }
    payload.update(overrides)
    return payload


class TestCreateOffer:

    @pytest.mark.asyncio
    async def test_code_is_normalised(self, online_catalog):
        offer = await online_catalog.create_offer(offer_payload(code=" spring-24 "))
        assert offer.code == "SPRING-24"
        assert offer.is_active is True

        found = await online_catalog.find_offer_by_code("spring-24")
        assert found.id == offer.id

    @pytest.mark.asyncio
    @pytest.mark.parametrize("overrides", [
        {"code": "x!"},
        {"code": "AB"},
        {"code": "A" * 21},
        {"discount": 101},
        {"seats": -1},
    ])
    async def test_invalid_offers(self, online_catalog, overrides):
        with pytest.raises(ValidationError):
            await online_catalog.create_offer(offer_payload(**overrides))

    @pytest.mark.asyncio
    async def test_duplicate_code(self, online_catalog, offline_catalog):
        await online_catalog.create_offer(offer_payload())
        with pytest.raises(UniquenessError):
            await offline_catalog.create_offer(offer_payload(code="spring24"))

    @pytest.mark.asyncio
    async def test_free_courses_have_no_offers(self, free_catalog):
        with pytest.raises(ValidationError):
            await free_catalog.create_offer(offer_payload())


class TestClaimSeats:

    @pytest.mark.asyncio
    async def test_last_seat_deactivates_offer(self, online_catalog):
        offer = await online_catalog.create_offer(offer_payload(seats=2))

        offer = await online_catalog.claim_offer_seats(offer.id)
        assert (offer.seats_available, offer.is_active) == (1, True)

        offer = await online_catalog.claim_offer_seats(offer.id)
        assert (offer.seats_available, offer.is_active) == (0, False)

        with pytest.raises(OfferUnavailableError):
            await online_catalog.claim_offer_seats(offer.id)

    @pytest.mark.asyncio
    async def test_cannot_claim_more_than_left(self, online_catalog):
        offer = await online_catalog.create_offer(offer_payload(seats=2))
        with pytest.raises(OfferUnavailableError):
            await online_catalog.claim_offer_seats(offer.id, amount=3)

        offer = await online_catalog.claim_offer_seats(offer.id, amount=2)
        assert offer.seats_available == 0

    @pytest.mark.asyncio
    async def test_concurrent_claims_never_go_negative(self, online_catalog, session_factory):
        offer = await online_catalog.create_offer(offer_payload(seats=3))

        results = await asyncio.gather(
            *[online_catalog.claim_offer_seats(offer.id) for _ in range(6)],
            return_exceptions=True
        )

        assert sum(1 for r in results if not isinstance(r, Exception)) == 3
        assert all(isinstance(r, OfferUnavailableError) for r in results if isinstance(r, Exception))
        stored = await online_catalog.find_offer_by_code("SPRING24")
        assert stored.seats_available == 0
        assert stored.is_active is False

    @pytest.mark.asyncio
    async def test_expired_offer(self, online_catalog):
        offer = await online_catalog.create_offer(offer_payload(valid_days=-1))
        with pytest.raises(OfferUnavailableError):
            await online_catalog.claim_offer_seats(offer.id)

    @pytest.mark.asyncio
    async def test_unknown_offer(self, online_catalog):
        with pytest.raises(NotFoundError):
            await online_catalog.claim_offer_seats(999)

    @pytest.mark.asyncio
    async def test_amount_must_be_positive(self, online_catalog):
        offer = await online_catalog.create_offer(offer_payload())
        with pytest.raises(ValidationError):
            await online_catalog.claim_offer_seats(offer.id, amount=0)

    @pytest.mark.asyncio
    async def test_active_offers(self, online_catalog):
        live = await online_catalog.create_offer(offer_payload(code="LIVE01"))
        await online_catalog.create_offer(offer_payload(code="EXPIRED01", valid_days=-1))
        await online_catalog.create_offer(offer_payload(code="EMPTY01", seats=0))
        await online_catalog.create_offer(offer_payload(code="PAUSED01", is_active=False))

        assert [o.id for o in await online_catalog.find_active_offers()] == [live.id]

    @pytest.mark.asyncio
    async def test_expired_offers(self, online_catalog):
        await online_catalog.create_offer(offer_payload(code="LIVE01"))
        expired = await online_catalog.create_offer(offer_payload(code="EXPIRED01", valid_days=-1))
        empty = await online_catalog.create_offer(offer_payload(code="EMPTY01", seats=0))
        paused = await online_catalog.create_offer(offer_payload(code="PAUSED01", is_active=False))

        found = await online_catalog.find_expired_offers()
        assert {o.id for o in found} == {expired.id, empty.id, paused.id}
        assert found[-1].id == expired.id

    @pytest.mark.asyncio
    async def test_claimed_out_offer_becomes_expired(self, online_catalog):
        offer = await online_catalog.create_offer(offer_payload(code="LAST01", seats=1))
        assert await online_catalog.find_expired_offers() == []

        await online_catalog.claim_offer_seats(offer.id)
        assert [o.id for o in await online_catalog.find_expired_offers()] == [offer.id]


class TestEffectivePrice:

    @pytest.mark.asyncio
    async def test_discount_applied(self, online_catalog):
        offer = await online_catalog.create_offer(offer_payload(discount=20))
        course_id = await online_catalog.create(course_draft(
            "Discounted Course",
            pricing={"base_price": 1000, "is_course_on_offer": True, "offer_id": offer.id},
        ))

        assert await online_catalog.effective_price(course_id) == Decimal("800.00")

    @pytest.mark.asyncio
    async def test_rounded_to_cents(self, offline_catalog):
        offer = await offline_catalog.create_offer(offer_payload(discount=15))
        course_id = await offline_catalog.create(course_draft(
            "Odd Price",
            pricing={"base_price": "99.99", "is_course_on_offer": True, "offer_id": offer.id},
        ))

        # 99.99 * 0.85 = 84.9915
        assert await offline_catalog.effective_price(course_id) == Decimal("84.99")

    @pytest.mark.asyncio
    async def test_no_offer_means_base_price(self, online_catalog):
        course_id = await online_catalog.create(course_draft("Full Price", pricing={"base_price": 1000}))
        assert await online_catalog.effective_price(course_id) == Decimal("1000")

    @pytest.mark.asyncio
    async def test_exhausted_offer_stops_discounting(self, online_catalog):
        offer = await online_catalog.create_offer(offer_payload(seats=1, discount=50))
        course_id = await online_catalog.create(course_draft(
            "Flash Sale",
            pricing={"base_price": 200, "is_course_on_offer": True, "offer_id": offer.id},
        ))
        assert await online_catalog.effective_price(course_id) == Decimal("100.00")

        await online_catalog.claim_offer_seats(offer.id)
        assert await online_catalog.effective_price(course_id) == Decimal("200")

    @pytest.mark.asyncio
    async def test_unpriced_course(self, online_catalog):
        course_id = await online_catalog.create(course_draft("No Price Yet"))
        assert await online_catalog.effective_price(course_id) is None

    @pytest.mark.asyncio
    async def test_free_courses_have_no_price(self, free_catalog):
        course_id = await free_catalog.create(course_draft("Gratis"))
        with pytest.raises(ValidationError):
            await free_catalog.effective_price(course_id)
