"""Tests for contractor rating aggregation."""

from __future__ import annotations

import pytest

from app.errors import NotFoundError
from app.schemas import Contractor, Review
from app.services.ratings import RatingAggregationService
from app.store import Store


async def _store_with_contractor() -> Store:
    s = Store()
    await s.add_contractor(Contractor(id=1, name="Alice", latitude=0, longitude=0, average_rating=3.0, review_count=1))
    return s


@pytest.mark.anyio
async def test_average_rounded_to_two_places() -> None:
    s = await _store_with_contractor()
    for rid, rating in enumerate([5, 4, 4], start=1):
        await s.add_review(Review(id=rid, contractor_id=1, job_id=rid, rating=rating))

    updated = await RatingAggregationService(s, s).update_contractor_average_rating(1)

    assert updated.average_rating == 4.33
    assert updated.review_count == 3
    stored = await s.get_contractor_by_id(1)
    assert stored is not None and stored.average_rating == 4.33


@pytest.mark.anyio
async def test_no_reviews_resets_to_unrated() -> None:
    s = await _store_with_contractor()
    updated = await RatingAggregationService(s, s).update_contractor_average_rating(1)
    assert updated.average_rating is None
    assert updated.review_count == 0


@pytest.mark.anyio
async def test_only_own_reviews_counted() -> None:
    s = await _store_with_contractor()
    await s.add_contractor(Contractor(id=2, name="Bob", latitude=0, longitude=0))
    await s.add_review(Review(id=1, contractor_id=1, job_id=1, rating=2))
    await s.add_review(Review(id=2, contractor_id=2, job_id=2, rating=5))

    updated = await RatingAggregationService(s, s).update_contractor_average_rating(1)
    assert updated.average_rating == 2.0
    assert updated.review_count == 1


@pytest.mark.anyio
async def test_unknown_contractor() -> None:
    s = Store()
    with pytest.raises(NotFoundError):
        await RatingAggregationService(s, s).update_contractor_average_rating(9)
