"""Rating aggregation — keeps a contractor's average rating in step with reviews."""

from __future__ import annotations

import logging

from app.errors import NotFoundError
from app.schemas import Contractor
from app.store import ContractorRepository, ReviewRepository

logger = logging.getLogger(__name__)


class RatingAggregationService:
    def __init__(
        self,
        contractors: ContractorRepository,
        reviews: ReviewRepository,
    ) -> None:
        self._contractors = contractors
        self._reviews = reviews

    async def update_contractor_average_rating(self, contractor_id: int) -> Contractor:
        """Recompute ``average_rating`` and ``review_count`` from stored reviews.

        With no reviews the rating goes back to None rather than 0, so the
        scorer can tell "unrated" apart from "rated poorly".
        """
        contractor = await self._contractors.get_contractor_by_id(contractor_id)
        if contractor is None:
            logger.warning(
                "Contractor %s not found for rating aggregation", contractor_id,
                extra={"contractor_id": contractor_id},
            )
            raise NotFoundError(f"Contractor with ID {contractor_id} not found")

        reviews = await self._reviews.get_by_contractor_id(contractor_id)
        if reviews:
            average = round(sum(r.rating for r in reviews) / len(reviews), 2)
            updated = contractor.model_copy(
                update={"average_rating": average, "review_count": len(reviews)}
            )
        else:
            updated = contractor.model_copy(
                update={"average_rating": None, "review_count": 0}
            )

        await self._contractors.update_contractor(updated)
        logger.info(
            "Contractor %s rating is now %s from %d review(s)",
            contractor_id, updated.average_rating, updated.review_count,
            extra={"contractor_id": contractor_id},
        )
        return updated
