"""Scoring engine — ranks contractors for a job by weighted criteria.

Each candidate gets three signals in [0, 1]:

* availability — 1.0 when the job window is clear of the contractor's
  active assignments, else 0.0
* rating — average review rating / 5, or a neutral 0.5 for unrated contractors
* distance — 1.0 at the job site falling linearly to 0.0 at 50 miles

and a final score of ``0.4·availability + 0.3·rating + 0.3·distance``.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import date, datetime, timezone
from decimal import ROUND_HALF_EVEN, Decimal

from app.errors import InvalidArgumentError, NotFoundError, RecommendationTimeoutError
from app.schemas import Contractor, Job, Recommendation, RecommendationResponse, ScoreComponents
from app.services.availability import AvailabilityService, occupied_windows
from app.services.distance import DistanceProvider
from app.services.slots import find_free_slots
from app.store import AssignmentRepository, ContractorRepository, JobRepository

logger = logging.getLogger(__name__)


AVAILABILITY_WEIGHT = Decimal("0.4")
RATING_WEIGHT = Decimal("0.3")
DISTANCE_WEIGHT = Decimal("0.3")
MAX_DISTANCE_MILES = 50.0
NULL_RATING_BASELINE = 0.5
MAX_RATING = 5.0
MAX_RECOMMENDATIONS = 5
# Availability is checked against a full working day, not the job's own
# estimated duration. Kept as-is until product confirms the intended window.
JOB_DURATION_HOURS = 8.0

MSG_SUCCESS = "Success"
MSG_NO_CONTRACTORS = "No available contractors"


# ---------------------------------------------------------------------------
# Normalisation
# ---------------------------------------------------------------------------


def _clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    return min(high, max(low, value))


def normalize_rating_score(rating: float | None) -> float:
    """Map a 0–5 average rating onto [0, 1]; unrated contractors get 0.5.

    Divided in Decimal so 4.25 maps to exactly 0.85.
    """
    if rating is None:
        return NULL_RATING_BASELINE
    return _clamp(float(Decimal(str(rating)) / Decimal(str(MAX_RATING))))


def normalize_distance_score(distance_miles: float) -> float:
    """Map miles onto [0, 1]: 0 or less → 1.0, 50 or more → 0.0, linear between.

    Computed in Decimal so 42.5 miles maps to exactly 0.15, not 0.15000000000000002.
    """
    if distance_miles <= 0:
        return 1.0
    if distance_miles >= MAX_DISTANCE_MILES:
        return 0.0
    ratio = Decimal(str(distance_miles)) / Decimal(str(MAX_DISTANCE_MILES))
    return _clamp(float(Decimal(1) - ratio))


def calculate_score(
    availability_score: float,
    rating_score: float,
    distance_score: float,
) -> float:
    """Weighted blend of the three signals, rounded half-to-even to 2 places.

    The sum is taken in Decimal over the shortest repr of each input, so
    0.045 rounds to 0.04. Inputs from the normalisers above are already
    Decimal-exact; a float carrying its own noise (0.15000000000000002)
    is taken at face value.
    """
    for name, value in (
        ("availability", availability_score),
        ("rating", rating_score),
        ("distance", distance_score),
    ):
        if not 0.0 <= value <= 1.0:
            raise InvalidArgumentError(
                f"All scores must be between 0.0 and 1.0 ({name}={value})"
            )

    total = (
        AVAILABILITY_WEIGHT * Decimal(str(availability_score))
        + RATING_WEIGHT * Decimal(str(rating_score))
        + DISTANCE_WEIGHT * Decimal(str(distance_score))
    )
    return float(total.quantize(Decimal("0.01"), rounding=ROUND_HALF_EVEN))


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------


class ScoringEngine:
    """Builds the top-N contractor shortlist for a job."""

    def __init__(
        self,
        jobs: JobRepository,
        contractors: ContractorRepository,
        assignments: AssignmentRepository,
        distance: DistanceProvider,
        availability: AvailabilityService | None = None,
        max_parallel: int = 0,
        default_timeout: float | None = None,
    ) -> None:
        self._jobs = jobs
        self._contractors = contractors
        self._assignments = assignments
        self._distance = distance
        self._availability = availability or AvailabilityService(contractors, assignments)
        self._max_parallel = max_parallel
        self._default_timeout = default_timeout

    # ----- Public API --------------------------------------------------------

    async def get_recommendations(
        self,
        job_id: int,
        requester_id: int,
        contractor_list_only: bool = False,
        timeout: float | None = None,
    ) -> RecommendationResponse:
        """Score every candidate for *job_id* and return the best five.

        Raises NotFoundError for an unknown job, InvalidArgumentError for a job
        whose desired time has passed, and RecommendationTimeoutError when the
        whole batch does not finish within *timeout* seconds.
        """
        logger.info(
            "Fetching recommendations for job %s (contractor_list_only=%s)",
            job_id, contractor_list_only,
            extra={"job_id": job_id, "dispatcher_id": requester_id},
        )

        job = await self._jobs.get_job_by_id(job_id)
        if job is None:
            raise NotFoundError(f"Job with ID {job_id} not found")
        if job.desired_datetime < datetime.now(timezone.utc):
            raise InvalidArgumentError(
                f"Desired date/time cannot be in the past: {job.desired_datetime.isoformat()}"
            )

        if contractor_list_only:
            contractor_ids = await self._contractors.get_dispatcher_contractor_list(requester_id)
        else:
            contractor_ids = await self._contractors.get_active_contractor_ids()

        if not contractor_ids:
            logger.warning(
                "No contractors to score (contractor_list_only=%s)", contractor_list_only,
                extra={"job_id": job_id},
            )
            return RecommendationResponse(recommendations=[], message=MSG_NO_CONTRACTORS)

        timeout = timeout if timeout is not None else self._default_timeout
        try:
            results = await asyncio.wait_for(
                self._score_all(contractor_ids, job), timeout=timeout
            )
        except asyncio.TimeoutError as exc:
            logger.warning(
                "Recommendations for job %s timed out after %ss", job_id, timeout,
                extra={"job_id": job_id},
            )
            raise RecommendationTimeoutError(
                f"Recommendations for job {job_id} did not finish within {timeout}s"
            ) from exc

        scored = [r for r in results if r is not None]
        scored.sort(key=lambda r: r.score, reverse=True)
        top = scored[:MAX_RECOMMENDATIONS]

        if not top:
            logger.warning(
                "No contractors survived scoring for job %s", job_id,
                extra={"job_id": job_id},
            )
            return RecommendationResponse(recommendations=[], message=MSG_NO_CONTRACTORS)

        logger.info(
            "Ranked %d of %d contractors for job %s, best=%s (%.2f)",
            len(scored), len(contractor_ids), job_id, top[0].contractor_id, top[0].score,
            extra={"job_id": job_id},
        )
        return RecommendationResponse(recommendations=top, message=MSG_SUCCESS)

    async def get_available_time_slots(self, contractor_id: int, day: date) -> list[datetime]:
        """Free one-hour slots for *contractor_id* on *day* (UTC)."""
        contractor = await self._contractors.get_contractor_by_id(contractor_id)
        if contractor is None:
            raise NotFoundError(f"Contractor with ID {contractor_id} not found")
        return await self._free_slots(contractor, day)

    # ----- Internals -----------------------------------------------------------

    async def _free_slots(self, contractor: Contractor, day: date) -> list[datetime]:
        assignments = await self._assignments.get_contractor_assignments_by_date(
            contractor.id, day
        )
        return find_free_slots(
            day,
            contractor.working_hours_start,
            contractor.working_hours_end,
            occupied_windows(assignments),
        )

    async def _score_all(
        self, contractor_ids: list[int], job: Job
    ) -> list[Recommendation | None]:
        semaphore = asyncio.Semaphore(self._max_parallel) if self._max_parallel > 0 else None

        async def _guarded(contractor_id: int) -> Recommendation | None:
            if semaphore is None:
                return await self._score_contractor(contractor_id, job)
            async with semaphore:
                return await self._score_contractor(contractor_id, job)

        return await asyncio.gather(*(_guarded(cid) for cid in contractor_ids))

    async def _score_contractor(self, contractor_id: int, job: Job) -> Recommendation | None:
        """Score one contractor; any failure drops the contractor from the batch."""
        try:
            contractor = await self._contractors.get_contractor_by_id(contractor_id)
            if contractor is None or not contractor.is_active:
                return None

            available = await self._availability.calculate_availability(
                contractor_id, job.desired_datetime, JOB_DURATION_HOURS
            )
            distance = await self._distance.get_distance(
                job.latitude, job.longitude, contractor.latitude, contractor.longitude
            )
            travel_time = await self._distance.get_travel_time(
                job.latitude, job.longitude, contractor.latitude, contractor.longitude
            )

            components = ScoreComponents(
                availability=1.0 if available else 0.0,
                rating=normalize_rating_score(contractor.average_rating),
                distance=normalize_distance_score(distance),
            )
            score = calculate_score(
                components.availability, components.rating, components.distance
            )
        except Exception:
            logger.warning(
                "Error calculating recommendation score for contractor %s",
                contractor_id, exc_info=True,
                extra={"contractor_id": contractor_id, "job_id": job.id},
            )
            return None

        try:
            slots = await self._free_slots(contractor, job.desired_datetime.date())
        except Exception:
            logger.warning(
                "Error getting available time slots for contractor %s",
                contractor_id, exc_info=True,
                extra={"contractor_id": contractor_id, "job_id": job.id},
            )
            slots = []

        return Recommendation(
            contractor_id=contractor.id,
            name=contractor.name,
            score=score,
            rating=contractor.average_rating,
            review_count=contractor.review_count,
            distance_miles=distance,
            travel_time_minutes=travel_time,
            available_slots=slots,
        )
