"""Availability checks — does a job window collide with existing assignments?"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Iterable

from app.errors import InvalidArgumentError, NotFoundError
from app.schemas import Assignment
from app.store import AssignmentRepository, ContractorRepository

logger = logging.getLogger(__name__)

Window = tuple[datetime, datetime]


def intervals_overlap(
    a_start: datetime, a_end: datetime,
    b_start: datetime, b_end: datetime,
) -> bool:
    """Half-open overlap test: back-to-back windows do not collide."""
    return a_start < b_end and b_start < a_end


def occupied_window(assignment: Assignment) -> Window | None:
    """Return ``[start, end)`` for an assignment, or None if its job is not loaded."""
    if assignment.job is None:
        return None
    return assignment.job.desired_datetime, assignment.job.end_datetime


def occupied_windows(assignments: Iterable[Assignment]) -> list[Window]:
    windows = []
    for a in assignments:
        window = occupied_window(a)
        if window is not None:
            windows.append(window)
    return windows


def is_available(
    existing: Iterable[Window],
    desired_start: datetime,
    job_duration_hours: float,
    travel_time_minutes: int = 0,
) -> bool:
    """True when ``[desired_start, desired_start + duration)`` is clear of *existing*.

    *travel_time_minutes* extends the end of the candidate window. The scoring
    flow always passes 0. Working hours are not checked here; only
    :func:`app.services.slots.find_free_slots` restricts itself to them.
    """
    if job_duration_hours <= 0:
        raise InvalidArgumentError("Job duration must be greater than zero")
    if travel_time_minutes < 0:
        raise InvalidArgumentError("Travel time cannot be negative")

    desired_end = desired_start + timedelta(
        hours=job_duration_hours, minutes=travel_time_minutes
    )
    for b_start, b_end in existing:
        if intervals_overlap(desired_start, desired_end, b_start, b_end):
            return False
    return True


class AvailabilityService:
    """Repository-backed wrapper around :func:`is_available`."""

    def __init__(
        self,
        contractors: ContractorRepository,
        assignments: AssignmentRepository,
    ) -> None:
        self._contractors = contractors
        self._assignments = assignments

    async def calculate_availability(
        self,
        contractor_id: int,
        desired_start: datetime,
        job_duration_hours: float,
        travel_time_minutes: int = 0,
    ) -> bool:
        if job_duration_hours <= 0:
            raise InvalidArgumentError("Job duration must be greater than zero")

        contractor = await self._contractors.get_contractor_by_id(contractor_id)
        if contractor is None:
            raise NotFoundError(f"Contractor with ID {contractor_id} not found")

        assignments = await self._assignments.get_contractor_assignments_by_date(
            contractor_id, desired_start.date()
        )
        available = is_available(
            occupied_windows(assignments),
            desired_start,
            job_duration_hours,
            travel_time_minutes,
        )
        logger.info(
            "Availability check %s for contractor %s at %s (%sh, travel %sm)",
            "passed" if available else "failed",
            contractor_id, desired_start.isoformat(),
            job_duration_hours, travel_time_minutes,
            extra={"contractor_id": contractor_id},
        )
        return available
