"""Pydantic models shared across the application."""

from __future__ import annotations

from datetime import datetime, time, timedelta, timezone
from enum import Enum

from pydantic import BaseModel, Field, field_validator


def _as_utc(value: datetime) -> datetime:
    """Naive datetimes are taken to be UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


# ---------------------------------------------------------------------------
# Job
# ---------------------------------------------------------------------------

class Job(BaseModel):
    id: int
    desired_datetime: datetime
    estimated_duration_hours: float = Field(gt=0)
    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)
    job_type: str = ""
    location: str = ""

    @field_validator("desired_datetime")
    @classmethod
    def _normalize_tz(cls, value: datetime) -> datetime:
        return _as_utc(value)

    @property
    def end_datetime(self) -> datetime:
        return self.desired_datetime + timedelta(hours=self.estimated_duration_hours)


# ---------------------------------------------------------------------------
# Contractor
# ---------------------------------------------------------------------------

class Contractor(BaseModel):
    id: int
    name: str
    is_active: bool = True
    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)
    working_hours_start: time = time(9, 0)
    working_hours_end: time = time(17, 0)
    average_rating: float | None = Field(default=None, ge=0, le=5)  # None = no reviews yet
    review_count: int = Field(default=0, ge=0)


# ---------------------------------------------------------------------------
# Assignment / review
# ---------------------------------------------------------------------------

class AssignmentStatus(str, Enum):
    pending = "pending"
    accepted = "accepted"
    declined = "declined"
    in_progress = "in_progress"
    completed = "completed"


# Statuses that still hold the contractor's time
ACTIVE_ASSIGNMENT_STATUSES = frozenset({
    AssignmentStatus.pending,
    AssignmentStatus.accepted,
    AssignmentStatus.in_progress,
})


class Assignment(BaseModel):
    """Links a contractor to a job.

    The assignment has no times of its own; its occupied window comes from
    the attached ``job`` (filled in by the repository).
    """
    id: int
    contractor_id: int
    job_id: int
    status: AssignmentStatus = AssignmentStatus.pending
    job: Job | None = None


class Review(BaseModel):
    id: int
    contractor_id: int
    job_id: int
    rating: int = Field(ge=1, le=5)
    comment: str = ""


# ---------------------------------------------------------------------------
# Distance
# ---------------------------------------------------------------------------

class DistanceResult(BaseModel):
    """One origin/destination cell of a batch distance lookup."""
    distance_miles: float | None = None
    travel_time_minutes: int | None = None
    status: str = "OK"  # OK, ZERO_RESULTS, NOT_FOUND, REQUEST_DENIED, FALLBACK_USED
    error_message: str | None = None


# ---------------------------------------------------------------------------
# Recommendations
# ---------------------------------------------------------------------------

class ScoreComponents(BaseModel):
    availability: float = Field(ge=0, le=1)
    rating: float = Field(ge=0, le=1)
    distance: float = Field(ge=0, le=1)


class Recommendation(BaseModel):
    contractor_id: int
    name: str
    score: float
    rating: float | None = None
    review_count: int = 0
    distance_miles: float
    travel_time_minutes: int
    available_slots: list[datetime] = Field(default_factory=list)


class RecommendationResponse(BaseModel):
    recommendations: list[Recommendation] = Field(default_factory=list)
    message: str = ""


class AvailableSlotsResponse(BaseModel):
    contractor_id: int
    date: str
    slots: list[datetime] = Field(default_factory=list)
