"""Repository interfaces and the in-memory store that backs them.

The recommendation services only depend on the Protocols below. The
in-memory :class:`Store` implements all of them and can be seeded from a
JSON file so the API is usable without a database.
"""

from __future__ import annotations

import asyncio
import json
import logging
from datetime import date
from pathlib import Path
from typing import Any, Protocol

from app.schemas import (
    ACTIVE_ASSIGNMENT_STATUSES,
    Assignment,
    Contractor,
    Job,
    Review,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Protocols
# ---------------------------------------------------------------------------


class JobRepository(Protocol):
    async def get_job_by_id(self, job_id: int) -> Job | None: ...


class ContractorRepository(Protocol):
    async def get_active_contractor_ids(self) -> list[int]: ...

    async def get_dispatcher_contractor_list(self, dispatcher_id: int) -> list[int]: ...

    async def get_contractor_by_id(self, contractor_id: int) -> Contractor | None: ...

    async def update_contractor(self, contractor: Contractor) -> None: ...


class AssignmentRepository(Protocol):
    async def get_contractor_assignments_by_date(
        self, contractor_id: int, day: date
    ) -> list[Assignment]: ...


class ReviewRepository(Protocol):
    async def get_by_contractor_id(self, contractor_id: int) -> list[Review]: ...


# ---------------------------------------------------------------------------
# In-memory implementation
# ---------------------------------------------------------------------------


class Store:
    """Async-safe in-memory store for jobs, contractors, assignments and reviews."""

    def __init__(self) -> None:
        self.jobs: dict[int, Job] = {}
        self.contractors: dict[int, Contractor] = {}
        self.assignments: dict[int, Assignment] = {}
        self.reviews: dict[int, Review] = {}
        self.dispatcher_lists: dict[int, list[int]] = {}
        self._lock = asyncio.Lock()

    def clear(self) -> None:
        self.jobs.clear()
        self.contractors.clear()
        self.assignments.clear()
        self.reviews.clear()
        self.dispatcher_lists.clear()

    # ----- Writes ------------------------------------------------------------

    async def add_job(self, job: Job) -> Job:
        async with self._lock:
            self.jobs[job.id] = job
        return job

    async def add_contractor(self, contractor: Contractor) -> Contractor:
        async with self._lock:
            self.contractors[contractor.id] = contractor
        return contractor

    async def update_contractor(self, contractor: Contractor) -> None:
        async with self._lock:
            self.contractors[contractor.id] = contractor

    async def add_assignment(self, assignment: Assignment) -> Assignment:
        async with self._lock:
            self.assignments[assignment.id] = assignment.model_copy(update={"job": None})
        return assignment

    async def add_review(self, review: Review) -> Review:
        async with self._lock:
            self.reviews[review.id] = review
        return review

    async def add_contractor_to_list(self, dispatcher_id: int, contractor_id: int) -> None:
        async with self._lock:
            ids = self.dispatcher_lists.setdefault(dispatcher_id, [])
            if contractor_id not in ids:
                ids.append(contractor_id)

    # ----- Reads ---------------------------------------------------------------

    async def get_job_by_id(self, job_id: int) -> Job | None:
        return self.jobs.get(job_id)

    async def get_active_contractor_ids(self) -> list[int]:
        return [c.id for c in self.contractors.values() if c.is_active]

    async def get_dispatcher_contractor_list(self, dispatcher_id: int) -> list[int]:
        return list(self.dispatcher_lists.get(dispatcher_id, []))

    async def get_contractor_by_id(self, contractor_id: int) -> Contractor | None:
        return self.contractors.get(contractor_id)

    async def get_contractor_assignments_by_date(
        self, contractor_id: int, day: date
    ) -> list[Assignment]:
        """Active assignments whose job starts on *day*, with the job attached."""
        result: list[Assignment] = []
        for a in self.assignments.values():
            if a.contractor_id != contractor_id or a.status not in ACTIVE_ASSIGNMENT_STATUSES:
                continue
            job = self.jobs.get(a.job_id)
            if job is None or job.desired_datetime.date() != day:
                continue
            result.append(a.model_copy(update={"job": job}))
        return result

    async def get_by_contractor_id(self, contractor_id: int) -> list[Review]:
        return [r for r in self.reviews.values() if r.contractor_id == contractor_id]

    # ----- Seed data -------------------------------------------------------------

    def load_seed(self, path: str | Path) -> None:
        """Populate the store from a JSON file.

        Expected keys: ``jobs``, ``contractors``, ``assignments``, ``reviews``
        (lists of objects) and ``dispatcher_lists`` (dispatcher id → contractor ids).
        """
        raw: dict[str, Any] = json.loads(Path(path).read_text())
        for entry in raw.get("jobs", []):
            job = Job(**entry)
            self.jobs[job.id] = job
        for entry in raw.get("contractors", []):
            contractor = Contractor(**entry)
            self.contractors[contractor.id] = contractor
        for entry in raw.get("assignments", []):
            assignment = Assignment(**entry)
            self.assignments[assignment.id] = assignment
        for entry in raw.get("reviews", []):
            review = Review(**entry)
            self.reviews[review.id] = review
        for dispatcher_id, ids in raw.get("dispatcher_lists", {}).items():
            self.dispatcher_lists[int(dispatcher_id)] = [int(i) for i in ids]
        logger.info(
            "Loaded seed data from %s: %d jobs, %d contractors, %d assignments",
            path, len(self.jobs), len(self.contractors), len(self.assignments),
        )


# Module-level singleton
store = Store()
