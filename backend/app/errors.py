"""Domain exceptions shared by the services and the API layer."""

from __future__ import annotations


class SchedulerError(Exception):
    """Base class for errors raised by the recommendation services."""


class NotFoundError(SchedulerError):
    """A job or contractor referenced by id does not exist."""


class InvalidArgumentError(SchedulerError, ValueError):
    """Input rejected before any work is done (bad duration, past job, out-of-range score)."""


class DistanceProviderError(SchedulerError):
    """Raised when distance or travel time cannot be determined.

    The scoring engine treats this like any other per-contractor failure:
    the contractor is dropped from the shortlist and the batch carries on.
    """


class RecommendationTimeoutError(SchedulerError):
    """The recommendation request ran past its deadline and was abandoned."""
