"""SmartDispatch FastAPI application — contractor recommendations for dispatchers."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import date as date_type

from fastapi import FastAPI, Header, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.config import get_settings
from app.errors import InvalidArgumentError, NotFoundError, RecommendationTimeoutError
from app.logging_utils import setup_logging
from app.schemas import AvailableSlotsResponse, RecommendationResponse
from app.services.distance import get_distance_provider
from app.services.scoring import ScoringEngine
from app.store import store

logger = logging.getLogger(__name__)

settings = get_settings()


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI):  # type: ignore[no-untyped-def]
    setup_logging(settings.log_level)
    logger.info("SmartDispatch backend starting up")
    if settings.seed_data_path:
        store.load_seed(settings.seed_data_path)
    yield
    logger.info("SmartDispatch backend shutting down")


# ---------------------------------------------------------------------------
# App creation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="SmartDispatch",
    description="Contractor recommendations for field-service dispatch",
    version="0.1.0",
    lifespan=lifespan,
)

if settings.allow_all_cors:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

engine = ScoringEngine(
    jobs=store,
    contractors=store,
    assignments=store,
    distance=get_distance_provider(settings),
    max_parallel=settings.max_parallel_scoring,
    default_timeout=settings.recommendation_timeout_seconds,
)


# ---------------------------------------------------------------------------
# Error mapping
# ---------------------------------------------------------------------------


def _error(status_code: int, code: str, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"error": {"code": code, "message": message, "statusCode": status_code}},
    )


@app.exception_handler(NotFoundError)
async def _not_found(request: Request, exc: NotFoundError) -> JSONResponse:
    logger.warning("Not found: %s", exc)
    return _error(404, "NOT_FOUND", str(exc))


@app.exception_handler(InvalidArgumentError)
async def _invalid(request: Request, exc: InvalidArgumentError) -> JSONResponse:
    logger.warning("Invalid request: %s", exc)
    return _error(400, "INVALID_REQUEST", str(exc))


@app.exception_handler(RecommendationTimeoutError)
async def _timeout(request: Request, exc: RecommendationTimeoutError) -> JSONResponse:
    return _error(504, "RECOMMENDATIONS_TIMEOUT", str(exc))


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------


@app.get("/health")
async def health() -> dict[str, bool]:
    return {"ok": True}


# ---------------------------------------------------------------------------
# Recommendation endpoints
# ---------------------------------------------------------------------------


@app.get("/api/v1/recommendations", response_model=RecommendationResponse)
async def get_recommendations(
    job_id: int = Query(...),
    contractor_list_only: bool = Query(False),
    x_dispatcher_id: int = Header(..., description="Authenticated dispatcher id"),
) -> RecommendationResponse | JSONResponse:
    """Top 5 contractors for a job, ranked by availability, rating and distance."""
    try:
        response = await engine.get_recommendations(
            job_id, x_dispatcher_id, contractor_list_only
        )
    except (NotFoundError, InvalidArgumentError, RecommendationTimeoutError):
        raise
    except Exception:
        logger.exception(
            "Unexpected error retrieving recommendations for job %s", job_id,
            extra={"job_id": job_id, "dispatcher_id": x_dispatcher_id},
        )
        return _error(500, "RECOMMENDATIONS_ERROR", "Unable to retrieve contractor recommendations")

    logger.info(
        "Returned %d recommendations for job %s", len(response.recommendations), job_id,
        extra={"job_id": job_id, "dispatcher_id": x_dispatcher_id},
    )
    return response


@app.get(
    "/api/v1/contractors/{contractor_id}/available-slots",
    response_model=AvailableSlotsResponse,
)
async def get_available_slots(
    contractor_id: int,
    date: date_type = Query(..., description="Day to list free one-hour slots for"),
) -> AvailableSlotsResponse:
    slots = await engine.get_available_time_slots(contractor_id, date)
    return AvailableSlotsResponse(
        contractor_id=contractor_id, date=date.isoformat(), slots=slots
    )
