"""
Server entry point — FastAPI app setup and route configuration.

Exposes domain aggregation over posted telemetry snapshots and the
persisted tab-context relationship tracker.
"""

from __future__ import annotations

import contextlib
from collections.abc import AsyncGenerator
from typing import Any

import dotenv
import fastapi
import pydantic
import uvicorn
from fastapi.middleware import cors

from telemetry_dashboard import config
from telemetry_dashboard.analysis import presenter
from telemetry_dashboard.analysis.aggregator import DomainAggregator
from telemetry_dashboard.analysis.relationships import RelationshipTracker
from telemetry_dashboard.models.domains import ContextId
from telemetry_dashboard.storage.kv_store import JsonFileStore
from telemetry_dashboard.utils import logger
from telemetry_dashboard.utils.serialization import CAMEL_CONFIG

dotenv.load_dotenv()

log = logger.create_logger("Server")


# ============================================================================
# Request / Response Models
# ============================================================================


class AggregateRequest(pydantic.BaseModel):
    """A telemetry snapshot plus table options."""

    model_config = CAMEL_CONFIG

    # Records are validated one by one so a bad record never rejects the batch.
    records: list[Any] = pydantic.Field(default_factory=list)
    sort_by: str = "total_requests"
    direction: presenter.SortDirection = "desc"
    search: str | None = None
    category: str | None = None
    min_requests: int = pydantic.Field(default=0, ge=0)
    page: int = pydantic.Field(default=1, ge=1)
    page_size: int = pydantic.Field(default=presenter.DEFAULT_PAGE_SIZE, ge=1, le=500)
    track_contexts: bool = False


class AggregateResponse(presenter.Page):
    summary: presenter.GlobalStats


class ObservationRequest(pydantic.BaseModel):
    model_config = CAMEL_CONFIG

    context_id: ContextId
    url: str
    context_url: str | None = None


class RelatedDomainsResponse(pydantic.BaseModel):
    model_config = CAMEL_CONFIG

    domain: str
    related_domains: list[str]


class HealthResponse(pydantic.BaseModel):
    model_config = CAMEL_CONFIG

    status: str = "ok"
    tracker_ready: bool


# ============================================================================
# App Factory
# ============================================================================


def _parse_context_id(raw: str) -> ContextId:
    """Path segments are strings; integer ids (including negative ones) are stored as ints."""
    try:
        return int(raw)
    except ValueError:
        return raw


def _tracker(request: fastapi.Request) -> RelationshipTracker:
    return request.app.state.tracker


def _aggregator(request: fastapi.Request) -> DomainAggregator:
    return request.app.state.aggregator


def create_app(settings: config.Settings | None = None) -> fastapi.FastAPI:
    """Build the app; settings default to the environment."""
    settings = settings or config.get_settings()

    @contextlib.asynccontextmanager
    async def lifespan(app: fastapi.FastAPI) -> AsyncGenerator[None]:
        """Restore tracker state on startup and flush it on shutdown."""
        log.section("Telemetry Dashboard Server Started")
        log.info("Environment", {"env": settings.environment, "stateDir": str(settings.cache_dir)})
        app.state.aggregator = DomainAggregator(optimistic_success=settings.optimistic_success)
        app.state.tracker = await RelationshipTracker.create(
            JsonFileStore(settings.cache_dir),
            storage_key=settings.storage_key,
            retention=settings.retention_policy(),
        )
        yield
        await app.state.tracker.flush()
        log.info("Relationship state flushed")

    app = fastapi.FastAPI(title="Telemetry Dashboard Server", lifespan=lifespan)

    app.add_middleware(
        cors.CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ========================================================================
    # API Routes
    # ========================================================================

    @app.get("/api/health", response_model=HealthResponse)
    async def health(tracker: RelationshipTracker = fastapi.Depends(_tracker)) -> HealthResponse:
        return HealthResponse(tracker_ready=tracker.ready)

    @app.post("/api/aggregate", response_model=AggregateResponse)
    async def aggregate_endpoint(
        body: AggregateRequest,
        aggregator: DomainAggregator = fastapi.Depends(_aggregator),
        tracker: RelationshipTracker = fastapi.Depends(_tracker),
    ) -> AggregateResponse:
        """Aggregate a snapshot and return one page of the domain table."""
        log.info("Aggregation request", {"records": len(body.records), "page": body.page})
        if body.track_contexts:
            observed = tracker.observe_records(body.records)
            log.debug("Tracked contexts from snapshot", {"observed": observed})

        aggregates = aggregator.aggregate(body.records)
        rows = presenter.filter_aggregates(
            aggregates, search=body.search, category=body.category, min_requests=body.min_requests
        )
        rows = presenter.sort_aggregates(rows, body.sort_by, body.direction)
        page = presenter.paginate(rows, body.page, body.page_size)
        return AggregateResponse(**dict(page), summary=presenter.summarize(aggregates))

    @app.post("/api/observations", status_code=204)
    async def observe_endpoint(
        body: ObservationRequest,
        tracker: RelationshipTracker = fastapi.Depends(_tracker),
    ) -> None:
        tracker.observe(body.context_id, body.url, body.context_url)

    @app.delete("/api/contexts/{context_id}", status_code=204)
    async def close_context_endpoint(
        context_id: str,
        tracker: RelationshipTracker = fastapi.Depends(_tracker),
    ) -> None:
        tracker.context_closed(_parse_context_id(context_id))

    @app.get("/api/domains/{domain}/related", response_model=RelatedDomainsResponse)
    async def related_endpoint(
        domain: str,
        tracker: RelationshipTracker = fastapi.Depends(_tracker),
    ) -> RelatedDomainsResponse:
        return RelatedDomainsResponse(domain=domain, related_domains=tracker.related_domains(domain))

    return app


app = create_app()


# ============================================================================
# Start Server
# ============================================================================


def main() -> None:
    """Entry point for running the server."""
    settings = config.get_settings()
    log.success(f"Server listening on {settings.host}:{settings.port}")

    uvicorn.run(
        "telemetry_dashboard.app:app",
        host=settings.host,
        port=settings.port,
        reload=not settings.is_production,
    )


if __name__ == "__main__":
    main()
