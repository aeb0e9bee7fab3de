import random
import uuid
from dataclasses import dataclass
from typing import Dict, List, Literal, Optional

from fastapi import FastAPI, HTTPException, Query, Request
from pydantic import BaseModel, Field, ValidationError

from .config import Settings, settings as default_settings
from .errors import GatewayError, NotFound, Protected, Transient
from .log import configure_logging, get_logger
from .models import (
    ConfigKind,
    DashboardStats,
    HourlyBucket,
    IngestOutcome,
    IngestRequest,
    TablePage,
)
from .pipeline import DispatchPipeline
from .simulated_sources import MockIngestSource, seed_store
from .simulator import DispatchSimulator
from .stats import MAX_TIMESTAMP_MS, aggregate, hourly_histogram
from .store import Clock, EventLog, InMemoryConfigStore, epoch_ms
from .table import (
    CONFIG_TABLE,
    DISPATCH_LOG_TABLE,
    INGEST_TABLE,
    SortConfig,
    TableQuery,
    TableSpec,
    view,
)

log = get_logger(__name__)


class IngestPayload(BaseModel):
    method: str = "POST"
    url: str
    headers: Dict[str, str] = Field(default_factory=dict)
    body: str = ""
    query_params: str = ""
    ip: str = ""
    user_agent: str = ""


class ConfigPayload(BaseModel):
    fields: dict


@dataclass
class GatewayState:
    settings: Settings
    clock: Clock
    rng: random.Random
    config_store: InMemoryConfigStore
    events: EventLog
    pipeline: DispatchPipeline

    def new_id(self) -> str:
        return str(uuid.UUID(int=self.rng.getrandbits(128), version=4))


def build_state(
    settings: Settings,
    rng: Optional[random.Random] = None,
    clock: Clock = epoch_ms,
) -> GatewayState:
    rng = rng or random.Random(settings.random_seed)
    config_store = InMemoryConfigStore(
        clock=clock,
        rng=random.Random(rng.getrandbits(64)),
        latency_min_ms=settings.store_latency_min_ms,
        latency_max_ms=settings.store_latency_max_ms,
        failure_rate=settings.store_failure_rate,
    )
    events = EventLog()
    simulator = DispatchSimulator(
        rng=random.Random(rng.getrandbits(64)),
        success_rate=settings.dispatch_success_rate,
        execution_time_min_ms=settings.execution_time_min_ms,
        execution_time_max_ms=settings.execution_time_max_ms,
        processing_offset_ms=settings.processing_offset_ms,
        completion_jitter_ms=settings.completion_jitter_ms,
    )
    pipeline = DispatchPipeline(
        config_store, events, simulator, diagnostics_buffer=settings.diagnostics_buffer
    )

    if settings.seed_configs:
        seeded = seed_store(config_store, clock())
        if settings.seed_ingest_requests:
            source = MockIngestSource(rng=random.Random(rng.getrandbits(64)), clock=clock)
            requests = source.generate(settings.seed_ingest_requests, settings.seed_window_hours)
            pipeline.backfill(requests, seeded[ConfigKind.DISPATCH])

    return GatewayState(
        settings=settings,
        clock=clock,
        rng=rng,
        config_store=config_store,
        events=events,
        pipeline=pipeline,
    )


def _http_error(exc: GatewayError) -> HTTPException:
    if isinstance(exc, NotFound):
        return HTTPException(status_code=404, detail=str(exc))
    if isinstance(exc, Protected):
        return HTTPException(status_code=409, detail=str(exc))
    if isinstance(exc, Transient):
        return HTTPException(status_code=503, detail=str(exc))
    return HTTPException(status_code=400, detail=str(exc))


def _table_query(
    state: GatewayState,
    filter: str,
    sort_key: Optional[str],
    sort_direction: str,
    page: int,
    page_size: Optional[int],
) -> TableQuery:
    size = min(page_size or state.settings.page_size, state.settings.max_page_size)
    sort = SortConfig(sort_key, sort_direction) if sort_key else None
    return TableQuery(filter=filter, sort=sort, page=page, page_size=size)


def create_app(
    settings: Optional[Settings] = None,
    *,
    rng: Optional[random.Random] = None,
    clock: Clock = epoch_ms,
) -> FastAPI:
    settings = settings or default_settings
    configure_logging(settings.log_level, settings.json_logs)

    app = FastAPI(
        title="Webhook Gateway Console",
        version="0.1.0",
        description="Operator console for an ingest/dispatch webhook gateway with a mocked backend.",
    )
    app.state.gateway = build_state(settings, rng=rng, clock=clock)
    log.info(
        "Gateway console ready with %d ingest requests and %d dispatch logs",
        len(app.state.gateway.events.ingest_requests()),
        len(app.state.gateway.events.dispatch_logs()),
    )

    def state_of(request: Request) -> GatewayState:
        return request.app.state.gateway

    def table(
        state: GatewayState,
        records: list,
        spec: TableSpec,
        filter: str,
        sort_key: Optional[str],
        sort_direction: str,
        page: int,
        page_size: Optional[int],
    ) -> TablePage:
        query = _table_query(state, filter, sort_key, sort_direction, page, page_size)
        return view(records, query, spec)

    @app.get("/health")
    async def health() -> dict:
        return {"status": "ok"}

    @app.get("/ingest")
    async def list_ingest(
        request: Request,
        filter: str = "",
        sort_key: Optional[str] = None,
        sort_direction: Literal["ascending", "descending"] = "ascending",
        page: int = 1,
        page_size: Optional[int] = Query(None, ge=1),
    ) -> TablePage:
        state = state_of(request)
        return table(
            state, state.events.ingest_requests(), INGEST_TABLE,
            filter, sort_key, sort_direction, page, page_size,
        )

    @app.get("/ingest/{request_id}")
    async def get_ingest(request: Request, request_id: str) -> IngestOutcome:
        state = state_of(request)
        try:
            ingest = state.events.get_request(request_id)
        except NotFound as exc:
            raise _http_error(exc) from exc
        return IngestOutcome(request=ingest, dispatch=state.events.dispatch_for(request_id))

    @app.post("/ingest")
    async def record_ingest(request: Request, payload: IngestPayload) -> IngestOutcome:
        state = state_of(request)
        ingest = IngestRequest(
            id=state.new_id(), timestamp=state.clock(), **payload.model_dump()
        )
        try:
            dispatch = await state.pipeline.ingest(ingest)
        except Transient as exc:
            raise _http_error(exc) from exc
        return IngestOutcome(request=ingest, dispatch=dispatch)

    @app.api_route("/capture/{path:path}", methods=["GET", "POST", "PUT", "PATCH", "DELETE"])
    async def capture(request: Request, path: str) -> IngestOutcome:
        """Record whatever arrives here as an ingest request."""
        state = state_of(request)
        raw_body = await request.body()
        query = request.url.query
        ingest = IngestRequest(
            id=state.new_id(),
            method=request.method,
            url=str(request.url),
            headers=dict(request.headers),
            body=raw_body.decode("utf-8", errors="replace"),
            query_params=f"?{query}" if query else "",
            ip=request.client.host if request.client else "",
            user_agent=request.headers.get("user-agent", ""),
            timestamp=state.clock(),
        )
        try:
            dispatch = await state.pipeline.ingest(ingest)
        except Transient as exc:
            raise _http_error(exc) from exc
        return IngestOutcome(request=ingest, dispatch=dispatch)

    @app.get("/dispatch-logs")
    async def list_dispatch_logs(
        request: Request,
        filter: str = "",
        sort_key: Optional[str] = None,
        sort_direction: Literal["ascending", "descending"] = "ascending",
        page: int = 1,
        page_size: Optional[int] = Query(None, ge=1),
    ) -> TablePage:
        state = state_of(request)
        return table(
            state, state.events.dispatch_logs(), DISPATCH_LOG_TABLE,
            filter, sort_key, sort_direction, page, page_size,
        )

    @app.get("/dispatch-rules/diagnostics")
    async def rule_diagnostics(request: Request) -> dict:
        errors = state_of(request).pipeline.diagnostics()
        return {"diagnostics": [error.as_dict() for error in errors]}

    @app.get("/configs")
    async def config_kinds() -> dict:
        return {"kinds": [{"kind": kind.value, "label": kind.label} for kind in ConfigKind]}

    @app.get("/configs/{kind}")
    async def list_configs(
        request: Request,
        kind: ConfigKind,
        filter: str = "",
        sort_key: Optional[str] = None,
        sort_direction: Literal["ascending", "descending"] = "ascending",
        page: int = 1,
        page_size: Optional[int] = Query(None, ge=1),
    ) -> TablePage:
        state = state_of(request)
        try:
            records = await state.config_store.list(kind)
        except Transient as exc:
            raise _http_error(exc) from exc
        return table(
            state, records, CONFIG_TABLE,
            filter, sort_key, sort_direction, page, page_size,
        )

    @app.get("/configs/{kind}/{config_id}")
    async def get_config(request: Request, kind: ConfigKind, config_id: str) -> dict:
        try:
            record = await state_of(request).config_store.get(kind, config_id)
        except GatewayError as exc:
            raise _http_error(exc) from exc
        return {"config": record}

    @app.post("/configs/{kind}", status_code=201)
    async def create_config(request: Request, kind: ConfigKind, payload: ConfigPayload) -> dict:
        try:
            record = await state_of(request).config_store.create(kind, payload.fields)
        except ValidationError as exc:
            raise HTTPException(status_code=422, detail=exc.errors(include_url=False)) from exc
        except GatewayError as exc:
            raise _http_error(exc) from exc
        return {"config": record}

    @app.put("/configs/{kind}/{config_id}")
    async def update_config(
        request: Request, kind: ConfigKind, config_id: str, payload: ConfigPayload
    ) -> dict:
        try:
            record = await state_of(request).config_store.update(kind, config_id, payload.fields)
        except ValidationError as exc:
            raise HTTPException(status_code=422, detail=exc.errors(include_url=False)) from exc
        except GatewayError as exc:
            raise _http_error(exc) from exc
        return {"config": record}

    @app.delete("/configs/{kind}/{config_id}")
    async def delete_config(request: Request, kind: ConfigKind, config_id: str) -> dict:
        try:
            record = await state_of(request).config_store.delete(kind, config_id)
        except GatewayError as exc:
            raise _http_error(exc) from exc
        return {"deleted": record}

    @app.get("/stats")
    async def stats(request: Request) -> DashboardStats:
        state = state_of(request)
        try:
            webhooks = await state.config_store.list(ConfigKind.WEBHOOK)
        except Transient as exc:
            raise _http_error(exc) from exc
        return aggregate(state.events.ingest_requests(), state.events.dispatch_logs(), webhooks)

    @app.get("/stats/hourly")
    async def stats_hourly(
        request: Request,
        now: Optional[int] = Query(None, ge=0, le=MAX_TIMESTAMP_MS),
    ) -> List[HourlyBucket]:
        state = state_of(request)
        moment = now if now is not None else state.clock()
        return hourly_histogram(state.events.ingest_requests(), moment)

    return app


app = create_app()
