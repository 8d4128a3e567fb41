"""
HoneyWall – FastAPI application entry point.

Starts one background task for the life of the app:
  RateLimiter.sweep_loop() – drops expired rate-limit windows

Exposes:
  *    /ingest            → sensor ingestion gateway (POST; OPTIONS preflight)
  GET  /api/events        → stored events in the window, newest first
  GET  /api/stats         → summary stats
  GET  /api/top-attackers → top 5 source IPs
  GET  /api/attack-types  → attack-type breakdown
  GET  /api/timeseries    → 24 hourly buckets
  GET  /api/sensors       → sensor health
  GET  /api/dashboard     → every view plus recent events
  GET  /api/stream        → server-sent events for newly stored events
  GET  /health            → liveness

Run with `python -m honeywall`, or `uvicorn --factory honeywall.main:create_app`.
"""
from __future__ import annotations

import asyncio
import logging
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, Response, StreamingResponse

from . import __version__
from .aggregation import WINDOW_SECONDS, compute_views
from .config import Settings, load_settings
from .db import EventStore
from .errors import IngestError
from .gateway import CORS_HEADERS, IngestionGateway
from .notifier import ChangeNotifier, Subscription
from .ratelimit import RateLimiter

logger = logging.getLogger("honeywall")

INGEST_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]


def configure_logging(level: str = "info") -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s [%(levelname)s] %(name)s – %(message)s",
    )


def _content_length(request: Request) -> int | None:
    raw = request.headers.get("content-length")
    if raw is None:
        return None
    try:
        return int(raw)
    except ValueError:
        return None


async def _read_capped(request: Request, limit: int) -> bytes:
    """Read at most a little over `limit` bytes; the gateway rejects the rest."""
    data = bytearray()
    async for chunk in request.stream():
        data.extend(chunk)
        if len(data) > limit:
            break
    return bytes(data)


async def _sse(sub: Subscription):
    async with sub:
        async for event in sub:
            yield f"data: {event.model_dump_json()}\n\n"


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or load_settings()
    notifier = ChangeNotifier()
    store = EventStore(settings.db_path, notifier, timeout=settings.store_timeout)
    limiter = RateLimiter(settings.rate_limit_max_requests, settings.rate_limit_window)
    gateway = IngestionGateway(settings, limiter, store)

    # -----------------------------------------------------------------------
    # Lifecycle
    # -----------------------------------------------------------------------

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await store.init_db()
        sweeper = asyncio.create_task(
            limiter.sweep_loop(settings.rate_limit_sweep_interval), name="ratelimit-sweep",
        )
        if not settings.api_key:
            logger.warning("HONEYPOT_API_KEY is not set; every submission will be rejected.")
        logger.info("HoneyWall started (db=%s).", settings.db_path)
        try:
            yield
        finally:
            sweeper.cancel()
            logger.info("HoneyWall stopped.")

    app = FastAPI(title="HoneyWall", version=__version__, lifespan=lifespan)
    app.state.settings = settings
    app.state.notifier = notifier
    app.state.store = store
    app.state.limiter = limiter
    app.state.gateway = gateway
    app.state.started_at = time.time()

    @app.exception_handler(IngestError)
    async def ingest_error_handler(request: Request, exc: IngestError) -> JSONResponse:
        return JSONResponse(exc.to_body(), status_code=exc.status_code)

    # -----------------------------------------------------------------------
    # Ingestion
    # -----------------------------------------------------------------------

    @app.api_route("/ingest", methods=INGEST_METHODS)
    async def ingest(request: Request) -> Response:
        body = b""
        if request.method == "POST":
            body = await _read_capped(request, settings.max_payload_size)
        status, payload = await gateway.handle(
            request.method,
            request.headers.get("x-api-key"),
            body,
            _content_length(request),
        )
        if payload is None:
            return Response(status_code=status, headers=CORS_HEADERS)
        return JSONResponse(payload, status_code=status, headers=CORS_HEADERS)

    # -----------------------------------------------------------------------
    # Query interface
    # -----------------------------------------------------------------------

    async def _window(hours: float = WINDOW_SECONDS / 3600, limit: int | None = None):
        now = time.time()
        events = await store.fetch_events_since(now - hours * 3600, limit)
        return now, events

    async def _views():
        now, events = await _window()
        return compute_views(
            events, now,
            sensors=settings.sensors,
            ratio=settings.blocked_ratio,
            alert_threshold=settings.alert_threshold,
        )

    @app.get("/api/events")
    async def api_events(hours: float = 24, limit: int | None = None) -> JSONResponse:
        limit = max(1, min(limit or settings.events_limit, settings.events_limit))
        _, events = await _window(hours, limit)
        return JSONResponse([e.model_dump() for e in events])

    @app.get("/api/stats")
    async def api_stats() -> JSONResponse:
        views = await _views()
        return JSONResponse(views.stats.model_dump())

    @app.get("/api/top-attackers")
    async def api_top_attackers() -> JSONResponse:
        views = await _views()
        return JSONResponse([a.model_dump() for a in views.top_attackers])

    @app.get("/api/attack-types")
    async def api_attack_types() -> JSONResponse:
        views = await _views()
        return JSONResponse([b.model_dump() for b in views.attack_types])

    @app.get("/api/timeseries")
    async def api_timeseries() -> JSONResponse:
        views = await _views()
        return JSONResponse([b.model_dump() for b in views.timeseries])

    @app.get("/api/sensors")
    async def api_sensors() -> JSONResponse:
        views = await _views()
        return JSONResponse([s.model_dump() for s in views.sensors])

    @app.get("/api/dashboard")
    async def api_dashboard() -> JSONResponse:
        now, events = await _window()
        views = compute_views(
            events, now,
            sensors=settings.sensors,
            ratio=settings.blocked_ratio,
            alert_threshold=settings.alert_threshold,
        )
        data = views.model_dump()
        data["events"] = [e.model_dump() for e in events[: settings.events_limit]]
        return JSONResponse(data)

    @app.get("/api/stream")
    async def api_stream() -> StreamingResponse:
        return StreamingResponse(_sse(notifier.subscribe()), media_type="text/event-stream")

    @app.get("/health")
    async def health() -> JSONResponse:
        return JSONResponse({
            "status": "healthy",
            "version": __version__,
            "uptime_seconds": round(time.time() - app.state.started_at, 1),
            "subscribers": notifier.subscriber_count,
        })

    return app
