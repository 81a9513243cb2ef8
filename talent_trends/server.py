"""
HTTP service exposing the talent stream.

Routes:
  GET /health           — liveness probe
  GET /api/reference    — classes with specs, encounters, regions
  GET /api/talents      — ``text/event-stream`` of ranked talent records
                          (?class=Death_Knight&spec=Unholy&encounter=3129&region=EU)

One ``httpx.AsyncClient`` and one ``TokenCache`` are created in the app
lifespan and shared by every request.  Each ``/api/talents`` request gets
its own background producer task and channel.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Optional

import httpx
from fastapi import FastAPI, Query, Request
from fastapi.responses import JSONResponse, StreamingResponse

from talent_trends.config import AppConfig, Credentials, load_config, load_credentials
from talent_trends.ingestion.token_cache import TokenCache
from talent_trends.pipeline.coordinator import StreamCoordinator
from talent_trends.reference import ENCOUNTERS, REGIONS, ClassSpecs, default_class_specs, validate_query
from talent_trends.transport.sse import MEDIA_TYPE, SseTransport

logger = logging.getLogger(__name__)


def create_app(
    config: Optional[AppConfig] = None,
    credentials: Optional[Credentials] = None,
    upstream_transport: Optional[httpx.AsyncBaseTransport] = None,
    class_specs: Optional[ClassSpecs] = None,
) -> FastAPI:
    """Build the FastAPI application.

    Args:
        config: Application config; loaded from ``config/default.toml`` if omitted.
        credentials: Warcraft Logs credentials; read from the environment if omitted.
        upstream_transport: Optional httpx transport for the upstream client
            (tests pass an ``httpx.MockTransport``).
        class_specs: Class/spec table; defaults to the packaged ``data/classes.toml``.
    """
    config = config or load_config()
    class_specs = class_specs or default_class_specs()
    sse = SseTransport(heartbeat_seconds=config.stream.heartbeat_seconds)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        async with httpx.AsyncClient(transport=upstream_transport) as http_client:
            token_cache = TokenCache(
                credentials or load_credentials(), config.warcraftlogs, http_client
            )
            app.state.token_cache = token_cache
            app.state.coordinator = StreamCoordinator.from_config(
                config, token_cache, http_client
            )
            app.state.runs = set()
            logger.info("Talent Trends service ready")
            yield
            for task in list(app.state.runs):
                task.cancel()
            if app.state.runs:
                await asyncio.gather(*app.state.runs, return_exceptions=True)

    app = FastAPI(title="Talent Trends", lifespan=lifespan)

    @app.get("/health")
    async def health(request: Request) -> dict:
        token_cache: TokenCache = request.app.state.token_cache
        return {
            "status": "ok",
            "token": str(token_cache.state),
            "token_exchanges": token_cache.fetch_count,
        }

    @app.get("/api/reference")
    async def reference() -> dict:
        return {
            "classes": [
                {"key": key, "name": ClassSpecs.display_name(key), "specs": list(specs)}
                for key, specs in class_specs.classes.items()
            ],
            "encounters": [{"id": e.id, "name": e.name} for e in ENCOUNTERS],
            "regions": [{"code": r.code, "name": r.name} for r in REGIONS],
        }

    @app.get("/api/talents")
    async def talents(
        request: Request,
        class_name: str = Query(alias="class"),
        spec: str = Query(),
        encounter: int = Query(),
        region: Optional[str] = Query(None),
    ):
        try:
            params = validate_query(class_name, spec, encounter, region, class_specs)
        except ValueError as exc:
            return JSONResponse(status_code=422, content={"detail": str(exc)})

        coordinator: StreamCoordinator = request.app.state.coordinator
        task, channel = coordinator.start(params)
        runs: set = request.app.state.runs
        runs.add(task)

        def _forget(done: asyncio.Task) -> None:
            runs.discard(done)
            if not done.cancelled():
                done.exception()  # already logged by the coordinator

        task.add_done_callback(_forget)

        return StreamingResponse(
            sse.events(channel),
            media_type=MEDIA_TYPE,
            headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
        )

    return app
