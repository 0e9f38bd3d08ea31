import asyncio
import logging
import secrets
import string
import time
from contextlib import asynccontextmanager
from typing import Dict, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from opentelemetry import trace
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.trace import Span

from user_api.dependencies import DatabaseDependency, Dependency, SupportsAuthenticate
from user_api.health import check_health
from user_api.lifecycle import ShutdownHandler
from user_api.pipeline import TelemetryPipeline
from user_api.settings import Settings
from user_api.tracing import run_in_span

logger = logging.getLogger(__name__)

CORRELATION_HEADER = "x-correlation-id"
_BASE36 = string.digits + string.ascii_lowercase


def new_correlation_id() -> str:
    suffix = "".join(secrets.choice(_BASE36) for _ in range(8))
    return f"{int(time.time() * 1000)}-{suffix}"


def create_app(
    settings: Settings,
    pipeline: TelemetryPipeline,
    *,
    database: Optional[SupportsAuthenticate] = None,
    shutdown: Optional[ShutdownHandler] = None,
) -> FastAPI:
    """Create the HTTP app around an already initialized telemetry pipeline."""

    components: Dict[str, Dependency] = {}
    if database is not None:
        components["database"] = DatabaseDependency(database)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if shutdown is not None:
            shutdown.install(asyncio.get_running_loop())
        yield
        if shutdown is not None:
            await shutdown.trigger()

    app = FastAPI(title="User API", version="1.0", lifespan=lifespan)
    app.state.pipeline = pipeline

    @app.middleware("http")
    async def correlation_id(request: Request, call_next):
        cid = (
            request.headers.get(CORRELATION_HEADER)
            or request.headers.get("x-request-id")
            or new_correlation_id()
        )
        request.state.correlation_id = cid
        try:
            response = await call_next(request)
        except Exception as e:
            logger.error("Error handling %s %s", request.method, request.url.path, exc_info=e)
            response = JSONResponse(
                {"error": "Internal Server Error", "message": str(e)},
                status_code=500,
            )
        response.headers[CORRELATION_HEADER] = cid
        return response

    @app.get("/health")
    async def health(request: Request):
        async def report(span: Span) -> JSONResponse:
            snapshot = await check_health(pipeline.tracer, components, parent=span)
            return JSONResponse(snapshot.to_dict())

        # Nest under the server span from HTTP instrumentation, if any
        request_span = trace.get_current_span()
        return await run_in_span(
            pipeline.tracer,
            "Health Check API",
            report,
            {
                "http.method": "GET",
                "http.route": "/health",
                "operation.type": "health_check",
                "http.correlation_id": getattr(request.state, "correlation_id", None),
            },
            parent=request_span if request_span.get_span_context().is_valid else None,
        )

    if settings.http_instrumentation_enabled:
        FastAPIInstrumentor.instrument_app(app, tracer_provider=pipeline.provider)

    return app
