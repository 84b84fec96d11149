import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.responses import JSONResponse
from starlette.middleware.cors import CORSMiddleware
from starlette.requests import Request

from api.routers.metrics import router as metrics_router
from api.transport import McpTransportAdapter
from config.env import get_settings
from dvelop_mcp import __version__
from mcp_tools.registry import ToolRegistry
from mcp_tools.server import build_mcp_http_app, build_mcp_server
from observability.metrics import MetricsMiddleware
from observability.tracing import init_tracing, instrument_fastapi_app, shutdown_tracing, start_span
from utils.logging import init_logging


def create_app() -> FastAPI:
    settings = get_settings()

    cfg_path = str(settings.logging_config_path) if settings.logging_config_path else "src/config/logging.yaml"
    init_logging(cfg_path)

    # Initialize tracing provider (no-op if disabled or otel missing)
    init_tracing(settings)

    registry = ToolRegistry()
    mcp_server = build_mcp_server(registry)
    mcp_app = build_mcp_http_app(mcp_server)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # The MCP session manager owns a task group that must run for the app's lifetime
        async with mcp_app.router.lifespan_context(mcp_app):
            # Emit startup span with version/environment attributes
            with start_span(
                "api.startup", **{"app.version": app.version, "app.environment": settings.environment}
            ):
                log = logging.getLogger("dvelop_mcp")
                log.info(
                    "api_startup",
                    extra={
                        "environment": settings.environment,
                        "version": app.version,
                        "mcp_path": settings.mcp_path,
                    },
                )
            yield
        # Graceful shutdown: flush tracing
        shutdown_tracing()

    app = FastAPI(
        title="d.velop pilot MCP server",
        description=(
            "Streamable HTTP MCP endpoint proxying the d.velop prompt, identity and task services"
        ),
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )
    app.state.tool_registry = registry
    app.state.mcp_server = mcp_server

    if settings.enable_tracing:
        instrument_fastapi_app(app)

    # CORS per settings; default open in dev, restrict in prod via APP_ALLOWED_ORIGINS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Prometheus metrics middleware (low-cardinality labels; no headers)
    if settings.enable_metrics:
        app.add_middleware(MetricsMiddleware)

    # Minimal request logging middleware: path and method only, never headers
    @app.middleware("http")
    async def _request_logging_middleware(request: Request, call_next):
        log = logging.getLogger("dvelop_mcp")
        log.info(
            "request",
            extra={
                "endpoint": request.url.path,
                "method": request.method,
            },
        )
        response = await call_next(request)
        return response

    # MCP endpoint: every method is routed to the adapter, which rejects non-POST itself
    app.add_route(settings.mcp_path, McpTransportAdapter(mcp_app), include_in_schema=False)

    if settings.enable_metrics:
        app.include_router(metrics_router, prefix="")

    @app.get("/health", response_class=JSONResponse, tags=["system"])
    async def health() -> JSONResponse:
        return JSONResponse({"status": "ok", "version": app.version})

    return app


app = create_app()
