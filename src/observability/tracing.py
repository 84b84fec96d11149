from __future__ import annotations

import logging
import os
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

# OpenTelemetry ships in the optional "tracing" extra; it is imported inside the functions below
# so the server starts without it.
from fastapi import FastAPI

from config.env import is_tracing_enabled
from config.settings import AppSettings

SERVICE_NAME = "dvelop-pilot-mcp"
DEFAULT_OTLP_TRACES_ENDPOINT = "http://localhost:4318/v1/traces"

_LOGGER = logging.getLogger("dvelop_mcp")


def resolve_otlp_endpoint(environ: dict[str, str] | None = None) -> str:
    """
    Pick the OTLP/HTTP traces endpoint from the standard OTEL_* variables.

    OTEL_EXPORTER_OTLP_TRACES_ENDPOINT is used as given. OTEL_EXPORTER_OTLP_ENDPOINT is treated
    as a collector base URL and gets '/v1/traces' appended. Without either, the local collector
    default is returned.
    """
    env = os.environ if environ is None else environ
    explicit = (env.get("OTEL_EXPORTER_OTLP_TRACES_ENDPOINT") or "").strip()
    if explicit:
        return explicit
    base = (env.get("OTEL_EXPORTER_OTLP_ENDPOINT") or "").strip().rstrip("/")
    if not base:
        return DEFAULT_OTLP_TRACES_ENDPOINT
    return base if base.endswith("/v1/traces") else f"{base}/v1/traces"


def init_tracing(settings: AppSettings) -> None:
    """
    Install a TracerProvider exporting over OTLP/HTTP when APP_ENABLE_TRACING is set.

    Missing OpenTelemetry packages are logged and tracing stays off.
    """
    if not settings.enable_tracing:
        return

    try:
        from opentelemetry import trace
        from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
        from opentelemetry.sdk.resources import Resource
        from opentelemetry.sdk.trace import TracerProvider
        from opentelemetry.sdk.trace.export import BatchSpanProcessor
    except ImportError as e:
        _LOGGER.warning("tracing.disabled: opentelemetry not installed (%s)", e)
        return

    provider = TracerProvider(
        resource=Resource.create(
            attributes={
                "service.name": SERVICE_NAME,
                "deployment.environment": settings.environment,
                "upstream.origin": settings.upstream_origin,
            }
        )
    )
    trace.set_tracer_provider(provider)

    endpoint = resolve_otlp_endpoint()
    try:
        provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter(endpoint=endpoint, timeout=5)))
    except Exception as e:
        _LOGGER.warning("tracing.exporter_failed: endpoint=%s error=%s", endpoint, e)
        return
    _LOGGER.info("tracing.enabled: endpoint=%s", endpoint)


def instrument_fastapi_app(app: FastAPI) -> None:
    """Attach FastAPI server spans; /metrics and /health are left out."""
    try:
        from opentelemetry import trace
        from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
    except ImportError as e:
        _LOGGER.debug("tracing.fastapi_unavailable: %s", e)
        return

    FastAPIInstrumentor.instrument_app(
        app,
        tracer_provider=trace.get_tracer_provider(),
        excluded_urls="/metrics,/health",
    )


def tracer() -> Any | None:
    try:
        from opentelemetry import trace
    except ImportError:
        return None
    return trace.get_tracer(SERVICE_NAME)


@contextmanager
def start_span(name: str, **attributes: Any) -> Iterator[Any | None]:
    """
    Open a span named `name` when tracing is enabled, yielding it (or None when disabled).

    Attribute values should be low-cardinality and must never include credentials.
    """
    tr = tracer() if is_tracing_enabled() else None
    if tr is None:
        yield None
        return
    with tr.start_as_current_span(name) as span:
        for key, value in attributes.items():
            if value is not None:
                span.set_attribute(key, value)
        yield span


def shutdown_tracing() -> None:
    """Flush pending spans on application shutdown."""
    try:
        from opentelemetry import trace
    except ImportError:
        return

    provider = trace.get_tracer_provider()
    # The default proxy provider has no shutdown()
    shutdown = getattr(provider, "shutdown", None)
    if shutdown is None:
        return
    try:
        shutdown()
    except Exception as e:
        _LOGGER.debug("tracing.shutdown_failed: %s", e)


__all__ = [
    "SERVICE_NAME",
    "init_tracing",
    "instrument_fastapi_app",
    "resolve_otlp_endpoint",
    "shutdown_tracing",
    "start_span",
    "tracer",
]
