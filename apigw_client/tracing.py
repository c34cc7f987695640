"""OpenTelemetry tracing for the sign-and-invoke workflow.

Spans are created for credential resolution, role assumption, signing and the
endpoint call. When ``init_tracing`` is never called, every span goes to the
no-op global provider, so library users pay nothing for it.

Exporters:
- OTLP over gRPC (X-Ray through the ADOT collector) when an endpoint is set
- Console, for local debugging

The X-Ray propagator injects an ``X-Amzn-Trace-Id`` header into outbound httpx
requests. That happens after signing and the header is never signed.
"""

import os
from functools import wraps
from typing import Any, Callable, TypeVar, ParamSpec

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.httpx import HTTPXClientInstrumentor
from opentelemetry.propagate import set_global_textmap
from opentelemetry.propagators.aws import AwsXRayPropagator
from opentelemetry.sdk.extension.aws.trace import AwsXRayIdGenerator
from opentelemetry.sdk.resources import Resource, SERVICE_NAME, SERVICE_VERSION
from opentelemetry.sdk.trace import SpanProcessor, TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter
from opentelemetry.trace import Status, StatusCode

from . import __version__

P = ParamSpec("P")
T = TypeVar("T")

DEFAULT_SERVICE_NAME = "apigw-sigv4-client"

_tracer: trace.Tracer | None = None
_initialized = False


def _span_processors(otlp_endpoint: str | None, console: bool) -> list[SpanProcessor]:
    processors: list[SpanProcessor] = []
    if otlp_endpoint:
        processors.append(BatchSpanProcessor(OTLPSpanExporter(endpoint=otlp_endpoint, insecure=True)))
    if console:
        processors.append(BatchSpanProcessor(ConsoleSpanExporter()))
    return processors


def init_tracing(
    service_name: str = DEFAULT_SERVICE_NAME,
    otlp_endpoint: str | None = None,
    enable_console_export: bool = False,
) -> trace.Tracer:
    """Install an X-Ray compatible tracer provider and instrument httpx.

    Calling it again returns the tracer from the first call.

    Args:
        service_name: ``service.name`` resource attribute
        otlp_endpoint: OTLP gRPC collector, e.g. "http://localhost:4317";
            falls back to OTEL_EXPORTER_OTLP_ENDPOINT
        enable_console_export: Also print finished spans (OTEL_CONSOLE_EXPORT=true does the same)

    Returns:
        The workflow tracer
    """
    global _tracer, _initialized

    if _initialized and _tracer is not None:
        return _tracer

    provider = TracerProvider(
        resource=Resource.create({
            SERVICE_NAME: service_name,
            SERVICE_VERSION: __version__,
            "cloud.provider": "aws",
            "deployment.environment": os.getenv("ENVIRONMENT", "development"),
        }),
        id_generator=AwsXRayIdGenerator(),
    )
    console = enable_console_export or os.getenv("OTEL_CONSOLE_EXPORT", "").lower() == "true"
    for processor in _span_processors(otlp_endpoint or os.getenv("OTEL_EXPORTER_OTLP_ENDPOINT"), console):
        provider.add_span_processor(processor)

    set_global_textmap(AwsXRayPropagator())
    trace.set_tracer_provider(provider)
    HTTPXClientInstrumentor().instrument()

    _tracer = trace.get_tracer(service_name, __version__)
    _initialized = True
    return _tracer


def shutdown_tracing() -> None:
    """Flush pending spans; a no-op when tracing was never initialized."""
    if not _initialized:
        return
    provider = trace.get_tracer_provider()
    shutdown = getattr(provider, "shutdown", None)
    if shutdown is not None:
        shutdown()


def get_tracer() -> trace.Tracer:
    """Return the workflow tracer, or a global (no-op until initialized) one."""
    if _tracer is None:
        return trace.get_tracer(DEFAULT_SERVICE_NAME)
    return _tracer


def traced(
    name: str | None = None,
    attributes: dict[str, Any] | None = None,
) -> Callable[[Callable[P, T]], Callable[P, T]]:
    """Run the decorated function inside a span.

    The span is marked OK on return. An exception leaving the function is
    recorded on the span, which is then marked ERROR.

    Args:
        name: Span name, the function name by default
        attributes: Attributes set when the span starts
    """
    def decorator(func: Callable[P, T]) -> Callable[P, T]:
        span_name = name or func.__name__

        @wraps(func)
        def wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
            with get_tracer().start_as_current_span(
                span_name,
                attributes=attributes,
                record_exception=True,
                set_status_on_exception=True,
            ) as span:
                result = func(*args, **kwargs)
                span.set_status(Status(StatusCode.OK))
            return result

        return wrapper

    return decorator


def add_request_span_attributes(
    span: trace.Span,
    method: str | None = None,
    url: str | None = None,
    region: str | None = None,
    service: str | None = None,
    status_code: int | None = None,
) -> None:
    """Annotate a span with the signed request (HTTP semantic conventions where they exist)."""
    values = {
        "http.request.method": method,
        "url.full": url,
        "aws.region": region,
        "aws.signing.service": service,
    }
    for key, value in values.items():
        if value:
            span.set_attribute(key, value)
    if status_code is not None:
        span.set_attribute("http.response.status_code", status_code)
