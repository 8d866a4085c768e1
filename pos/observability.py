"""
Observability plumbing shared by every entity service.

- ``MetricsRegistry`` / ``ServiceMetrics``: Prometheus request counters and
  latency histograms, registered once per service name into an injected
  ``CollectorRegistry`` (tests build their own, the app keeps one on
  ``app.state``).
- ``traced_call``: opens the per-method span, hands back a ``MethodCall``
  whose ``status`` the error classifier may overwrite, and records the
  metrics exactly once on exit, whichever path the method took.
- ``configure_logging`` / ``configure_tracing``: process bootstrap helpers
  called from the FastAPI lifespan.
"""
import json
import logging
import sys
import time
import uuid
from contextlib import asynccontextmanager
from dataclasses import dataclass, field

from opentelemetry import trace
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.trace import Span, Tracer
from prometheus_client import CollectorRegistry, Counter, Histogram

logger = logging.getLogger(__name__)

STATUS_SUCCESS = "success"


# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

class StructuredFormatter(logging.Formatter):
    """Render ``extra={"fields": {...}}`` as a trailing JSON object."""

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        fields = getattr(record, "fields", None)
        if fields:
            message = f"{message} {json.dumps(fields, default=str, sort_keys=True)}"
        return message


def configure_logging(level: str = "INFO") -> None:
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        StructuredFormatter("%(asctime)s %(levelname)s %(name)s %(message)s")
    )
    root = logging.getLogger()
    root.handlers[:] = [handler]
    root.setLevel(level.upper())


# ---------------------------------------------------------------------------
# Tracing
# ---------------------------------------------------------------------------

def configure_tracing(service_name: str, endpoint: str | None) -> TracerProvider | None:
    """
    Install a global SDK tracer provider exporting over OTLP/HTTP.

    Without an endpoint the API's no-op provider stays in place and spans
    cost next to nothing.
    """
    if not endpoint:
        return None

    from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter

    provider = TracerProvider(resource=Resource.create({"service.name": service_name}))
    provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter(endpoint=endpoint)))
    trace.set_tracer_provider(provider)
    logger.info("Tracing enabled, exporting to %s", endpoint)
    return provider


def generate_trace_id(prefix: str) -> str:
    """Mint a correlation id such as ``FAILED_FIND_PRODUCTS-3f2c...``."""
    return f"{prefix}-{uuid.uuid4().hex}"


# ---------------------------------------------------------------------------
# Metrics
# ---------------------------------------------------------------------------

class ServiceMetrics:
    """Request counter ``{method, status}`` and latency histogram ``{method}``."""

    def __init__(self, service: str, registry: CollectorRegistry) -> None:
        self.service = service
        self.requests = Counter(
            f"{service}_requests_total",
            f"Total number of requests to the {service}",
            ["method", "status"],
            registry=registry,
        )
        self.duration = Histogram(
            f"{service}_request_duration_seconds",
            f"Histogram of request durations for the {service}",
            ["method"],
            registry=registry,
        )

    def record(self, method: str, status: str, started: float) -> None:
        self.requests.labels(method=method, status=status).inc()
        self.duration.labels(method=method).observe(time.perf_counter() - started)


class MetricsRegistry:
    """
    Owns a ``CollectorRegistry`` and memoises one ``ServiceMetrics`` per
    service name, so per-request service instances share their collectors.
    """

    def __init__(self, registry: CollectorRegistry | None = None) -> None:
        self.registry = registry if registry is not None else CollectorRegistry()
        self._services: dict[str, ServiceMetrics] = {}

    def for_service(self, service: str) -> ServiceMetrics:
        metrics = self._services.get(service)
        if metrics is None:
            metrics = ServiceMetrics(service, self.registry)
            self._services[service] = metrics
        return metrics


# ---------------------------------------------------------------------------
# Per-call context
# ---------------------------------------------------------------------------

@dataclass
class MethodCall:
    method: str
    span: Span
    status: str = STATUS_SUCCESS
    started: float = field(default_factory=time.perf_counter)

    def log_success(self, message: str, **fields) -> None:
        self.span.add_event(message)
        logger.debug(message, extra={"fields": {"method": self.method, **fields}})


@asynccontextmanager
async def traced_call(tracer: Tracer, metrics: ServiceMetrics, method: str, **attributes):
    """
    Span + metrics envelope around one service method.

    Only the error classifier marks the span as failed.  Exceptions that
    escape without being classified (cancellation included) are still
    counted, under ``status="unhandled"`` unless the call already carries
    a classified status.
    """
    with tracer.start_as_current_span(
        method, record_exception=False, set_status_on_exception=False
    ) as span:
        for key, value in attributes.items():
            if value is not None:
                span.set_attribute(key, value)
        span.add_event(f"Start: {method}")
        logger.debug("Start: %s", method)

        call = MethodCall(method=method, span=span)
        try:
            yield call
        except BaseException:
            if call.status == STATUS_SUCCESS:
                call.status = "unhandled"
            raise
        finally:
            metrics.record(method, call.status, call.started)
