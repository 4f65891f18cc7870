"""Telemetry: structured logs, OpenTelemetry traces and Prometheus counters."""

import logging
import sys

import structlog
from opentelemetry import metrics, trace
from opentelemetry.exporter.otlp.proto.grpc.metric_exporter import OTLPMetricExporter
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.sqlalchemy import SQLAlchemyInstrumentor
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import PeriodicExportingMetricReader
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from prometheus_client import CollectorRegistry, Counter, Gauge, Histogram, generate_latest

from .config import settings

SERVICE_NAME = "resort-booking-api"
SERVICE_VERSION = "1.0.0"

REGISTRY = CollectorRegistry()

REQUESTS = Counter(
    "http_requests_total", "HTTP requests served", ["method", "endpoint", "status_code"], registry=REGISTRY
)
REQUEST_SECONDS = Histogram(
    "http_request_duration_seconds", "HTTP request latency", ["method", "endpoint"], registry=REGISTRY
)
QUOTES = Counter("price_quotes_total", "Price quotes computed", registry=REGISTRY)
BOOKINGS = Counter("bookings_created_total", "Bookings written", ["source", "kind"], registry=REGISTRY)
CONFLICTS = Counter("booking_conflicts_total", "Reservations refused because a room was taken", registry=REGISTRY)
REDEMPTIONS = Counter("voucher_redemptions_total", "Vouchers consumed by reservations", registry=REGISTRY)
VOUCHER_REJECTS = Counter("voucher_rejections_total", "Voucher codes refused", ["code"], registry=REGISTRY)
TRANSITIONS = Counter(
    "booking_status_transitions_total", "Status and payment changes", ["field", "value"], registry=REGISTRY
)
THROTTLED = Counter("rate_limited_requests_total", "Requests refused by the limiter", ["endpoint"], registry=REGISTRY)
EXPIRED = Counter("bookings_expired_total", "Pending bookings expired", registry=REGISTRY)
PENDING = Gauge("bookings_pending", "Pending bookings at the last expiry sweep", registry=REGISTRY)


def _otel_ids(logger, method_name, event_dict):
    span = trace.get_current_span()
    if span.is_recording():
        ctx = span.get_span_context()
        event_dict["trace_id"] = format(ctx.trace_id, "032x")
        event_dict["span_id"] = format(ctx.span_id, "016x")
    return event_dict


def setup_structured_logging() -> None:
    """
    Route both structlog and stdlib ``logging`` through one structlog renderer.

    Console output in development, one JSON object per line elsewhere. Fields
    passed as ``extra=`` on stdlib calls become keys of the event.
    """
    shared = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.ExtraAdder(),
        _otel_ids,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
    ]
    renderer = structlog.dev.ConsoleRenderer() if settings.debug else structlog.processors.JSONRenderer()

    structlog.configure(
        processors=[*shared, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            structlog.processors.format_exc_info,
            renderer,
        ],
    ))

    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(settings.log_level)


def _resource() -> Resource:
    return Resource.create({
        "service.name": SERVICE_NAME,
        "service.version": SERVICE_VERSION,
        "deployment.environment": settings.environment,
    })


def setup_tracing():
    """Install the tracer provider; spans leave the process only when an OTLP endpoint is set."""
    provider = TracerProvider(resource=_resource())
    if settings.otlp_endpoint:
        provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter(endpoint=settings.otlp_endpoint)))
    trace.set_tracer_provider(provider)
    return trace.get_tracer(__name__)


def setup_metrics():
    if settings.otlp_endpoint:
        reader = PeriodicExportingMetricReader(OTLPMetricExporter(endpoint=settings.otlp_endpoint))
        metrics.set_meter_provider(MeterProvider(resource=_resource(), metric_readers=[reader]))
    return metrics.get_meter(__name__)


def instrument_fastapi(app) -> None:
    FastAPIInstrumentor.instrument_app(app, excluded_urls="health,metrics")


def instrument_sqlalchemy(engine) -> None:
    SQLAlchemyInstrumentor().instrument(engine=engine.sync_engine)


class MetricsCollector:
    """Named hooks the services call; keeps Prometheus label handling in one place."""

    def record_request(self, method: str, endpoint: str, status_code: int, duration: float) -> None:
        REQUESTS.labels(method, endpoint, str(status_code)).inc()
        REQUEST_SECONDS.labels(method, endpoint).observe(duration)

    def record_quote(self) -> None:
        QUOTES.inc()

    def record_booking_created(self, source: str, kind: str, count: int = 1) -> None:
        BOOKINGS.labels(source, kind).inc(count)

    def record_booking_conflict(self) -> None:
        CONFLICTS.inc()

    def record_voucher_redeemed(self) -> None:
        REDEMPTIONS.inc()

    def record_voucher_rejected(self, code: str) -> None:
        VOUCHER_REJECTS.labels(code).inc()

    def record_transition(self, field: str, value: str) -> None:
        TRANSITIONS.labels(field, value).inc()

    def record_rate_limited(self, endpoint: str) -> None:
        THROTTLED.labels(endpoint).inc()

    def record_bookings_expired(self, count: int) -> None:
        EXPIRED.inc(count)

    def set_pending_bookings(self, count: int) -> None:
        PENDING.set(count)


def get_prometheus_metrics() -> bytes:
    return generate_latest(REGISTRY)


metrics_collector = MetricsCollector()
