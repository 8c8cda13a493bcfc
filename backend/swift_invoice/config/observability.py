"""
Tracing spans and domain counters for invoice operations.

OpenTelemetry carries spans and the per-operation counters; a native
prometheus_client counter backs /metrics so scrapes work without an OTEL
exporter. Span start/finish is mirrored to structlog.
"""

import logging
from contextlib import contextmanager
from typing import Iterator

import structlog
from opentelemetry import trace, metrics
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter
from prometheus_client import Counter as _PrcCounter

from .. import __version__
from .settings import get_settings

logger = logging.getLogger(__name__)

SERVICE_NAME = "swift-invoice"

_tracer = trace.get_tracer("swift_invoice")
_log = structlog.get_logger("swift_invoice.trace")


def setup_observability(environment: str = "development") -> None:
    """Install tracer and meter providers; spans go to the console only when ENABLE_TRACING is set."""
    export_spans = get_settings().ENABLE_TRACING
    resource = Resource.create({
        "service.name": SERVICE_NAME,
        "service.version": __version__,
        "deployment.environment": environment,
    })
    tracer_provider = TracerProvider(resource=resource)
    if export_spans:
        tracer_provider.add_span_processor(BatchSpanProcessor(ConsoleSpanExporter()))
    trace.set_tracer_provider(tracer_provider)
    metrics.set_meter_provider(MeterProvider(resource=resource))
    _log.info("observability_configured", environment=environment, span_export=export_spans)


@contextmanager
def trace_operation(operation_name: str, **attributes) -> Iterator[trace.Span]:
    """Run a block inside a span named after the operation.

    Exceptions are recorded on the span, logged and re-raised.
    """
    with _tracer.start_as_current_span(
        operation_name, attributes=attributes, record_exception=False, set_status_on_exception=False
    ) as span:
        _log.debug("operation_started", operation=operation_name, **attributes)
        try:
            yield span
        except Exception as exc:
            span.record_exception(exc)
            span.set_status(trace.Status(trace.StatusCode.ERROR, str(exc)))
            _log.error("operation_failed", operation=operation_name,
                       error_type=type(exc).__name__, error_message=str(exc), **attributes)
            raise
        span.set_status(trace.Status(trace.StatusCode.OK))
        _log.debug("operation_completed", operation=operation_name, **attributes)


# No-op proxy until setup_observability installs a MeterProvider
_domain_meter = metrics.get_meter("swift_invoice.domain")

_COUNTERS = {
    "invoice_create_total": "Invoices created, labelled by draft flag",
    "invoice_update_total": "Invoices replaced through PUT",
    "invoice_status_total": "Invoice status changes, labelled by new status",
    "invoice_delete_total": "Invoices hard-deleted",
    "invoice_download_total": "Invoice PDFs rendered for download",
    "auth_login_total": "Successful logins",
    "auth_login_failed_total": "Rejected login attempts",
}
_counters = {name: _domain_meter.create_counter(name=name, description=desc)
             for name, desc in _COUNTERS.items()}

invoice_create_counter = _counters["invoice_create_total"]
invoice_update_counter = _counters["invoice_update_total"]
invoice_status_counter = _counters["invoice_status_total"]
invoice_delete_counter = _counters["invoice_delete_total"]
invoice_download_counter = _counters["invoice_download_total"]
auth_login_counter = _counters["auth_login_total"]
auth_login_failed_counter = _counters["auth_login_failed_total"]

INVOICE_OPERATIONS = _PrcCounter(
    "invoice_operations_total",
    "Invoice operations by type",
    ["operation"],
)


def record_invoice_operation(operation: str) -> None:
    INVOICE_OPERATIONS.labels(operation).inc()


__all__ = [
    "setup_observability",
    "trace_operation",
    "invoice_create_counter",
    "invoice_update_counter",
    "invoice_status_counter",
    "invoice_delete_counter",
    "invoice_download_counter",
    "auth_login_counter",
    "auth_login_failed_counter",
    "record_invoice_operation",
]
