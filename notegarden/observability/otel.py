"""OpenTelemetry + Prometheus fallback wiring for the NoteGarden backend."""
from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any

from fastapi import FastAPI

from notegarden import config

logger = logging.getLogger("notegarden.observability")


_initialized = False
_enabled = False
_tracer: Any | None = None
_trace_provider: Any | None = None
_meter_provider: Any | None = None
_fastapi_instrumentor: Any | None = None

_sync_counter: Any | None = None
_sync_latency_hist: Any | None = None
_edge_failure_counter: Any | None = None
_unresolved_counter: Any | None = None

_prom_enabled = False
_prom_sync_counter: Any | None = None
_prom_sync_latency_hist: Any | None = None
_prom_edge_failure_counter: Any | None = None
_prom_unresolved_counter: Any | None = None


def _normalize_otlp_endpoint(base_endpoint: str, signal_path: str) -> str:
    endpoint = (base_endpoint or "").strip()
    if not endpoint:
        return ""
    if endpoint.endswith(signal_path):
        return endpoint
    if endpoint.endswith("/"):
        endpoint = endpoint[:-1]
    if endpoint.endswith("/v1"):
        return f"{endpoint}{signal_path[3:]}"
    return f"{endpoint}{signal_path}"


def _prom_labels(*, owner_id: str, **extra: str) -> dict[str, str]:
    labels = {"owner": owner_id or "unknown"}
    for key, value in extra.items():
        labels[key] = (value or "").strip() or "unknown"
    return labels


def initialize(app: FastAPI | None = None) -> None:
    global _initialized, _enabled, _tracer, _trace_provider, _meter_provider, _fastapi_instrumentor
    global _sync_counter, _sync_latency_hist, _edge_failure_counter, _unresolved_counter
    global _prom_enabled
    global _prom_sync_counter, _prom_sync_latency_hist, _prom_edge_failure_counter, _prom_unresolved_counter

    if _initialized:
        if _enabled and app and _fastapi_instrumentor:
            _fastapi_instrumentor.instrument_app(app)
        return

    _initialized = True

    if not config.OTEL_ENABLED:
        logger.info("OpenTelemetry disabled (NOTEGARDEN_OTEL_ENABLED=false)")
        return

    try:
        from opentelemetry import metrics, trace
        from opentelemetry.exporter.otlp.proto.http.metric_exporter import OTLPMetricExporter
        from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
        from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
        from opentelemetry.sdk.metrics import MeterProvider
        from opentelemetry.sdk.metrics.export import PeriodicExportingMetricReader
        from opentelemetry.sdk.resources import Resource
        from opentelemetry.sdk.trace import TracerProvider
        from opentelemetry.sdk.trace.export import BatchSpanProcessor
    except ImportError as exc:
        logger.warning("OpenTelemetry dependencies unavailable: %s", exc)
        return

    traces_endpoint = _normalize_otlp_endpoint(config.OTEL_ENDPOINT, "/v1/traces")
    metrics_endpoint = _normalize_otlp_endpoint(config.OTEL_ENDPOINT, "/v1/metrics")
    service_name = config.OTEL_SERVICE_NAME or "notegarden-backend"

    resource = Resource.create(
        {
            "service.name": service_name,
            "service.namespace": "notegarden",
        }
    )

    trace_provider = TracerProvider(resource=resource)
    trace_exporter = OTLPSpanExporter(endpoint=traces_endpoint or None)
    trace_provider.add_span_processor(BatchSpanProcessor(trace_exporter))
    trace.set_tracer_provider(trace_provider)
    tracer = trace.get_tracer("notegarden.backend")

    metric_reader = PeriodicExportingMetricReader(
        OTLPMetricExporter(endpoint=metrics_endpoint or None)
    )
    meter_provider = MeterProvider(resource=resource, metric_readers=[metric_reader])
    metrics.set_meter_provider(meter_provider)
    meter = metrics.get_meter("notegarden.backend")

    _sync_counter = meter.create_counter(
        "notegarden_backlink_syncs_total",
        unit="1",
        description="Backlink synchronizations by outcome",
    )
    _sync_latency_hist = meter.create_histogram(
        "notegarden_backlink_sync_latency_ms",
        unit="ms",
        description="Latency of backlink synchronizations",
    )
    _edge_failure_counter = meter.create_counter(
        "notegarden_edge_insert_failures_total",
        unit="1",
        description="Edges that could not be inserted during synchronization",
    )
    _unresolved_counter = meter.create_counter(
        "notegarden_unresolved_references_total",
        unit="1",
        description="Reference labels that matched no note in the owner's directory",
    )

    _trace_provider = trace_provider
    _meter_provider = meter_provider
    _tracer = tracer
    _fastapi_instrumentor = FastAPIInstrumentor()
    _enabled = True

    if app:
        _fastapi_instrumentor.instrument_app(app)

    if config.PROM_PORT > 0:
        try:
            from prometheus_client import Counter, Histogram, start_http_server

            start_http_server(config.PROM_PORT)
            _prom_enabled = True
            _prom_sync_counter = Counter(
                "notegarden_backlink_syncs_total",
                "Backlink synchronizations by outcome",
                ["result", "owner"],
            )
            _prom_sync_latency_hist = Histogram(
                "notegarden_backlink_sync_latency_ms",
                "Latency of backlink synchronizations",
                ["result", "owner"],
            )
            _prom_edge_failure_counter = Counter(
                "notegarden_edge_insert_failures_total",
                "Edges that could not be inserted during synchronization",
                ["owner"],
            )
            _prom_unresolved_counter = Counter(
                "notegarden_unresolved_references_total",
                "Reference labels that matched no note in the owner's directory",
                ["owner"],
            )
            logger.info("Prometheus fallback metrics server listening on port %s", config.PROM_PORT)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Prometheus fallback not started: %s", exc)
            _prom_enabled = False

    logger.info(
        "OpenTelemetry initialized (service=%s endpoint=%s)",
        service_name,
        config.OTEL_ENDPOINT,
    )


def shutdown(app: FastAPI | None = None) -> None:
    global _enabled
    if not _initialized:
        return
    try:
        if app and _fastapi_instrumentor:
            _fastapi_instrumentor.uninstrument_app(app)
    except Exception as exc:  # noqa: BLE001
        logger.debug("FastAPI uninstrument failed: %s", exc)
    try:
        if _meter_provider is not None:
            _meter_provider.shutdown()
    except Exception as exc:  # noqa: BLE001
        logger.debug("Meter provider shutdown failed: %s", exc)
    try:
        if _trace_provider is not None:
            _trace_provider.shutdown()
    except Exception as exc:  # noqa: BLE001
        logger.debug("Trace provider shutdown failed: %s", exc)
    _enabled = False


@contextmanager
def start_span(name: str, attributes: dict[str, Any] | None = None):
    if not _enabled or _tracer is None:
        yield None
        return
    with _tracer.start_as_current_span(name) as span:
        if attributes:
            for key, value in attributes.items():
                if value is not None:
                    span.set_attribute(key, value)
        yield span


def record_sync(result: str, duration_ms: float, *, owner_id: str) -> None:
    labels = {
        "result": result or "unknown",
        "owner_id": owner_id or "unknown",
    }
    if _enabled and _sync_counter is not None:
        _sync_counter.add(1, labels)
    if _enabled and _sync_latency_hist is not None:
        _sync_latency_hist.record(max(0.0, float(duration_ms)), labels)
    if _prom_enabled and _prom_sync_counter is not None:
        prom = _prom_labels(owner_id=owner_id, result=result)
        _prom_sync_counter.labels(**prom).inc()
    if _prom_enabled and _prom_sync_latency_hist is not None:
        prom = _prom_labels(owner_id=owner_id, result=result)
        _prom_sync_latency_hist.labels(**prom).observe(max(0.0, float(duration_ms)))


def record_edge_insert_failure(*, owner_id: str, count: int = 1) -> None:
    safe_count = max(0, int(count))
    if safe_count == 0:
        return
    if _enabled and _edge_failure_counter is not None:
        _edge_failure_counter.add(safe_count, {"owner_id": owner_id or "unknown"})
    if _prom_enabled and _prom_edge_failure_counter is not None:
        _prom_edge_failure_counter.labels(**_prom_labels(owner_id=owner_id)).inc(safe_count)


def record_unresolved_references(*, owner_id: str, count: int = 1) -> None:
    safe_count = max(0, int(count))
    if safe_count == 0:
        return
    if _enabled and _unresolved_counter is not None:
        _unresolved_counter.add(safe_count, {"owner_id": owner_id or "unknown"})
    if _prom_enabled and _prom_unresolved_counter is not None:
        _prom_unresolved_counter.labels(**_prom_labels(owner_id=owner_id)).inc(safe_count)
