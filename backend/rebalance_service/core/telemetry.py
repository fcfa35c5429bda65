"""OpenTelemetry wiring for the rebalance service."""

from __future__ import annotations

import logging
from typing import Any

from fastapi import FastAPI
from opentelemetry import metrics, trace
from opentelemetry._logs import set_logger_provider
from opentelemetry.exporter.otlp.proto.grpc._log_exporter import OTLPLogExporter
from opentelemetry.exporter.otlp.proto.grpc.metric_exporter import OTLPMetricExporter
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.httpx import HTTPXClientInstrumentor
from opentelemetry.instrumentation.logging import LoggingInstrumentor
from opentelemetry.sdk._logs import LoggerProvider
from opentelemetry.sdk._logs.export import BatchLogRecordProcessor
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import PeriodicExportingMetricReader
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.sdk.trace.sampling import ParentBased, TraceIdRatioBased
from opentelemetry.semconv.resource import ResourceAttributes

from rebalance_service.config import AppSettings

logger = logging.getLogger(__name__)

_METRIC_EXPORT_INTERVAL_MS = 10000
_PROVIDERS: dict[str, Any] = {}


def _attach_trace_ids(span: Any, record: logging.LogRecord) -> None:
    span_ctx = span.get_span_context() if span is not None else None
    if span_ctx is None or not span_ctx.is_valid:
        return
    record.trace_id = format(span_ctx.trace_id, "032x")
    record.span_id = format(span_ctx.span_id, "016x")


def setup_telemetry(app: FastAPI, settings: AppSettings) -> bool:
    """Export traces, metrics and logs over OTLP when enabled in settings.

    Instruments the FastAPI app and every outbound httpx call, so store and
    market-data requests show up as children of the API request that
    triggered a refresh. Returns whether telemetry is active.
    """

    if _PROVIDERS:
        return True
    if not settings.telemetry_enabled:
        logger.info("Telemetry disabled via configuration")
        return False

    resource = Resource.create(
        {
            ResourceAttributes.SERVICE_NAME: settings.telemetry_service_name or settings.app_name,
            ResourceAttributes.SERVICE_NAMESPACE: "rebalance-advisor",
            ResourceAttributes.SERVICE_VERSION: app.version,
        }
    )
    exporter_options: dict[str, Any] = {"insecure": settings.telemetry_otlp_insecure}
    if settings.telemetry_otlp_endpoint:
        exporter_options["endpoint"] = settings.telemetry_otlp_endpoint

    tracer_provider = TracerProvider(
        resource=resource,
        sampler=ParentBased(TraceIdRatioBased(settings.telemetry_sample_ratio)),
    )
    tracer_provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter(**exporter_options)))
    trace.set_tracer_provider(tracer_provider)

    meter_provider = MeterProvider(
        resource=resource,
        metric_readers=[
            PeriodicExportingMetricReader(
                OTLPMetricExporter(**exporter_options),
                export_interval_millis=_METRIC_EXPORT_INTERVAL_MS,
            )
        ],
    )
    metrics.set_meter_provider(meter_provider)

    logger_provider = LoggerProvider(resource=resource)
    logger_provider.add_log_record_processor(BatchLogRecordProcessor(OTLPLogExporter(**exporter_options)))
    set_logger_provider(logger_provider)
    LoggingInstrumentor().instrument(set_logging_format=False, log_hook=_attach_trace_ids)

    FastAPIInstrumentor.instrument_app(app, tracer_provider=tracer_provider, meter_provider=meter_provider)
    HTTPXClientInstrumentor().instrument(tracer_provider=tracer_provider, meter_provider=meter_provider)

    _PROVIDERS.update(tracer=tracer_provider, meter=meter_provider, logs=logger_provider)
    logger.info("Telemetry enabled, exporting to %s", settings.telemetry_otlp_endpoint or "default OTLP endpoint")
    return True


def shutdown_telemetry() -> None:
    """Flush and stop the exporters started by :func:`setup_telemetry`."""

    for name, provider in list(_PROVIDERS.items()):
        try:
            provider.shutdown()
        except Exception:  # noqa: BLE001 - exporter shutdown must not block app exit
            logger.warning("Failed to shut down %s provider", name, exc_info=True)
    _PROVIDERS.clear()


__all__ = ["setup_telemetry", "shutdown_telemetry"]
