from __future__ import annotations
from prometheus_client import CollectorRegistry, Counter, Histogram

from xsslab.security.rules import Severity

METRICS_REGISTRY = CollectorRegistry()

EVENTS_INGESTED = Counter(
    "events_ingested_total",
    "Events persisted by the ingestion service",
    ["category", "severity"],
    registry=METRICS_REGISTRY,
)
INGEST_FAILURES = Counter(
    "ingest_failures_total",
    "Ingestion calls downgraded to a missing id",
    ["reason"],
    registry=METRICS_REGISTRY,
)
REQUEST_LATENCY = Histogram(
    "request_latency_seconds",
    "Request processing time in seconds",
    ["route", "method", "status"],
    registry=METRICS_REGISTRY,
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
)

# export zero-valued series so dashboards see them before the first event
for _sev in Severity:
    EVENTS_INGESTED.labels(category="home", severity=_sev.value).inc(0)
for _reason in ("storage", "timeout", "validation"):
    INGEST_FAILURES.labels(reason=_reason).inc(0)


def get_metrics() -> dict[str, object]:
    return {
        "registry": METRICS_REGISTRY,
        "ingested": EVENTS_INGESTED,
        "failures": INGEST_FAILURES,
        "latency": REQUEST_LATENCY,
    }
