# xsslab/metrics/__init__.py
"""
Thin re-export layer. All metrics live in xsslab.metrics.registry; this module
re-exports them for imports like `from xsslab.metrics import ...`.
"""
from .registry import (
    METRICS_REGISTRY,
    EVENTS_INGESTED,
    INGEST_FAILURES,
    REQUEST_LATENCY,
    get_metrics,
)

__all__ = [
    "METRICS_REGISTRY",
    "EVENTS_INGESTED",
    "INGEST_FAILURES",
    "REQUEST_LATENCY",
    "get_metrics",
]
