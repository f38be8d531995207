"""XSS lab activity core: event ingestion, classification and analytics."""

__version__ = "0.1.0"
