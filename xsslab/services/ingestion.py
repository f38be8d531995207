# xsslab/services/ingestion.py
from __future__ import annotations

import logging
from typing import Callable, Optional

from xsslab.errors import StorageTimeout, StorageUnavailable, ValidationError
from xsslab.metrics import EVENTS_INGESTED, INGEST_FAILURES
from xsslab.repositories.events import EventStore, NewEvent
from xsslab.security.rules import Classification, classify

logger = logging.getLogger(__name__)

DEFAULT_MAX_PAYLOAD_LENGTH = 500

ACTION_XSS_ATTEMPTED = "xss_attempted"
ACTION_XSS_TRIGGERED = "xss_triggered"


class IngestionService:
    """
    Classify and persist one event per call.

    ``record`` is best-effort: a storage outage, a timeout or a rejected
    input is logged and reported as ``None``. It never raises into the
    request handler that called it.
    """

    def __init__(
        self,
        store: EventStore,
        *,
        max_payload_length: int = DEFAULT_MAX_PAYLOAD_LENGTH,
        timeout: Optional[float] = None,
        classifier: Callable[[str], Classification] = classify,
    ):
        self.store = store
        self.max_payload_length = max_payload_length
        self.timeout = timeout
        self.classifier = classifier

    def truncate(self, payload: str) -> str:
        if self.max_payload_length and len(payload) > self.max_payload_length:
            return payload[: self.max_payload_length]
        return payload

    async def record(
        self,
        category: str,
        action: str,
        payload: Optional[str] = "",
        actor_address: Optional[str] = "",
        actor_agent: Optional[str] = "",
        session_id: Optional[str] = "",
        *,
        timeout: Optional[float] = None,
    ) -> Optional[int]:
        text = "" if payload is None else str(payload)
        # classify before truncation so a trigger past the cut still counts
        severity, tag = self.classifier(text)
        event = NewEvent(
            category=category,
            action=action,
            payload=self.truncate(text),
            severity=severity,
            tag=tag,
            actor_address=actor_address or "",
            actor_agent=actor_agent or "",
            session_id=session_id or "",
        )
        try:
            event_id = await self.store.append(event, timeout=self.timeout if timeout is None else timeout)
        except StorageTimeout as exc:
            INGEST_FAILURES.labels(reason="timeout").inc()
            logger.warning("ingest timed out category=%s action=%s: %s", category, action, exc)
            return None
        except StorageUnavailable as exc:
            INGEST_FAILURES.labels(reason="storage").inc()
            logger.warning("ingest failed category=%s action=%s: %s", category, action, exc)
            return None
        except ValidationError as exc:
            INGEST_FAILURES.labels(reason="validation").inc()
            logger.warning("ingest rejected category=%r action=%r: %s", category, action, exc)
            return None

        EVENTS_INGESTED.labels(category=category, severity=severity.value).inc()
        logger.debug("event %s recorded category=%s severity=%s tag=%s", event_id, category, severity.value, tag)
        return event_id

    async def record_attempt(
        self,
        category: str,
        payload: str,
        *,
        triggered: bool = False,
        notes: str = "",
        actor_address: Optional[str] = "",
        actor_agent: Optional[str] = "",
        session_id: Optional[str] = "",
        timeout: Optional[float] = None,
    ) -> Optional[int]:
        """Record a client-reported XSS attempt, optionally annotated with notes."""
        action = ACTION_XSS_TRIGGERED if triggered else ACTION_XSS_ATTEMPTED
        text = payload or ""
        if notes:
            text = f"{text} | Notes: {notes}"
        return await self.record(
            category, action, text, actor_address, actor_agent, session_id, timeout=timeout
        )
