# xsslab/api/deps.py
from fastapi import Request

from xsslab.repositories.events import EventStore
from xsslab.services.analytics import AnalyticsEngine
from xsslab.services.comments import CommentService
from xsslab.services.ingestion import IngestionService
from xsslab.services.retention import RetentionService


def get_event_store(request: Request) -> EventStore:
    return request.app.state.events


def get_ingestion(request: Request) -> IngestionService:
    return request.app.state.ingestion


def get_analytics(request: Request) -> AnalyticsEngine:
    return request.app.state.analytics


def get_comment_service(request: Request) -> CommentService:
    return request.app.state.comments


def get_retention(request: Request) -> RetentionService:
    return request.app.state.retention


def client_info(request: Request) -> tuple[str, str]:
    ip = getattr(request.state, "client_ip", None)
    if ip is None:
        ip = request.client.host if request.client else ""
    return ip, request.headers.get("user-agent", "")
