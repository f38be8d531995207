# xsslab/main.py
import logging
from contextlib import asynccontextmanager
from typing import Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from fastapi import FastAPI, Request
from starlette.responses import JSONResponse

from xsslab import __version__
from xsslab.api.routes_admin import router as admin_router
from xsslab.api.routes_comments import router as comments_router
from xsslab.api.routes_events import router as events_router
from xsslab.api.routes_metrics import router as metrics_router
from xsslab.api.routes_stats import router as stats_router
from xsslab.core.settings import Settings, get_settings
from xsslab.db.session import Database
from xsslab.errors import NotFound, StorageTimeout, StorageUnavailable, ValidationError
from xsslab.metrics import get_metrics
from xsslab.observability.middleware_latency import LatencyMiddleware
from xsslab.repositories.base import Clock, utcnow
from xsslab.repositories.comments import CommentStore
from xsslab.repositories.events import EventStore
from xsslab.security.middleware_activity import ActivityLogMiddleware
from xsslab.services.analytics import AnalyticsEngine
from xsslab.services.comments import CommentService
from xsslab.services.ingestion import IngestionService
from xsslab.services.retention import RetentionService

logger = logging.getLogger(__name__)


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def wire_services(app: FastAPI, db: Database, settings: Settings, clock: Clock = utcnow) -> None:
    """Build every store and service around one Database handle and pin them on app.state."""
    timeout = settings.STORAGE_TIMEOUT_SEC or None
    events = EventStore(db, clock=clock, timeout=timeout)
    comments = CommentStore(db, clock=clock, timeout=timeout)
    ingestion = IngestionService(events, max_payload_length=settings.MAX_PAYLOAD_LENGTH)

    app.state.db = db
    app.state.events = events
    app.state.ingestion = ingestion
    app.state.analytics = AnalyticsEngine(events)
    app.state.comments = CommentService(comments, ingestion)
    app.state.retention = RetentionService(events, comments)


async def _retention_job(app: FastAPI) -> None:
    result = await app.state.retention.purge_older_than(app.state.settings.RETENTION_DAYS)
    logger.info("nightly retention: %s", result.message)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings: Settings = app.state.settings
    if settings.AUTO_CREATE_SCHEMA:
        await app.state.db.create_all()
    try:
        await app.state.retention.seed_initial()
    except StorageUnavailable as exc:
        logger.error("initial comment seeding failed: %s", exc)

    scheduler = None
    if settings.SCHEDULER_ENABLED:
        scheduler = AsyncIOScheduler()
        scheduler.add_job(
            _retention_job,
            CronTrigger(hour=settings.RETENTION_CRON_HOUR, minute=settings.RETENTION_CRON_MINUTE),
            args=[app],
        )
        scheduler.start()
    app.state.scheduler = scheduler
    logger.info("xss lab core started (env=%s)", settings.APP_ENV)
    try:
        yield
    finally:
        if scheduler:
            scheduler.shutdown(wait=False)
        await app.state.db.dispose()


def _error(status: int, exc: Exception) -> JSONResponse:
    return JSONResponse({"ok": False, "error": exc.__class__.__name__, "detail": str(exc)}, status_code=status)


def register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(ValidationError)
    async def _validation(request: Request, exc: ValidationError):
        return _error(422, exc)

    @app.exception_handler(NotFound)
    async def _not_found(request: Request, exc: NotFound):
        return _error(404, exc)

    @app.exception_handler(StorageTimeout)
    async def _timeout(request: Request, exc: StorageTimeout):
        return _error(504, exc)

    @app.exception_handler(StorageUnavailable)
    async def _unavailable(request: Request, exc: StorageUnavailable):
        logger.error("storage unavailable on %s %s: %s", request.method, request.url.path, exc)
        return _error(503, exc)


def create_app(
    settings: Optional[Settings] = None,
    *,
    db: Optional[Database] = None,
    clock: Clock = utcnow,
) -> FastAPI:
    settings = settings or get_settings()
    configure_logging(settings.LOG_LEVEL)

    app = FastAPI(title="XSS Lab", version=__version__, lifespan=lifespan)
    app.state.settings = settings
    app.state.lab_metrics = get_metrics()
    wire_services(app, db or Database(settings.DATABASE_URL, echo=settings.DB_ECHO), settings, clock)

    register_error_handlers(app)

    @app.get("/health")
    def health():
        return JSONResponse({"status": "ok"})

    app.include_router(metrics_router)
    app.include_router(events_router)
    app.include_router(stats_router)
    app.include_router(comments_router)
    app.include_router(admin_router)

    # Starlette: the last middleware added runs first (outermost).
    # Activity logging sits inside latency so its insert is timed too.
    app.add_middleware(
        ActivityLogMiddleware,
        exclude_paths=settings.exclude_paths(),
        trusted_proxies=settings.trusted_proxy_cidrs(),
        session_cookie=settings.SESSION_COOKIE_NAME,
        enabled=settings.ACTIVITY_LOG_ENABLED,
    )
    app.add_middleware(LatencyMiddleware)
    return app
