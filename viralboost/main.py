"""
Application entry point: FastAPI app, lifespan wiring and error rendering.
"""

import asyncio
import time
from contextlib import asynccontextmanager, suppress

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from viralboost import __version__
from viralboost.config import settings
from viralboost.errors import ViralBoostError
from viralboost.infrastructure.observability.logging import get_logger, log_request, setup_logging
from viralboost.jobs.snapshot_job import run_snapshot_scheduler
from viralboost.middleware import CORSMiddleware, RequestContextMiddleware
from viralboost.realtime.hub import MessagingHub
from viralboost.routes import ai, groups, health, moderation, payments, posts, projects, realtime, users
from viralboost.services.ai_service import AIService
from viralboost.services.broadcaster import Broadcaster
from viralboost.services.payment_service import PaymentService
from viralboost.services.redis_client import redis_client
from viralboost.services.vote_service import VoteGuard
from viralboost.services.welcome_service import WelcomeSnapshots
from viralboost.store import SnapshotStore, open_store

# Setup logging before creating the app
setup_logging(log_level=settings.LOG_LEVEL, json_output=settings.LOG_JSON)
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Open the store, start the hub and background jobs; tear down in reverse."""
    logger.info(
        "Application starting",
        environment=settings.environment,
        debug=settings.debug,
        backend=settings.storage_backend(),
    )

    store = await open_store(settings)

    hub = MessagingHub(
        store,
        history_capacity=settings.CHAT_HISTORY_CAPACITY,
        replay_window=settings.CHAT_REPLAY_WINDOW,
        max_text_length=settings.MAX_MESSAGE_LENGTH,
        strict_persistence=settings.CHAT_PERSISTENCE_STRICT,
        welcome=WelcomeSnapshots(store, size=settings.WELCOME_SNAPSHOT_SIZE),
    )
    await hub.start()

    app.state.store = store
    app.state.hub = hub
    app.state.broadcaster = Broadcaster(hub)
    app.state.vote_guard = VoteGuard(store)
    app.state.payments = PaymentService(settings)
    app.state.ai = AIService(settings)

    if redis_client.configured:
        try:
            await redis_client.initialize()
        except RuntimeError as e:
            # Rate limiting fails open without Redis
            logger.error("Redis unavailable, rate limiting disabled", error=str(e))

    snapshot_task = None
    if isinstance(store, SnapshotStore):
        snapshot_task = asyncio.create_task(
            run_snapshot_scheduler(store, settings.SNAPSHOT_INTERVAL_SECONDS)
        )

    logger.info("All services initialized", backend=store.backend)

    yield

    logger.info("Application shutting down")
    shutdown_errors = []

    if snapshot_task is not None:
        snapshot_task.cancel()
        with suppress(asyncio.CancelledError):
            await snapshot_task

    await hub.stop()
    if redis_client.configured:
        await redis_client.close()

    try:
        await store.close()
    except Exception as e:
        logger.error("Error closing store", error=str(e))
        shutdown_errors.append(f"Store: {e}")

    if shutdown_errors:
        logger.warning("Some services had shutdown errors", errors=shutdown_errors)
    else:
        logger.info("All services closed successfully")


def _error_response(status_code: int, message: str, headers: dict | None = None) -> JSONResponse:
    return JSONResponse({"error": message}, status_code=status_code, headers=headers)


def _validation_message(exc: RequestValidationError) -> str:
    parts = []
    for err in exc.errors():
        loc = [str(p) for p in err.get("loc", ()) if p != "body"]
        field = ".".join(loc)
        parts.append(f"{field}: {err.get('msg')}" if field else str(err.get("msg")))
    return "; ".join(parts) or "Invalid request"


def create_app() -> FastAPI:
    app = FastAPI(
        title="ViralBoost",
        description="Promotional social platform backend with realtime chat",
        version=__version__,
        lifespan=lifespan,
    )

    app.include_router(health.router)
    app.include_router(users.router)
    app.include_router(posts.router)
    app.include_router(projects.router)
    app.include_router(groups.router)
    app.include_router(moderation.router)
    app.include_router(payments.router)
    app.include_router(ai.router)
    app.include_router(realtime.router)

    @app.exception_handler(ViralBoostError)
    async def handle_app_error(request: Request, exc: ViralBoostError):
        if exc.status_code >= 500:
            logger.error(
                "Request failed",
                path=request.url.path,
                error=exc.message,
                error_type=type(exc).__name__,
                recoverable=exc.recoverable,
            )
        return _error_response(exc.status_code, exc.message)

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(request: Request, exc: RequestValidationError):
        return _error_response(400, _validation_message(exc))

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_error(request: Request, exc: StarletteHTTPException):
        return _error_response(exc.status_code, str(exc.detail), headers=getattr(exc, "headers", None))

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        """Log HTTP requests with timing."""
        start_time = time.time()
        response = await call_next(request)
        log_request(
            method=request.method,
            path=request.url.path,
            status_code=response.status_code,
            duration_ms=round((time.time() - start_time) * 1000, 2),
        )
        return response

    # Added last = outermost: CORS answers preflights before anything else runs
    app.add_middleware(RequestContextMiddleware, trust_forwarded_for=settings.TRUST_X_FORWARDED_FOR)
    app.add_middleware(CORSMiddleware, allowed_origins=settings.cors_origins(), allow_credentials=False)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=settings.PORT)
