"""FastAPI application factory.

App factory pattern — create_app() returns a configured FastAPI
instance. Lifespan manages startup/shutdown: database engine, the auth
service graph, optional Redis, optional Telegram bot.
"""

import asyncio
from contextlib import asynccontextmanager
from typing import Optional

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from warden import __version__
from warden.api import api_router
from warden.config import Settings
from warden.db.engine import init_models, make_engine, make_session_factory
from warden.delivery.email import SmtpEmailSender
from warden.delivery.telegram import TelegramBot
from warden.errors import DeliveryError, IssuanceError, StoreUnavailableError
from warden.events.pubsub import close_redis, init_redis, publish_delivery_report
from warden.log import configure_logging
from warden.middleware.request_id import RequestIdMiddleware
from warden.services.auth import AuthService
from warden.services.confirmation import ConfirmationEngine
from warden.storage import SqlStorage

logger = structlog.get_logger()


def build_storage(settings: Settings):
    """Engine + SqlStorage for the configured database."""
    engine = make_engine(settings.database_url, echo=settings.debug)
    return engine, SqlStorage(make_session_factory(engine))


def build_confirmation_engine(settings: Settings, storage: SqlStorage) -> ConfirmationEngine:
    return ConfirmationEngine(
        codes=storage,
        users=storage,
        email_sender=SmtpEmailSender(settings),
    )


def build_telegram_bot(settings: Settings, engine: ConfirmationEngine) -> TelegramBot:
    return TelegramBot(
        settings.telegram_bot_token,
        engine,
        api_url=settings.telegram_api_url,
        poll_timeout=settings.telegram_poll_timeout,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown lifecycle.

    Anything before `yield` runs at startup, after `yield` at shutdown.
    """
    settings: Settings = app.state.settings
    configure_logging(settings.environment)
    logger.info(
        "warden.starting",
        version=__version__,
        environment=settings.environment,
        port=settings.port,
    )

    engine, storage = build_storage(settings)
    await init_models(engine)
    confirmations = build_confirmation_engine(settings, storage)

    listener = None
    if settings.redis_url:
        try:
            await init_redis(settings.redis_url)
            listener = publish_delivery_report
            logger.info("warden.redis_connected")
        except Exception as e:
            # Redis is optional; delivery outcomes are still logged
            logger.warning("warden.redis_unavailable", error=str(e))

    auth_service = AuthService(
        user_saver=storage,
        user_provider=storage,
        app_provider=storage,
        confirmations=confirmations,
        token_ttl=settings.token_ttl,
        delivery_listener=listener,
    )
    app.state.engine = engine
    app.state.auth_service = auth_service

    bot: Optional[TelegramBot] = None
    bot_task: Optional[asyncio.Task] = None
    if settings.telegram_bot_token:
        bot = build_telegram_bot(settings, confirmations)
        bot_task = asyncio.create_task(bot.run_loop())
        logger.info("warden.telegram_bot_started")

    yield

    logger.info("warden.shutdown")

    if bot is not None and bot_task is not None:
        bot.stop()
        bot_task.cancel()
        try:
            await bot_task
        except asyncio.CancelledError:
            pass
        await bot.aclose()

    # Let registrations that already returned finish sending their codes
    await auth_service.drain()
    await close_redis()
    await engine.dispose()


async def _internal_error(request: Request, exc: Exception) -> JSONResponse:
    logger.error("warden.internal_error", error=str(exc), kind=type(exc).__name__)
    return JSONResponse(status_code=500, content={"detail": "internal error"})


async def _delivery_error(request: Request, exc: Exception) -> JSONResponse:
    logger.error("warden.delivery_error", error=str(exc))
    return JSONResponse(status_code=502, content={"detail": "delivery failed"})


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """Build and return the FastAPI application."""
    settings = settings or Settings()
    app = FastAPI(
        title="Warden SSO",
        description="Identity provider — login, registration, account confirmation",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.settings = settings

    app.add_middleware(RequestIdMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(StoreUnavailableError, _internal_error)
    app.add_exception_handler(IssuanceError, _internal_error)
    app.add_exception_handler(DeliveryError, _delivery_error)

    app.include_router(api_router)
    return app


# Default app instance (used by uvicorn: warden.main:app)
app = create_app()
