import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.core.auth.router import router as auth_router
from app.core.conserto.router import router as conserto_router
from app.core.devolucao.router import router as devolucao_router
from app.core.inc.router import router as inc_router
from app.core.notifications.router import router as notifications_router
from app.core.notifications.rules import NOTIFICATION_RULES
from app.core.notifications.scheduler import NotificationScheduler
from app.core.notifications.service import sync_notification_types
from app.core.rnc.router import router as rnc_router
from app.db.session import AsyncSessionLocal, get_session
from app.logging_config import setup_logging
from app.settings import get_settings

settings = get_settings()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    async with get_session() as db:
        await sync_notification_types(db, NOTIFICATION_RULES)

    scheduler = None
    if settings.NOTIFICATIONS_ENABLED:
        scheduler = NotificationScheduler(
            AsyncSessionLocal,
            interval=settings.NOTIFICATION_INTERVAL_SECONDS,
            rules=NOTIFICATION_RULES,
        )
        scheduler.start()
    app.state.notification_scheduler = scheduler
    logger.info("Application started (env=%s)", settings.APP_ENV)
    try:
        yield
    finally:
        if scheduler is not None:
            await scheduler.stop()


def create_app() -> FastAPI:
    app = FastAPI(
        title="Qualidade API",
        version="0.1.0",
        docs_url="/docs" if settings.APP_DEBUG else None,
        redoc_url="/redoc" if settings.APP_DEBUG else None,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if settings.APP_DEBUG else [],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(auth_router)
    app.include_router(inc_router)
    app.include_router(rnc_router)
    app.include_router(devolucao_router)
    app.include_router(conserto_router)
    app.include_router(notifications_router)

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    return app


app = create_app()
