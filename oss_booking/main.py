# oss_booking/main.py

import logging
import time

from fastapi import FastAPI
from sqlalchemy import text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import sessionmaker

from oss_booking.api.errors import register_exception_handlers
from oss_booking.api.middleware import install_middleware
from oss_booking.api.routes import admin, dev, public
from oss_booking.config import Settings, configure_logging, get_settings
from oss_booking.infrastructure.db import models  # noqa: F401  registers tables on Base
from oss_booking.infrastructure.db.session import DATABASE_URL, Base, SessionLocal, build_engine
from oss_booking.infrastructure.payment_gateway import build_order_gateway
from oss_booking.infrastructure.rate_limit import build_rate_limiter
from oss_booking.infrastructure.storage import build_storage

logger = logging.getLogger(__name__)


def _wait_for_db(engine: Engine, max_retries: int, retry_delay_seconds: float) -> None:
    # Handles the common case where API starts before Postgres is ready.
    for attempt in range(1, max_retries + 1):
        try:
            with engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            logger.info("Database is reachable.")
            return
        except OperationalError:
            if attempt == max_retries:
                logger.exception(
                    "Database not reachable after %s attempts. Check DATABASE_URL and Postgres status.",
                    max_retries,
                )
                raise
            logger.warning(
                "Database not ready (attempt %s/%s). Retrying in %.1f seconds...",
                attempt,
                max_retries,
                retry_delay_seconds,
            )
            time.sleep(retry_delay_seconds)


def _default_session_factory(settings: Settings) -> sessionmaker:
    if settings.database_url == DATABASE_URL:
        return SessionLocal
    return sessionmaker(
        bind=build_engine(settings.database_url),
        autoflush=False,
        autocommit=False,
        expire_on_commit=False,
    )


def create_app(
    settings: Settings | None = None,
    session_factory: sessionmaker | None = None,
) -> FastAPI:
    settings = settings or get_settings()
    configure_logging(settings.log_level)

    app = FastAPI(title="OSS Booking Platform")
    app.state.settings = settings
    app.state.session_factory = session_factory or _default_session_factory(settings)
    app.state.rate_limiter = build_rate_limiter(settings.rate_limit_backend, settings.redis_url)
    app.state.order_gateway = build_order_gateway(settings)
    app.state.storage = build_storage(settings)

    install_middleware(app, settings.allowed_origins)
    register_exception_handlers(app)

    app.include_router(public.router)
    app.include_router(admin.router)
    if settings.allow_dev_endpoints:
        logger.warning("Dev endpoints are enabled; do not run this configuration in production")
        app.include_router(dev.router)

    @app.get("/health")
    def health():
        return {"success": True, "data": {"status": "ok"}}

    @app.on_event("startup")
    def on_startup() -> None:
        engine = app.state.session_factory.kw["bind"]
        _wait_for_db(engine, settings.db_connect_max_retries, settings.db_connect_retry_delay)
        Base.metadata.create_all(bind=engine)

    return app


app = create_app()
