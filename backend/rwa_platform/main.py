"""RWA Platform — FastAPI Application Entry Point."""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from rwa_platform.config import settings
from rwa_platform.database import Database
from rwa_platform.errors import register_error_handlers
from rwa_platform.logging_config import configure_logging
from rwa_platform.middleware.rate_limit import limiter
from rwa_platform.routers import assets, auth, kyc, portfolio, trades

logger = logging.getLogger(__name__)


def create_app(database: Optional[Database] = None) -> FastAPI:
    """Build the API around a store handle.

    The handle is opened on startup and closed on shutdown unless the caller
    passed one in already open, in which case the caller owns its lifecycle.
    """
    configure_logging(settings.LOG_LEVEL)
    db = database or Database(settings.DATABASE_URL)
    owns_db = not db.is_open

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if owns_db:
            db.open()
        db.create_all()
        logger.info("RWA platform API started (fee rate %s)", settings.TRADING_FEE_RATE)
        yield
        if owns_db:
            db.close()

    app = FastAPI(
        title="RWA Platform",
        description="Fractional real-world-asset trading and portfolio API.",
        version="1.0.0",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )
    app.state.db = db

    # Rate limiting
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    register_error_handlers(app)

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[o.strip() for o in settings.ALLOWED_ORIGINS.split(",") if o.strip()],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Routers
    app.include_router(auth.router)
    app.include_router(assets.router)
    app.include_router(trades.router)
    app.include_router(portfolio.router)
    app.include_router(kyc.router)

    @app.get("/")
    def root():
        return {"name": "RWA Platform API", "version": "1.0.0", "docs": "/docs"}

    @app.get("/health")
    def health():
        return {"status": "ok"}

    return app


app = create_app()
