"""
Plinko Fair Application Entry Point
FastAPI service for provably-fair plinko rolls, lightning boards and bet verification.
"""

import sys
from pathlib import Path
from typing import Optional

# Add parent directory to path so imports work when running directly
if __name__ == "__main__":
    sys.path.insert(0, str(Path(__file__).parent.parent))

import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from plinko_fair.config import AppConfig, settings
from plinko_fair.core.database import Database
from plinko_fair.core.engine import build_engine
from plinko_fair.core.exceptions import PlinkoError
from plinko_fair.core.logger import get_logger, init_logging
from plinko_fair.core.scheduler import HashChainScheduler
from plinko_fair.routers import plinko

# Initialize logging first
init_logging(
    level=settings.logging.level,
    log_to_file=settings.logging.log_to_file,
    formatter=settings.logging.formatter,
    log_file_path=settings.paths.get_log_path(),
)
logger = get_logger("main")


# ==================== Application Setup ====================


def create_app(
    config: Optional[AppConfig] = None,
    db: Optional[Database] = None,
    start_scheduler: bool = True,
) -> FastAPI:
    """Create and configure the FastAPI application."""
    config = config or settings
    db = db or Database(config.paths.get_db_path())

    app = FastAPI(
        title=config.server.name,
        docs_url="/docs" if config.server.debug else None,
        redoc_url=None,
    )

    engine = build_engine(config, db)
    app.state.engine = engine

    plinko.configure_rate_limits(config.rate_limit)
    plinko.limiter.enabled = config.rate_limit.enabled
    app.state.limiter = plinko.limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    if config.server.debug:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=["*"],
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    app.include_router(plinko.router, prefix="/api")

    @app.exception_handler(PlinkoError)
    async def plinko_error_handler(request: Request, exc: PlinkoError):
        if exc.status_code >= 500:
            logger.error(f"{type(exc).__name__}: {exc.message}", exc_info=True)
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": type(exc).__name__, "detail": exc.message},
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """Handle unhandled exceptions gracefully."""
        logger.error(f"Unhandled exception: {exc}", exc_info=True)
        return JSONResponse(
            status_code=500,
            content={
                "error": "Internal server error",
                "detail": str(exc) if config.server.debug else None,
            },
        )

    chain_scheduler = HashChainScheduler(engine.chain, config.hash_chain.check_interval_minutes)
    app.state.chain_scheduler = chain_scheduler

    @app.on_event("startup")
    def startup_event():
        if start_scheduler:
            chain_scheduler.start()

    @app.on_event("shutdown")
    def shutdown_event():
        chain_scheduler.shutdown()

    logger.info(f"Application '{config.server.name}' initialized")
    logger.info(f"Debug mode: {config.server.debug}")
    return app


# ==================== Main Entry Point ====================

if __name__ == "__main__":
    logger.info(f"Starting server on {settings.server.host}:{settings.server.port}")
    uvicorn.run(
        "plinko_fair.main:create_app",
        factory=True,
        host=settings.server.host,
        port=settings.server.port,
        reload=settings.server.debug,
    )
