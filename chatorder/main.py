"""
Ate Lorie's POS - Messenger ordering webhook
"""

import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text
import structlog

from chatorder.config import settings
from chatorder.webhooks import messenger

# Configure structured logging
logging.basicConfig(format="%(message)s", level=settings.log_level.upper())

structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
        if settings.log_format == "json"
        else structlog.dev.ConsoleRenderer(),
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager"""
    logger.info(
        "Starting Messenger ordering webhook",
        version="1.0.0",
        database_configured=bool(settings.database_url),
        sending_enabled=bool(settings.fb_page_access_token),
    )
    yield
    logger.info("Shutting down Messenger ordering webhook")


# Create FastAPI application
app = FastAPI(
    title="Ate Lorie's POS Messenger Bot",
    description="Order-taking webhook for Facebook Messenger",
    version="1.0.0",
    lifespan=lifespan,
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/health")
async def health():
    """Basic health check"""
    return {"status": "healthy", "service": "messenger-bot", "version": "1.0.0"}


@app.get("/health/ready")
async def ready():
    """Readiness check with database verification"""
    from chatorder.database import SessionLocal

    checks = {}

    if SessionLocal is None:
        checks["database"] = "not configured"
    else:
        try:
            async with SessionLocal() as db:
                await db.execute(text("SELECT 1"))
            checks["database"] = "ok"
        except Exception as e:
            checks["database"] = f"failed: {str(e)}"

    checks["messenger"] = "ok" if settings.fb_page_access_token else "not configured"

    all_ok = all(v == "ok" for v in checks.values())

    return {
        "status": "ready" if all_ok else "not_ready",
        "checks": checks,
    }


# Include webhook routers
app.include_router(messenger.router, prefix="/api/messenger", tags=["Webhooks"])


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "chatorder.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.api_debug,
    )
