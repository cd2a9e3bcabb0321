import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.config import settings
from app.middleware.exceptions import register_exception_handlers
from app.routers import health, onboarding
from app.utils.flag_store import close_redis

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger("onboarding")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Provision the flag table for the sql backend; close Redis on shutdown."""
    if settings.flag_store_backend.lower() == "sql":
        from app.database import create_tables

        create_tables()
    logger.info(f"Onboarding service started (flag store: {settings.flag_store_backend})")
    try:
        yield
    finally:
        close_redis()
        logger.info("Onboarding service stopped")


app = FastAPI(
    title="Tenant Onboarding",
    description="Account-creation workflow: step tracking, plan assignment and progress restore",
    version="0.1.0",
    lifespan=lifespan,
)

# ── Exception Handlers ───────────────────────────────────────
register_exception_handlers(app)

# ── Middleware ───────────────────────────────────────────────
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins.split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ── Routers ──────────────────────────────────────────────────
app.include_router(health.router)
app.include_router(onboarding.router, prefix="/api/onboarding", tags=["onboarding"])
