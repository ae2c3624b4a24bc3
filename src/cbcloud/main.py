# src/cbcloud/main.py
import asyncio
import logging
import time
from contextlib import asynccontextmanager, suppress
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from cbcloud.core.database import get_prisma
from cbcloud.core.logging import configure_logging
from cbcloud.core.metrics import get_metrics
from cbcloud.core.realtime import init_hub
from cbcloud.core.settings import settings
from cbcloud.domains.auth.routes import router as auth_router
from cbcloud.domains.clipboard.routes import router as clipboard_router
from cbcloud.domains.clipboard.service import ClipboardService
from cbcloud.domains.family.routes import router as family_router
from cbcloud.domains.products.routes import router as products_router
from cbcloud.domains.realtime.routes import router as realtime_router
from cbcloud.domains.shares.routes import router as shares_router
from cbcloud.domains.system.routes import router as system_router
from cbcloud.domains.users.routes import router as users_router
from cbcloud.domains.utilities.routes import router as utilities_router
from cbcloud.shared.error_handlers import register_error_handlers

logger = logging.getLogger(__name__)


async def archive_expired_entries(interval: float) -> None:
    """Periodically archive clipboard entries whose expiry has passed."""
    while True:
        await asyncio.sleep(interval)
        try:
            await ClipboardService(get_prisma()).archive_expired()
        except Exception:
            logger.exception("Archive sweep failed")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    # Startup
    configure_logging(settings.LOG_LEVEL, settings.LOG_FORMAT)
    init_hub()
    prisma = get_prisma()
    await prisma.connect()
    sweeper = asyncio.create_task(
        archive_expired_entries(settings.ARCHIVE_SWEEP_INTERVAL_SECONDS)
    )
    logger.info(f"Clipboard Cloud API started ({settings.ENVIRONMENT})")
    yield
    # Shutdown
    sweeper.cancel()
    with suppress(asyncio.CancelledError):
        await sweeper
    await prisma.disconnect()


app = FastAPI(
    title="Clipboard Cloud API",
    description="API for shared clipboards, products and family groups",
    version=settings.APP_VERSION,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_error_handlers(app)


@app.middleware("http")
async def record_request_metrics(request: Request, call_next):
    started = time.perf_counter()
    status_code = 500
    try:
        response = await call_next(request)
        status_code = response.status_code
        return response
    finally:
        get_metrics().record(status_code, (time.perf_counter() - started) * 1000)


# Include routers
app.include_router(auth_router, prefix="/api/v1")
app.include_router(users_router, prefix="/api/v1")
app.include_router(products_router, prefix="/api/v1")
app.include_router(clipboard_router, prefix="/api/v1")
app.include_router(shares_router, prefix="/api/v1")
app.include_router(family_router, prefix="/api/v1")
app.include_router(utilities_router, prefix="/api/v1")
app.include_router(system_router, prefix="/api/v1")
app.include_router(realtime_router)


@app.get("/")
async def root() -> dict[str, str]:
    return {"message": "Clipboard Cloud API is running"}


@app.get("/health")
async def health_check() -> dict[str, str]:
    return {"status": "healthy"}
