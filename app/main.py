"""
FastAPI application for the bid reminder service.

The HTTP surface lets the scheduler (or staff) trigger a run; the periodic
loop itself lives in the worker process (app/jobs/worker.py).
"""

import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from app.config import settings
from app.db.pool import db_pool
from app.features.bid_reminders.api.router import router as reminders_router
from app.infrastructure.observability.logging import get_logger, log_request, setup_logging
from app.middleware import CORSMiddleware, RequestContextMiddleware
from app.routes import health

# Setup logging before creating the app
setup_logging(log_level="DEBUG" if settings.debug else "INFO")
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Open the database pool when configured; the app still boots without it."""
    logger.info("Application starting", environment=settings.environment, debug=settings.debug)

    if settings.has_database():
        try:
            await db_pool.initialize()
        except Exception as e:
            # /readyz and the reminder routes report the pool as unavailable
            logger.error("Failed to initialize database pool", error=str(e))
    else:
        logger.warning("SUPABASE_DB_URL not set, database pool not started")

    if not settings.has_sendgrid_credentials():
        logger.warning("SENDGRID_API_KEY not set, reminder runs will be refused")

    yield

    logger.info("Application shutting down")
    try:
        await db_pool.close()
    except Exception as e:
        logger.error("Error closing database pool", error=str(e))


app = FastAPI(
    title="Bid Reminder Service",
    description="Automated follow-up reminders for outstanding bid invitations",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(CORSMiddleware, allowed_origins=settings.CORS_ALLOWED_ORIGINS)
app.add_middleware(RequestContextMiddleware)

app.include_router(health.router)
app.include_router(reminders_router)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Malformed request bodies are client errors: 400, not 422."""
    logger.warning("Request validation failed", path=request.url.path, errors=len(exc.errors()))
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": jsonable_encoder(exc.errors())},
    )


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log HTTP requests with timing."""
    start_time = time.time()
    response = await call_next(request)
    process_time = (time.time() - start_time) * 1000

    log_request(
        method=request.method,
        path=request.url.path,
        status_code=response.status_code,
        duration_ms=round(process_time, 2),
    )
    return response


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
