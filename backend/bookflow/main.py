import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from redis.exceptions import RedisError
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from .config import settings
from .database import SessionLocal, init_db
from .errors import BookingError
from .redis_client import redis_client
from .routers import availability, blocked_slots, bookings
from .services.expiry_checker import expiry_checker_loop

logging.basicConfig(level=settings.log_level)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    expiry_task = None
    if settings.expiry_check_interval_seconds > 0:
        expiry_task = asyncio.create_task(expiry_checker_loop())
    try:
        yield
    finally:
        if expiry_task:
            expiry_task.cancel()
            await asyncio.gather(expiry_task, return_exceptions=True)


app = FastAPI(title="BookFlow Availability API (SQLite)", lifespan=lifespan)

app.include_router(availability.router)
app.include_router(bookings.router)
app.include_router(blocked_slots.router)


@app.exception_handler(BookingError)
async def booking_error_handler(request: Request, exc: BookingError):
    if exc.status_code >= 409:
        logger.warning(f"{request.method} {request.url.path} → {exc.status_code}: {exc.message}")
    content = {"error": exc.message}
    conflict_reason = getattr(exc, "conflict_reason", None)
    if conflict_reason:
        content["conflict_reason"] = conflict_reason
    return JSONResponse(status_code=exc.status_code, content=content)


@app.get("/health")
def health():
    db_ok = True
    try:
        with SessionLocal() as db:
            db.execute(text("SELECT 1"))
    except SQLAlchemyError:
        logger.exception("Database health check failed")
        db_ok = False

    try:
        redis_ok = bool(redis_client.ping())
    except RedisError:
        redis_ok = False

    return {"database": db_ok, "redis": redis_ok}
