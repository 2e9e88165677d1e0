# backend/courtbook/main.py

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from redis.exceptions import RedisError

from .config import settings
from .database import init_db
from .redis_client import redis_client
from .routers import availabilities, bookings, locations, users, wallets
from .services.errors import CourtbookError
from .services.status_refresher import StatusRefresher

logging.basicConfig(level=settings.log_level)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()

    refresher = None
    if settings.status_refresh_enabled:
        refresher = StatusRefresher(settings.status_refresh_interval_seconds)
        refresher.start()

    yield

    if refresher is not None:
        await refresher.stop()


app = FastAPI(title="Courtbook API", lifespan=lifespan)


@app.exception_handler(CourtbookError)
async def courtbook_error_handler(request: Request, exc: CourtbookError):
    if exc.http_status >= 500:
        logger.error(f"{request.method} {request.url.path}: {exc.code}: {exc.message}")
    return JSONResponse(status_code=exc.http_status, content=exc.to_dict())


app.include_router(users.router)
app.include_router(locations.router)
app.include_router(availabilities.router)
app.include_router(bookings.router)
app.include_router(wallets.router)


@app.get("/health")
def health():
    try:
        redis_ok = bool(redis_client.ping())
    except RedisError:
        redis_ok = False
    return {"status": "ok", "redis": redis_ok}
