import asyncio
import logging
import time
from contextlib import asynccontextmanager, suppress
from datetime import datetime, timezone

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from phishnet_app.analytics_processor.analytics_worker import AnalyticsWorker
from phishnet_app.config import settings
from phishnet_app.database.connection import SessionLocal, init_db
from phishnet_app.api.v1 import analytics, auth, blog, chatbot, dashboard, scan, users
from phishnet_app.dependencies import get_cache, get_queue
from phishnet_app.queue.strategies import InMemoryQueue
from phishnet_app.services.auth_service import AuthService
from phishnet_app.services.errors import ServiceError
from phishnet_app.services.scan_service import ScanService

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

RATE_LIMIT_MESSAGE = "Too many requests from this IP, please try again later."


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()

    # Expired data is also purged periodically by the analytics worker
    db = SessionLocal()
    try:
        ScanService(db).purge_expired_history()
        AuthService(db).purge_expired_tokens()
    finally:
        db.close()

    # An in-memory queue is only visible to this process, so it needs a consumer here
    worker_task = None
    queue = get_queue()
    if settings.analytics_worker_in_process and isinstance(queue, InMemoryQueue):
        worker = AnalyticsWorker(queue=queue)
        worker_task = asyncio.create_task(worker.start(install_signal_handlers=False))
        logger.info("📊 Analytics worker running in-process (in-memory queue)")

    logger.info("🚀 %s %s started (%s)", settings.app_name, settings.app_version, settings.environment)
    yield

    if worker_task is not None:
        worker.stop()
        worker_task.cancel()
        with suppress(asyncio.CancelledError):
            await worker_task


# Create FastAPI app
app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="Phishing-awareness backend: URL and email scanning, analytics, blog and assistant",
    debug=settings.debug,
    lifespan=lifespan,
)


def error_response(status_code: int, message: str, errors=None, **extra) -> JSONResponse:
    content = {"success": False, "message": message}
    if errors:
        content["errors"] = errors
    content.update(extra)
    return JSONResponse(status_code=status_code, content=content)


@app.middleware("http")
async def rate_limit(request: Request, call_next):
    """Fixed-window request limit per client IP, counted in the cache backend"""
    if not settings.rate_limit_enabled:
        return await call_next(request)

    window = settings.rate_limit_window_seconds
    client_ip = request.client.host if request.client else "unknown"
    key = f"ratelimit:{client_ip}:{int(time.time() // window)}"
    count = await get_cache().incr(key, ttl=window)
    limit = settings.rate_limit_max_requests

    if count > limit:
        logger.warning("⚠️  Rate limit exceeded for %s", client_ip)
        response = error_response(429, RATE_LIMIT_MESSAGE)
    else:
        response = await call_next(request)

    response.headers["RateLimit-Limit"] = str(limit)
    response.headers["RateLimit-Remaining"] = str(max(limit - count, 0))
    return response


# Added after the rate limiter so CORS headers are set on 429 responses too
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(ServiceError)
async def service_error_handler(request: Request, exc: ServiceError):
    return error_response(exc.status_code, exc.message, exc.errors, **exc.extra)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    if exc.status_code == 404 and exc.detail == "Not Found":
        return error_response(404, f"Route {request.url.path} not found")
    return error_response(exc.status_code, str(exc.detail))


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
        errors.append(f"{location}: {error.get('msg')}" if location else error.get("msg"))
    return error_response(400, errors[0] if errors else "Invalid request", errors)


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception("❌ Unhandled error on %s %s", request.method, request.url.path)
    return error_response(500, "Internal server error")


@app.get("/")
def read_root():
    """Root endpoint with API information"""
    return {
        "message": f"Welcome to {settings.app_name} API",
        "version": settings.app_version,
        "docs": "/docs",
        "health": "/api/health",
    }


@app.get("/api/health")
def health_check():
    """Health check endpoint"""
    return {
        "status": "Server is running",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "environment": settings.environment,
    }


######## Include routers
for module in (auth, scan, users, analytics, dashboard, blog, chatbot):
    app.include_router(module.router, prefix="/api")


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("main:app", host=settings.host, port=settings.port, reload=settings.debug)
