import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from . import models  # noqa: F401
from .cache import Cache, TTLCache
from .config import (
    CORS_ORIGINS,
    OTP_CACHE_TTL_SECONDS,
    TRACKER_CLEANUP_INTERVAL_SECONDS,
    WORKSHOP_THEME_CACHE_TTL,
)
from .database import Base, SessionLocal, engine
from .domain.attendance.router import router as attendance_router
from .domain.auth.router import router as auth_router
from .domain.bookings.router import router as bookings_router
from .domain.tracker.cache import StatusTrackerCache
from .domain.tracker.repository import TrackerRepository
from .domain.tracker.router import router as tracker_router
from .domain.workshops.router import router as workshops_router

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

# Reduce verbosity of third-party libraries
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Application starting up...")
    try:
        Base.metadata.create_all(bind=engine, checkfirst=True)
        logger.info("Database tables created successfully")
    except Exception as e:
        # Ignore "already exists" errors from race conditions between workers
        error_msg = str(e)
        if "already exists" in error_msg or "duplicate key" in error_msg:
            logger.info("Database tables already exist (created by another worker)")
        else:
            logger.error(f"Failed to create database tables: {e}")

    tracker_cache = StatusTrackerCache(TrackerRepository(SessionLocal))
    app.state.tracker_cache = tracker_cache
    app.state.verification_cache = TTLCache(OTP_CACHE_TTL_SECONDS)
    app.state.theme_cache = TTLCache(WORKSHOP_THEME_CACHE_TTL)
    app.state.shared_cache = Cache()
    if app.state.shared_cache.available:
        logger.info("Redis connection established")
    else:
        logger.info("Redis not configured or unreachable - using in-process caches only")

    cleanup_task = asyncio.create_task(tracker_cache.run_cleanup_loop(TRACKER_CLEANUP_INTERVAL_SECONDS))

    yield

    logger.info("Application shutting down...")
    cleanup_task.cancel()
    try:
        await cleanup_task
    except asyncio.CancelledError:
        pass
    tracker_cache = app.state.tracker_cache
    await tracker_cache.close()
    if tracker_cache.pending_writes:
        logger.warning(f"⚠️ {tracker_cache.pending_writes} tracker entries were not persisted")


app = FastAPI(title="Workshop CRM API", version="1.0.0", lifespan=lifespan)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """
    Convert request validation errors to 400, or to 401 when the issue is
    with the Authorization header
    """
    for error in exc.errors():
        if error.get("loc") and "authorization" in str(error.get("loc")).lower():
            logger.warning(
                f"Authentication failed for {request.url.path}: Missing or invalid Authorization header"
            )
            return JSONResponse(
                status_code=401,
                content={
                    "detail": "Not authenticated. Please provide a valid Bearer token in the Authorization header."
                },
            )

    logger.warning(f"Validation error for {request.url.path}: {exc.errors()}")
    return JSONResponse(
        status_code=400,
        content={"detail": "Invalid request", "errors": jsonable_errors(exc)},
    )


def jsonable_errors(exc: RequestValidationError) -> list[dict]:
    return [
        {"loc": list(error.get("loc", ())), "msg": error.get("msg"), "type": error.get("type")}
        for error in exc.errors()
    ]


@app.middleware("http")
async def log_requests(request: Request, call_next):
    try:
        response = await call_next(request)
        return response
    except Exception as e:
        logger.error(f"{request.method} {request.url.path} - Error: {str(e)}")
        raise


logger.info(f"CORS allowed origins: {CORS_ORIGINS}")

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS", "PATCH"],
    allow_headers=["*"],
)

# Routes
app.include_router(auth_router)
app.include_router(bookings_router)
app.include_router(attendance_router)
app.include_router(tracker_router)
app.include_router(workshops_router)


@app.get("/")
def root():
    return {"message": "Workshop CRM API is running"}


@app.get("/health")
def health(request: Request):
    tracker_cache = request.app.state.tracker_cache
    return {
        "status": "healthy",
        "trackerCache": {
            "entries": len(tracker_cache),
            "pendingWrites": tracker_cache.pending_writes,
            "memoryOnly": tracker_cache.memory_only,
        },
    }
