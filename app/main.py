import logging
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException as StarletteHTTPException

# Import all models to ensure they're registered with SQLAlchemy Base
from . import models  # noqa: F401
from .config import ALLOWED_ORIGINS, UPLOAD_DIR
from .database import Base, engine
from .domain.calendar.router import router as calendar_router
from .domain.comments.router import router as comments_router
from .domain.designers.router import router as designers_router
from .domain.designs.router import router as designs_router
from .domain.messages.router import router as messages_router
from .domain.notifications.router import router as notifications_router
from .domain.notifications.router import ws_router as realtime_router
from .domain.payments.router import router as payments_router
from .domain.posts.router import router as posts_router
from .domain.ratings.router import router as ratings_router
from .domain.shops.router import router as shops_router
from .domain.users.router import router as users_router

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

    try:
        from .rate_limiter import get_redis_client

        if get_redis_client() is None:
            logger.info("Redis not configured - rate limit counters kept in memory")
        else:
            logger.info("Redis connection established")
    except Exception as e:
        logger.warning(f"Redis connection failed - Rate limiting will operate in fail-open mode: {e}")

    yield
    logger.info("Application shutting down...")


app = FastAPI(title="RightArtist API", version="1.0.0", lifespan=lifespan)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Every handled failure leaves as {"message": ...}"""
    if exc.status_code >= 500:
        logger.error(f"❌ {request.method} {request.url.path}: {exc.detail}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"message": exc.detail},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Malformed input is a 400 carrying the first validation message"""
    errors = exc.errors()
    logger.warning(f"Validation error for {request.url.path}: {errors}")
    message = "Invalid request"
    if errors:
        first = errors[0]
        field = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        message = f"{field}: {first.get('msg')}" if field else str(first.get("msg"))
    return JSONResponse(status_code=400, content={"message": message})


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.error(f"❌ {request.method} {request.url.path} - Error: {exc}", exc_info=exc)
    return JSONResponse(status_code=500, content={"message": "Server error"})


# CORS Configuration
logger.info(f"CORS allowed origins: {ALLOWED_ORIGINS}")
app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS", "PATCH"],
    allow_headers=["*"],
)

# Locally stored uploads (used when R2 is not configured)
Path(UPLOAD_DIR).mkdir(parents=True, exist_ok=True)
app.mount("/uploads", StaticFiles(directory=UPLOAD_DIR), name="uploads")

# Routes
app.include_router(posts_router)
app.include_router(comments_router)
app.include_router(designs_router)
app.include_router(designers_router)
app.include_router(messages_router)
app.include_router(notifications_router)
app.include_router(realtime_router)
app.include_router(payments_router)
app.include_router(shops_router)
app.include_router(ratings_router)
app.include_router(users_router)
app.include_router(calendar_router)


@app.get("/health")
async def health_check():
    return {"status": "healthy"}
