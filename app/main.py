import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

# Import models so every table is registered on Base before create_all
from . import models  # noqa: F401
from .config import FRONTEND_URL
from .database import Base, engine
from .domain.bookings.router import router as bookings_router
from .domain.payments.router import router as payments_router
from .errors import BookingPlatformError

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

    yield
    logger.info("Application shutting down...")


app = FastAPI(title="Shalean Bookings API", version="1.0.0", lifespan=lifespan)


@app.exception_handler(BookingPlatformError)
async def booking_platform_error_handler(request: Request, exc: BookingPlatformError):
    if exc.status_code >= 500:
        logger.error(f"❌ {exc.code} on {request.url.path}: {exc.message}")
    else:
        logger.warning(f"⚠️ {exc.code} on {request.url.path}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """
    Render request validation errors in the same envelope as domain errors.

    A missing Authorization header surfaces as 401 rather than 422.
    """
    errors = exc.errors()
    for error in errors:
        if error.get("loc") and "authorization" in str(error.get("loc")).lower():
            logger.warning(
                f"Authentication failed for {request.url.path}: Missing or invalid Authorization header"
            )
            return JSONResponse(
                status_code=401,
                content={
                    "error": "unauthorized",
                    "message": "Not authenticated. Please provide a valid Bearer token.",
                    "field": None,
                },
            )

    logger.warning(f"Validation error for {request.url.path}: {errors}")
    first = errors[0] if errors else {}
    # Drop the leading "body"/"query"/"path" segment so the field reads like services.0.quantity
    location = [str(part) for part in first.get("loc", ())[1:]]
    return JSONResponse(
        status_code=422,
        content={
            "error": "validation_error",
            "message": first.get("msg", "Invalid request"),
            "field": ".".join(location) or None,
        },
    )


ALLOWED_ORIGINS = [
    origin.strip()
    for origin in os.getenv("FRONTEND_ORIGINS", FRONTEND_URL).split(",")
    if origin.strip()
]

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["*"],
)

# Routes
app.include_router(bookings_router)
app.include_router(payments_router)


@app.get("/health")
def health():
    return {"status": "healthy"}
