"""FastAPI application setup and configuration."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from movietime_booking.config import settings
from movietime_booking.api import api_router
from movietime_booking.database import init_database, close_database
from movietime_booking.middleware import ErrorHandlerMiddleware, LoggingMiddleware
from movietime_booking.schemas.common import HealthStatus
from movietime_booking.utils.health_check import get_health_status
from movietime_booking.utils.logging_config import setup_logging

# Set up logging
setup_logging(
    log_level="DEBUG" if settings.debug else settings.log_level,
    log_file="logs/movietime.log" if settings.environment == "production" else None,
    enable_json_logging=settings.enable_json_logging or settings.environment == "production",
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager for startup and shutdown events."""
    # Startup
    logger.info("Starting MovieTime booking service")
    await init_database()
    yield
    # Shutdown
    logger.info("Shutting down MovieTime booking service")
    await close_database()


app = FastAPI(
    title="MovieTime Booking API",
    description="""
    ## MovieTime Booking

    Seat reservation for movie shows.

    * **Holds**: seats are held for a few minutes while the user pays
    * **Payments**: the payment provider reports the outcome to `/api/v1/payments/callback`
    * **Expiry**: unpaid holds are released automatically when they time out

    ### Error Handling

    Errors come back as:

    ```json
    {
      "error": {
        "error_code": "SEATS_UNAVAILABLE",
        "message": "Seats no longer available, please reselect",
        "details": {"unavailable_seats": ["A2"]},
        "suggestions": ["Pick different seats and try again"]
      },
      "error_id": "...",
      "timestamp": "..."
    }
    ```
    """,
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_tags=[
        {
            "name": "shows",
            "description": "Show creation and seat availability"
        },
        {
            "name": "bookings",
            "description": "Seat holds and booking lookup"
        },
        {
            "name": "payments",
            "description": "Payment provider callbacks"
        },
        {
            "name": "health",
            "description": "System health and monitoring endpoints"
        }
    ],
    lifespan=lifespan,
)

# Middleware added last runs first: logging wraps error handling so every response gets a request id

app.add_middleware(
    ErrorHandlerMiddleware,
    debug=settings.debug
)

app.add_middleware(
    LoggingMiddleware,
    log_requests=True,
    log_responses=True,
)

if settings.debug:
    # Development: Allow all origins for easier development
    cors_origins = ["*"]
    cors_allow_credentials = False  # Cannot use credentials with wildcard origins
else:
    cors_origins = settings.cors_origins
    cors_allow_credentials = settings.cors_allow_credentials

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=cors_allow_credentials,
    allow_methods=settings.cors_allow_methods,
    allow_headers=settings.cors_allow_headers,
    expose_headers=settings.cors_expose_headers
)

# Include API routes
app.include_router(api_router)


@app.get("/health", tags=["health"])
async def health_check():
    """Basic health check for uptime monitoring."""
    return {"status": "healthy", "service": "movietime-booking"}


@app.get("/health/detailed", response_model=HealthStatus, tags=["health"])
async def detailed_health_check():
    """Health of the database (including the overdue hold backlog) and the Celery workers."""
    return await get_health_status()
