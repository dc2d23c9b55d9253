# villa_booking/main.py

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from villa_booking.config import ALLOWED_ORIGINS
from villa_booking.errors import BookingEngineError
from villa_booking.logging_config import setup_logging
from villa_booking.middleware import RequestIDMiddleware
from villa_booking.routes.bookings import router as bookings_router
from villa_booking.routes.health import router as health_router
from villa_booking.routes.metrics import router as metrics_router
from villa_booking.routes.reviews import router as reviews_router
from villa_booking.routes.villas import router as villas_router

# Initialize structured logging
setup_logging()
logger = structlog.get_logger(__name__)

app = FastAPI(
    title="Villa Booking API",
    description="Availability, booking lifecycle, payments and review eligibility for villas",
    version="1.0.0",
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS if "*" not in ALLOWED_ORIGINS else ["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(RequestIDMiddleware)


@app.exception_handler(BookingEngineError)
async def booking_engine_error_handler(request: Request, exc: BookingEngineError) -> JSONResponse:
    """Map engine errors to their HTTP status with a client-facing code."""
    logger.info(
        "request_refused",
        path=request.url.path,
        code=exc.code,
        status_code=exc.status_code,
        error=exc.message,
    )
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.message, "code": exc.code, "retryable": exc.retryable},
    )


# Register routers
app.include_router(health_router, tags=["Health"])
app.include_router(metrics_router, tags=["Metrics"])
app.include_router(villas_router, prefix="/api/v1", tags=["Villas"])
app.include_router(bookings_router, prefix="/api/v1", tags=["Bookings"])
app.include_router(reviews_router, prefix="/api/v1", tags=["Reviews"])


@app.on_event("startup")
def startup_event() -> None:
    """Log application startup."""
    logger.info("FastAPI application initialized")
