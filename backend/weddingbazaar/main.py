import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from .api import api_booking, api_quote, api_receipt, api_vendor
from .core.config import settings
from .core.observability import setup_logging
from .utils.errors import LedgerError
from .utils.status_logger import register_status_listeners

# Configure logging before creating any loggers
setup_logging()
logger = logging.getLogger(__name__)

register_status_listeners()

app = FastAPI(title="Wedding Bazaar Booking API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
logger.info("CORS origins set to: %s", settings.CORS_ORIGINS)


@app.exception_handler(LedgerError)
async def ledger_error_handler(request: Request, exc: LedgerError):
    """Map domain failures to their 4xx response with a machine-readable code."""
    logger.info(
        "Rejected %s %s: %s %s",
        request.method,
        request.url.path,
        exc.code,
        exc.field_errors,
    )
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.to_detail()})


@app.exception_handler(SQLAlchemyError)
async def database_error_handler(request: Request, exc: SQLAlchemyError):
    logger.error("Database error at %s", request.url.path, exc_info=exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": {"message": "Internal Server Error", "field_errors": {}}},
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Return validation errors with details and log them for debugging."""
    errors = exc.errors()
    logger.warning("Validation error at %s: %s", request.url.path, errors)
    field_errors = {
        ".".join(str(p) for p in err.get("loc", ())[1:]) or "body": err.get("msg", "invalid")
        for err in errors
    }
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"detail": {"message": "Validation error", "field_errors": field_errors}},
    )


api_prefix = settings.API_V1_STR  # usually "/api/v1"

app.include_router(api_booking.router, prefix=api_prefix)
app.include_router(api_quote.router, prefix=api_prefix)
app.include_router(api_receipt.router, prefix=api_prefix)
app.include_router(api_vendor.router, prefix=api_prefix)


@app.get("/healthz")
def healthz():
    return {"status": "ok"}
