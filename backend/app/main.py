"""
FastAPI application entry point for the SentiMood sentiment API.
Configures the application, middleware, routes, and error handlers.
"""

from typing import AsyncGenerator, Dict
from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager

from app.agents.base_agent import OracleUnavailableError, QuotaExhaustedError, RateLimitedError
from app.config import get_settings
from app.db.database import init_db
from app.routers import history, sentiment
from app.services.batch_builder import BatchTooLargeError, EmptyBatchError
from app.services.history_service import AnalysisNotFoundError, PersistenceError
from app.services.session_store import BatchInProgressError, SessionRegistry
from app.utils.file_handler import EmptyExtractionError, FileValidationError, UnsupportedFormatError
from app.utils.logger import setup_logging, get_correlation_id, set_correlation_id

# Initialize settings and logging
settings = get_settings()
logger = setup_logging(settings.log_level)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager for startup and shutdown events."""
    logger.info("Starting SentiMood API", version="1.0.0")

    try:
        init_db()
        logger.info("Database initialization completed")
    except Exception as e:
        logger.error("Database initialization failed", error=str(e))
        raise

    app.state.session_registry = SessionRegistry()

    yield

    logger.info("Shutting down SentiMood API", sessions=len(app.state.session_registry))


# Create FastAPI application
app = FastAPI(
    title="SentiMood API",
    description="AI-powered sentiment analysis for social media texts",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "DELETE"],
    allow_headers=["*"],
)


@app.middleware("http")
async def correlation_id_middleware(request: Request, call_next) -> Response:
    """Add correlation ID to all requests for tracing."""
    correlation_id = set_correlation_id(request.headers.get("X-Correlation-ID"))

    logger.info("Request started",
                method=request.method,
                url=str(request.url),
                client_ip=request.client.host if request.client else "unknown")

    response = await call_next(request)

    response.headers["X-Correlation-ID"] = correlation_id

    logger.info("Request completed",
                method=request.method,
                url=str(request.url),
                status_code=response.status_code)

    return response


def error_response(status_code: int, code: str, message: str) -> JSONResponse:
    """Build the standard error envelope."""
    return JSONResponse(
        status_code=status_code,
        content={
            "error": {
                "code": code,
                "message": message,
                "correlation_id": get_correlation_id()
            }
        }
    )


@app.exception_handler(UnsupportedFormatError)
async def unsupported_format_handler(request: Request, exc: UnsupportedFormatError) -> JSONResponse:
    logger.warning("Unsupported file format", error=str(exc), url=str(request.url))
    return error_response(400, "UNSUPPORTED_FORMAT", str(exc))


@app.exception_handler(EmptyExtractionError)
async def empty_extraction_handler(request: Request, exc: EmptyExtractionError) -> JSONResponse:
    logger.warning("No texts extracted", error=str(exc), url=str(request.url))
    return error_response(422, "EMPTY_EXTRACTION", str(exc))


@app.exception_handler(FileValidationError)
async def file_validation_exception_handler(request: Request, exc: FileValidationError) -> JSONResponse:
    """Handle file validation errors."""
    logger.warning("File validation error", error=str(exc), url=str(request.url))
    return error_response(400, "FILE_VALIDATION_ERROR", str(exc))


@app.exception_handler(EmptyBatchError)
async def empty_batch_handler(request: Request, exc: EmptyBatchError) -> JSONResponse:
    logger.warning("Empty batch rejected", url=str(request.url))
    return error_response(400, "EMPTY_BATCH", str(exc))


@app.exception_handler(BatchTooLargeError)
async def batch_too_large_handler(request: Request, exc: BatchTooLargeError) -> JSONResponse:
    logger.warning("Oversized batch rejected", error=str(exc), url=str(request.url))
    return error_response(400, "BATCH_TOO_LARGE", str(exc))


@app.exception_handler(BatchInProgressError)
async def batch_in_progress_handler(request: Request, exc: BatchInProgressError) -> JSONResponse:
    logger.warning("Batch already in progress", url=str(request.url))
    return error_response(409, "BATCH_IN_PROGRESS", str(exc))


@app.exception_handler(RateLimitedError)
async def rate_limited_handler(request: Request, exc: RateLimitedError) -> JSONResponse:
    logger.warning("Oracle rate limited", url=str(request.url))
    return error_response(429, "RATE_LIMITED", str(exc))


@app.exception_handler(QuotaExhaustedError)
async def quota_exhausted_handler(request: Request, exc: QuotaExhaustedError) -> JSONResponse:
    logger.error("Oracle quota exhausted", url=str(request.url))
    return error_response(402, "QUOTA_EXHAUSTED", str(exc))


@app.exception_handler(OracleUnavailableError)
async def oracle_unavailable_handler(request: Request, exc: OracleUnavailableError) -> JSONResponse:
    """Handle oracle failures and unparseable oracle replies."""
    logger.error("Oracle unavailable", error=str(exc), url=str(request.url))
    return error_response(502, "ORACLE_UNAVAILABLE", "AI analysis failed")


@app.exception_handler(AnalysisNotFoundError)
async def analysis_not_found_handler(request: Request, exc: AnalysisNotFoundError) -> JSONResponse:
    """Handle analysis not found errors."""
    logger.warning("Analysis not found", error=str(exc), url=str(request.url))
    return error_response(404, "ANALYSIS_NOT_FOUND", "The requested analysis does not exist")


@app.exception_handler(PersistenceError)
async def persistence_error_handler(request: Request, exc: PersistenceError) -> JSONResponse:
    """Handle history database failures."""
    logger.error("Persistence failure", error=str(exc), url=str(request.url))
    return error_response(503, "PERSISTENCE_FAILURE", "History service temporarily unavailable")


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle all other unhandled exceptions."""
    logger.error("Unhandled exception",
                 error=str(exc),
                 error_type=type(exc).__name__,
                 url=str(request.url))
    return error_response(500, "INTERNAL_ERROR", "An unexpected error occurred")


# Include routers
app.include_router(sentiment.router)
app.include_router(history.router)


@app.get("/health")
async def health_check() -> Dict[str, str]:
    """Health check endpoint for monitoring."""
    return {
        "status": "healthy",
        "service": "sentimood-api",
        "version": "1.0.0"
    }


@app.get("/")
async def root() -> Dict[str, str]:
    """Root endpoint with API information."""
    return {
        "service": "SentiMood API",
        "version": "1.0.0",
        "description": "AI-powered sentiment analysis for social media texts",
        "docs": "/docs",
        "health": "/health"
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "app.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
        log_level=settings.log_level.lower()
    )
