"""FastAPI application for the supplier import intelligence engine."""

import logging
from typing import List

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from api.routers import imports, intelligence_rules
from import_engine.config import get_config
from import_engine.imports.exceptions import (
    ConflictError,
    InvalidStepTransitionError,
    ParseError,
    PersistenceError,
    SessionNotFoundError,
)
from import_engine.imports.exceptions import ValidationError as ImportValidationError

config = get_config()

# Configure logging
logging.basicConfig(level=getattr(logging, config.log_level.upper(), logging.INFO))
logger = logging.getLogger(__name__)

# Create FastAPI app
app = FastAPI(
    title="Supplier Import Intelligence API",
    description="Column mapping, entity normalization and learned rules for supplier spreadsheet imports",
    version="1.0.0",
)

# CORS origins can be set via CORS_ORIGINS env var as comma-separated list
cors_origins: List[str] = [o.strip() for o in config.cors_origins.split(",") if o.strip()]

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins if cors_origins else ["*"],  # Default to * for development
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization", "X-Company-Id"],
)


# Exception handlers
@app.exception_handler(ParseError)
async def parse_error_handler(request: Request, exc: ParseError):
    """Handle unreadable uploads."""
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": str(exc), "error_type": "ParseError"},
    )


@app.exception_handler(ImportValidationError)
async def import_validation_handler(request: Request, exc: ImportValidationError):
    """Handle imports that cannot proceed."""
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"detail": exc.message, "error_type": "ValidationError", "hint": exc.hint},
    )


@app.exception_handler(ConflictError)
async def conflict_handler(request: Request, exc: ConflictError):
    """Handle commits blocked by serial numbers already in inventory."""
    return JSONResponse(
        status_code=status.HTTP_409_CONFLICT,
        content={"detail": exc.message, "error_type": "ConflictError", "serials": exc.serials},
    )


@app.exception_handler(InvalidStepTransitionError)
async def invalid_step_handler(request: Request, exc: InvalidStepTransitionError):
    """Handle operations that do not fit the session's current step."""
    return JSONResponse(
        status_code=status.HTTP_409_CONFLICT,
        content={"detail": str(exc), "error_type": "InvalidStepTransitionError"},
    )


@app.exception_handler(SessionNotFoundError)
async def session_not_found_handler(request: Request, exc: SessionNotFoundError):
    """Handle unknown import sessions."""
    return JSONResponse(
        status_code=status.HTTP_404_NOT_FOUND,
        content={"detail": str(exc), "error_type": "SessionNotFoundError"},
    )


@app.exception_handler(PersistenceError)
async def persistence_error_handler(request: Request, exc: PersistenceError):
    """Handle writes that failed after validation passed."""
    logger.error(f"Persistence error: {exc.message}", exc_info=True)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "detail": exc.message,
            "error_type": "PersistenceError",
            "item": str(exc.item) if exc.item is not None else None,
        },
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Handle request validation errors."""
    # Convert errors to JSON-serializable format
    serializable_errors = []
    for error in exc.errors():
        serializable_errors.append(
            {key: str(value) if isinstance(value, Exception) else value for key, value in error.items()}
        )

    logger.warning(f"Validation error: {serializable_errors}")
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"detail": serializable_errors, "error_type": "RequestValidationError"},
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """Handle unexpected errors."""
    logger.error(f"Unhandled exception: {exc}", exc_info=True)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": str(exc) or "Internal server error", "error_type": type(exc).__name__},
    )


# Include routers
app.include_router(imports.router)
app.include_router(intelligence_rules.router)


@app.get("/")
def root():
    """Root endpoint."""
    return {
        "message": "Supplier Import Intelligence API",
        "version": "1.0.0",
        "docs": "/docs",
    }


@app.get("/health")
def health():
    """Health check endpoint."""
    return {"status": "healthy"}
