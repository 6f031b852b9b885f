"""
FastAPI application for the drawing extraction service.

Provides endpoints for:
- One-shot extraction of title block, dimensions and BOM from a drawing
- Session-based extraction with an IDLE/ANALYZING/SUCCESS/ERROR state machine
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from . import __version__
from .config import get_settings
from .models import HealthResponse
from .routers import extract
from .routers import sessions as sessions_router
from .services.extraction import ExtractionFailure, ExtractionService, InvalidInput
from .sessions import SessionNotFound, SessionRegistry
from .state import InvalidTransition

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown."""
    logger.info("Starting Drawing Reader Service...")
    settings = get_settings()
    if settings.debug:
        logging.getLogger().setLevel(logging.DEBUG)

    service = ExtractionService.from_settings(settings)
    app.state.extraction_service = service
    app.state.sessions = SessionRegistry(service, max_sessions=settings.max_sessions)
    logger.info("Services initialized successfully (model=%s)", service.model)
    yield
    logger.info("Shutting down Drawing Reader Service...")
    app.state.sessions.clear()
    await service.aclose()


# Create FastAPI application
app = FastAPI(
    title="Drawing Reader API",
    description="Title block, dimension and BOM extraction from engineering drawings",
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=get_settings().cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# =============================================================================
# Health Endpoints
# =============================================================================


@app.get("/", response_model=HealthResponse)
async def root() -> HealthResponse:
    """Root endpoint - health check."""
    return HealthResponse(status="healthy", message="Drawing Reader API is running", version=__version__)


@app.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """Health check endpoint."""
    return HealthResponse(status="healthy", message="Service is healthy", version=__version__)


# =============================================================================
# Include Routers
# =============================================================================

app.include_router(extract.router)
app.include_router(sessions_router.router)


# =============================================================================
# Exception Handlers
# =============================================================================


@app.exception_handler(InvalidInput)
async def invalid_input_handler(request: Request, exc: InvalidInput):
    """Handle uploads that are not images."""
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": str(exc)},
    )


@app.exception_handler(ExtractionFailure)
async def extraction_failure_handler(request: Request, exc: ExtractionFailure):
    """Handle provider, empty and malformed response errors."""
    return JSONResponse(
        status_code=status.HTTP_502_BAD_GATEWAY,
        content={"detail": str(exc), "error_type": type(exc).__name__},
    )


@app.exception_handler(InvalidTransition)
async def invalid_transition_handler(request: Request, exc: InvalidTransition):
    """Handle events that the session's current state does not accept."""
    return JSONResponse(
        status_code=status.HTTP_409_CONFLICT,
        content={"detail": str(exc)},
    )


@app.exception_handler(SessionNotFound)
async def session_not_found_handler(request: Request, exc: SessionNotFound):
    """Handle unknown session ids."""
    return JSONResponse(
        status_code=status.HTTP_404_NOT_FOUND,
        content={"detail": str(exc)},
    )
