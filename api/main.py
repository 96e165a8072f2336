"""
FastAPI API Service Entry Point
"""

import logging

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from api.models.chat import HealthResponse
from api.routes import chat
from api.routes.chat import get_orchestrator
from planner.chat_adapter import ChatOrchestrator
from shared.config import get_settings
from shared.logging_config import configure_logging

# Configure structured JSON logging on startup
configure_logging()
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Aether Planner API",
    version="1.0.0",
)

# Load settings for CORS configuration
settings = get_settings()
origins = settings.CORS_ORIGINS.split(",")

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
    allow_headers=["*"],
)

app.include_router(chat.router)


@app.on_event("startup")
async def log_startup_mode():
    """Log whether remote intent classification is available."""
    orchestrator = get_orchestrator()
    if orchestrator.is_llm_ready():
        logger.info(f"Remote intent classification enabled | provider={settings.LLM_PROVIDER}")
    else:
        logger.info("Remote intent classification disabled, using local rules only")


# Exception handlers for validation errors
@app.exception_handler(ValidationError)
async def validation_exception_handler(request: Request, exc: ValidationError) -> JSONResponse:
    """Return 400 with validation error details."""
    return JSONResponse(
        status_code=400,
        content={"error": "Validation error", "details": _error_details(exc.errors())},
    )


@app.exception_handler(RequestValidationError)
async def request_validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Malformed request bodies are client errors (400), same shape as above."""
    return JSONResponse(
        status_code=400,
        content={"error": "Validation error", "details": _error_details(exc.errors())},
    )


def _error_details(errors) -> list[dict]:
    # ctx may hold exception instances that are not JSON serializable
    return [
        {key: value for key, value in error.items() if key in ("type", "loc", "msg")}
        for error in errors
    ]


@app.get("/health", response_model=HealthResponse)
async def health_check(
    orchestrator: ChatOrchestrator = Depends(get_orchestrator),
) -> HealthResponse:
    """
    Health check endpoint for Docker health checks and monitoring.

    Reports whether the remote model is configured and how many sessions are
    held in memory. The service is healthy without a remote model (local rules).
    """
    return HealthResponse(
        status="healthy",
        llm_available=orchestrator.is_llm_ready(),
        sessions=len(orchestrator.store),
    )


@app.get("/")
async def root() -> dict[str, str]:
    """Root endpoint"""
    return {"message": "Aether Planner API - Use /health for health checks"}
