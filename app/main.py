"""
FastAPI Application Entry Point
Prescription Scanner

Upload a prescription photo, extract it with Gemini, keep every result in
the result store and the result file archive.
"""

import logging
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.core.config import settings
from app.core.exceptions import PrescriptionScannerError
from app.core.logging_config import configure_logging
from app.api.dependencies import result_archive, result_store
from app.api.middleware.rate_limiter import RateLimitMiddleware
from app.api.middleware.logging_middleware import LoggingMiddleware
from app.api.routes import health, prescriptions, results
from app.services.extraction_client import extraction_client

# Configure logging before anything else
configure_logging()
logger = logging.getLogger(__name__)


# -- Lifespan (startup/shutdown) -----------------------------------------------
@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifecycle management."""
    logger.info(f"Starting {settings.app_name} v{settings.app_version}")
    logger.info(f"  Environment: {settings.app_env}")
    logger.info(f"  AI Model:    {settings.ai_model}")

    try:
        settings.get_ai_api_key()
        logger.info("  AI API key: configured")
    except ValueError as e:
        logger.warning(f"  AI API key WARNING: {e}")

    await result_store.initialize()
    logger.info(f"  Result store: {settings.store_backend}")
    result_archive.ensure_directory()
    logger.info(f"  Results dir: {result_archive.directory}")
    Path(settings.upload_dir).mkdir(parents=True, exist_ok=True)

    logger.info(f"  {settings.app_name} is ready at http://localhost:{settings.port}")
    yield

    logger.info("Shutting down...")
    await extraction_client.close()
    await result_store.close()
    logger.info("Shutdown complete.")


# -- FastAPI App ---------------------------------------------------------------
app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description=(
        "Extracts medications and prescription metadata from a photo using "
        "Gemini structured output, and keeps every accepted result."
    ),
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
    lifespan=lifespan,
)

# -- Middleware (outermost first) ----------------------------------------------
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(LoggingMiddleware)
app.add_middleware(RateLimitMiddleware)

# -- Routes -------------------------------------------------------------------
app.include_router(health.router)
app.include_router(prescriptions.router)
app.include_router(results.router)


# -- Exception Handlers -------------------------------------------------------
@app.exception_handler(PrescriptionScannerError)
async def domain_exception_handler(request: Request, exc: PrescriptionScannerError):
    log = logger.error if exc.status_code >= 500 else logger.warning
    log(f"{request.method} {request.url.path} failed [{exc.code}]: {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.message, "code": exc.code},
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    logger.warning(f"{request.method} {request.url.path} rejected: {exc.errors()}")
    return JSONResponse(
        status_code=400,
        content={
            "error": "Invalid request body",
            "code": "VALIDATION",
            "detail": str(exc.errors()) if settings.debug else None,
        },
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled exception: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={
            "error": "Internal server error",
            "detail": str(exc) if settings.debug else "An unexpected error occurred",
        },
    )


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "app.main:app",
        host=settings.host,
        port=settings.port,
        reload=not settings.is_production(),
        log_level=settings.log_level.lower(),
    )
