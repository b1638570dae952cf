"""
Health & Diagnostics Routes
Prescription Scanner

Endpoints:
  GET /api/health        Liveness check
  GET /api/health/llm    Quick Gemini connectivity test
"""

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from app.api.dependencies import get_extraction_client
from app.services.extraction_client import ExtractionClient

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Health"])


@router.get("/health", summary="Service health check")
async def health_check():
    return {"status": "ok"}


@router.get(
    "/health/llm",
    summary="Test LLM connectivity",
    description=(
        "Sends a simple 'Hello' message to Gemini and returns the response. "
        "Use this to verify that the API key and model are correctly configured."
    ),
    responses={
        200: {"description": "LLM responded successfully"},
        503: {"description": "LLM unavailable or misconfigured"},
    },
)
async def test_llm(client: ExtractionClient = Depends(get_extraction_client)):
    logger.info("LLM connectivity test requested")
    result = await client.test_connection()

    if result.get("status") == "ok":
        return result

    # 503 so load balancers / monitoring pick it up
    return JSONResponse(
        status_code=503,
        content={
            "status": "error",
            "error": result.get("error", "Unknown error"),
            "hint": "Check GEMINI_API_KEY in your .env file and verify the model name.",
        },
    )
