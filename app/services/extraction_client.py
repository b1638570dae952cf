"""
Extraction Client — Google Gemini Integration (google-genai AsyncClient)
Prescription Scanner

Sends one prescription image plus a strict response schema to Gemini and
parses the JSON reply into an ExtractionResult. One call per image: no
retries, no response caching.
"""

import json
import logging
import asyncio
import time
from typing import Any, Optional, Union

from google import genai
from google.genai import types
from pydantic import ValidationError

from app.core.config import settings
from app.core.exceptions import (
    AIConfigurationError,
    AIEmptyResponseError,
    AIParseError,
    AIProviderError,
)
from app.schemas.prescription import ExtractionResult
from app.utils.file_handler import decode_image_payload

logger = logging.getLogger(__name__)

# ── Prompt ────────────────────────────────────────────────────────
EXTRACTION_PROMPT = """You are a professional medical OCR engine.
Analyze the provided prescription image and extract all details into the specified JSON format.
Be precise with medication names, dosages, and instructions.
If a field is not found, use an empty string, 0 or false as appropriate.

JSON structure:
{
  "status": "success|partial|error",
  "confidence": float (0-1),
  "extracted_text": "full raw text extracted",
  "medications": [
    {
      "name": "drug name",
      "dosage": "e.g. 500mg",
      "frequency": "e.g. twice a day",
      "duration": "e.g. 7 days",
      "quantity": number,
      "instructions": "any special instructions",
      "confidence": float (0-1)
    }
  ],
  "metadata": {
    "prescription_date": "YYYY-MM-DD",
    "doctor_name": "name of the doctor",
    "image_quality": "good|fair|poor",
    "has_handwriting": boolean
  },
  "errors": []
}"""


# ── Response schema ───────────────────────────────────────────────
MEDICATION_FIELDS = ("name", "dosage", "frequency", "duration", "quantity", "instructions", "confidence")
METADATA_FIELDS = ("prescription_date", "doctor_name", "image_quality", "has_handwriting")
RESULT_FIELDS = ("status", "confidence", "extracted_text", "medications", "metadata", "errors")


def build_response_schema() -> types.Schema:
    """Schema that constrains Gemini to emit exactly the ExtractionResult shape."""
    string = types.Schema(type=types.Type.STRING)
    number = types.Schema(type=types.Type.NUMBER)

    medication = types.Schema(
        type=types.Type.OBJECT,
        properties={
            "name": string,
            "dosage": string,
            "frequency": string,
            "duration": string,
            "quantity": number,
            "instructions": string,
            "confidence": number,
        },
        required=list(MEDICATION_FIELDS),
    )
    metadata = types.Schema(
        type=types.Type.OBJECT,
        properties={
            "prescription_date": string,
            "doctor_name": string,
            "image_quality": types.Schema(type=types.Type.STRING, enum=["good", "fair", "poor"]),
            "has_handwriting": types.Schema(type=types.Type.BOOLEAN),
        },
        required=list(METADATA_FIELDS),
    )
    return types.Schema(
        type=types.Type.OBJECT,
        properties={
            "status": types.Schema(type=types.Type.STRING, enum=["success", "partial", "error"]),
            "confidence": number,
            "extracted_text": string,
            "medications": types.Schema(type=types.Type.ARRAY, items=medication),
            "metadata": metadata,
            "errors": types.Schema(type=types.Type.ARRAY, items=string),
        },
        required=list(RESULT_FIELDS),
    )


def parse_extraction(raw: Optional[str]) -> ExtractionResult:
    """Parse Gemini's text reply. The response schema is the primary contract."""
    if not raw or not raw.strip():
        raise AIEmptyResponseError()
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as e:
        logger.warning("Gemini returned non-JSON text. Preview: %.200s", raw)
        raise AIParseError(f"AI response is not valid JSON: {e}") from e
    try:
        return ExtractionResult.model_validate(payload)
    except ValidationError as e:
        logger.warning("Gemini JSON does not match the extraction schema: %s", e)
        raise AIParseError(f"AI response does not match the extraction schema: {e}") from e


# ── Extraction Client ─────────────────────────────────────────────
class ExtractionClient:
    """Uses google-genai Client.aio for native async calls."""

    def __init__(self, client: Optional[Any] = None, model: Optional[str] = None):
        self._client = client
        self._model_name: str = model or settings.ai_model

    def _ensure_initialized(self) -> None:
        """Create Client once. Raises AIConfigurationError if API key missing."""
        if self._client is not None:
            return
        try:
            api_key = settings.get_ai_api_key()
        except ValueError as e:
            raise AIConfigurationError(str(e)) from e
        self._client = genai.Client(api_key=api_key)
        if self._model_name.startswith("models/"):
            self._model_name = self._model_name[len("models/"):]
        logger.info("Gemini client initialized — model: %s", self._model_name)

    @property
    def model_name(self) -> str:
        return self._model_name

    async def _generate(self, contents: Any, config: Optional[types.GenerateContentConfig] = None,
                        timeout: Optional[float] = None):
        call = self._client.aio.models.generate_content(
            model=self._model_name,
            contents=contents,
            config=config,
        )
        if timeout:
            return await asyncio.wait_for(call, timeout=timeout)
        return await call

    # ── Public: extract ──────────────────────────────────────────
    async def extract(self, image: Union[bytes, str], mime_type: str) -> ExtractionResult:
        """Run a single extraction call for one prescription image."""
        self._ensure_initialized()
        image_bytes = decode_image_payload(image)

        contents = [
            types.Content(
                role="user",
                parts=[
                    types.Part.from_text(text=EXTRACTION_PROMPT),
                    types.Part.from_bytes(data=image_bytes, mime_type=mime_type),
                ],
            )
        ]
        config = types.GenerateContentConfig(
            temperature=settings.ai_temperature,
            response_mime_type="application/json",
            response_schema=build_response_schema(),
        )

        start = time.monotonic()
        try:
            response = await self._generate(contents, config, timeout=settings.ai_timeout_seconds)
        except asyncio.TimeoutError as e:
            logger.error("Gemini call timed out after %.0fs", settings.ai_timeout_seconds)
            raise AIProviderError("AI provider call timed out") from e
        except Exception as e:
            err = str(e) or repr(e)
            logger.error("Gemini error — %s: %s", type(e).__name__, err)
            raise AIProviderError(f"AI provider call failed: {err}") from e

        raw = getattr(response, "text", None)
        logger.info(
            "Gemini response received (%d chars, %.0fms, %d image bytes)",
            len(raw or ""), (time.monotonic() - start) * 1000, len(image_bytes),
        )
        result = parse_extraction(raw)
        logger.info(
            "Extraction DONE — status=%s confidence=%.2f medications=%d",
            result.status, result.confidence, len(result.medications),
        )
        return result

    # ── Public: test connection ───────────────────────────────────
    async def test_connection(self) -> dict:
        try:
            self._ensure_initialized()
            logger.info("Testing Gemini connection with model=%s", self._model_name)
            response = await self._generate("Say hello in one sentence.", timeout=30.0)
            reply = getattr(response, "text", "no text") or "no text"
            logger.info("Gemini test OK: %s", reply[:80])
            return {"status": "ok", "model": self._model_name, "response": reply[:300]}
        except AIConfigurationError as e:
            return {"status": "error", "error": str(e)}
        except Exception as e:
            err = str(e) or repr(e)
            logger.error("LLM test failed — %s: %s", type(e).__name__, err)
            return {"status": "error", "error": err}

    async def close(self) -> None:
        self._client = None
        logger.info("Extraction client closed")


# Singleton
extraction_client = ExtractionClient()
