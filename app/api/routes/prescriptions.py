"""
Prescription API Routes
Prescription Scanner

Endpoints:
  POST /api/prescriptions            - Append a result to the result store
  GET  /api/prescriptions            - Full stored history
  POST /api/process-prescription     - Stage an uploaded image
  POST /api/extract                  - Extract (and optionally store) an uploaded image
"""

import logging
from pathlib import Path
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Query, UploadFile
from fastapi.responses import JSONResponse

from app.api.dependencies import (
    get_extraction_client,
    get_result_archive,
    get_result_store,
    get_upload_dir,
)
from app.core.config import settings
from app.core.exceptions import ImageTooLargeError, NoImageError, PrescriptionScannerError
from app.schemas.prescription import (
    ErrorResponse,
    ExtractResponse,
    PrescriptionCreate,
    PrescriptionCreated,
    StoredPrescriptionRecord,
    UploadAccepted,
)
from app.services.extraction_client import ExtractionClient
from app.services.result_archive import ResultArchive
from app.services.result_store import ResultStore
from app.utils.file_handler import save_upload

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api", tags=["Prescriptions"])

DEFAULT_IMAGE_MIME = "image/jpeg"


async def read_image(image: Optional[UploadFile]) -> bytes:
    """Uploaded image bytes, enforcing presence and the size limit."""
    if image is None:
        raise NoImageError()
    content = await image.read()
    if not content:
        raise NoImageError()
    if len(content) > settings.max_image_size_bytes:
        raise ImageTooLargeError(
            f"Image too large. Maximum size: {settings.max_image_size_mb}MB"
        )
    return content


# ── Result Store ───────────────────────────────────────────────────
@router.post(
    "/prescriptions",
    response_model=PrescriptionCreated,
    summary="Store a processed prescription",
    responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
async def create_prescription(
    body: PrescriptionCreate,
    store: ResultStore = Depends(get_result_store),
):
    record = await store.append(body.payload())
    return PrescriptionCreated(id=record.id)


@router.get(
    "/prescriptions",
    response_model=List[StoredPrescriptionRecord],
    summary="Get prescription history",
    responses={500: {"model": ErrorResponse}},
)
async def list_prescriptions(store: ResultStore = Depends(get_result_store)):
    return await store.list()


# ── Upload ─────────────────────────────────────────────────────────
@router.post(
    "/process-prescription",
    response_model=UploadAccepted,
    summary="Upload a prescription image",
    description=(
        "Stages the uploaded image under the upload directory. "
        "Extraction is a separate step: call /api/extract or run the client-side flow."
    ),
)
async def process_prescription(
    image: Optional[UploadFile] = File(None, description="Prescription image"),
    upload_dir: Path = Depends(get_upload_dir),
):
    try:
        content = await read_image(image)
    except PrescriptionScannerError as e:
        return JSONResponse(
            status_code=e.status_code,
            content={"status": "error", "errors": [e.message]},
        )

    temp_path = save_upload(content, upload_dir)
    return UploadAccepted(
        message="Image uploaded successfully. Please process it with /api/extract.",
        temp_path=str(temp_path),
    )


# ── Extract ────────────────────────────────────────────────────────
@router.post(
    "/extract",
    response_model=ExtractResponse,
    summary="Extract a prescription image with Gemini",
    responses={400: {"model": ErrorResponse}, 413: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
async def extract_prescription(
    image: Optional[UploadFile] = File(None, description="Prescription image"),
    save: bool = Query(default=True, description="Also append to the store and archive the result"),
    client: ExtractionClient = Depends(get_extraction_client),
    store: ResultStore = Depends(get_result_store),
    archive: ResultArchive = Depends(get_result_archive),
):
    content = await read_image(image)
    mime_type = image.content_type or DEFAULT_IMAGE_MIME

    logger.info("Starting extraction for %s (%d bytes, %s)", image.filename, len(content), mime_type)
    result = await client.extract(content, mime_type)

    if not save:
        return ExtractResponse(result=result)

    payload = result.model_dump(mode="json")
    record = await store.append(payload)
    archived = archive.save(payload)
    return ExtractResponse(result=result, id=record.id, filename=archived.filename)
