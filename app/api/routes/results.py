"""
Result Archive Routes
Prescription Scanner

Endpoints:
  POST /api/save-result          - Save a result as its own JSON file
  GET  /api/results              - List archived result files
  GET  /api/results/{filename}   - Download one archived result
"""

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import FileResponse

from app.api.dependencies import get_result_archive
from app.core.exceptions import MissingResultError
from app.schemas.prescription import (
    ErrorResponse,
    ResultList,
    SaveResultRequest,
    SaveResultResponse,
)
from app.services.result_archive import ResultArchive

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api", tags=["Result Archive"])


@router.post(
    "/save-result",
    response_model=SaveResultResponse,
    summary="Save an extraction result as a JSON file",
    responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
async def save_result(
    body: SaveResultRequest,
    archive: ResultArchive = Depends(get_result_archive),
):
    if not body.result:
        raise MissingResultError()

    archived = archive.save(body.result)
    return SaveResultResponse(
        filename=archived.filename,
        filepath=archived.filepath,
        message=f"Result saved to {archived.filename}",
    )


@router.get(
    "/results",
    response_model=ResultList,
    summary="List saved results",
    responses={500: {"model": ErrorResponse}},
)
async def list_results(archive: ResultArchive = Depends(get_result_archive)):
    return ResultList(results=archive.list())


@router.get(
    "/results/{filename:path}",
    summary="Download a saved result",
    responses={
        200: {"content": {"application/json": {}}},
        403: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        500: {"model": ErrorResponse},
    },
)
async def download_result(
    filename: str,
    archive: ResultArchive = Depends(get_result_archive),
):
    path = archive.resolve(filename)
    return FileResponse(path, media_type="application/json", filename=path.name)
