"""
FastAPI Dependencies
Prescription Scanner

Process-wide service instances. Tests swap them via app.dependency_overrides.
"""

from pathlib import Path

from app.core.config import settings
from app.services.extraction_client import ExtractionClient, extraction_client
from app.services.result_archive import ResultArchive
from app.services.result_store import ResultStore, build_result_store

result_store = build_result_store(settings)
result_archive = ResultArchive(settings.results_dir)


def get_result_store() -> ResultStore:
    return result_store


def get_result_archive() -> ResultArchive:
    return result_archive


def get_extraction_client() -> ExtractionClient:
    return extraction_client


def get_upload_dir() -> Path:
    return Path(settings.upload_dir)
