import os

# Must be set before app.core.config builds the settings singleton
os.environ.setdefault("STORE_BACKEND", "memory")
os.environ.setdefault("RATE_LIMIT_REQUESTS", "1000")

from datetime import datetime, timezone
from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient

from app.api.dependencies import (
    get_extraction_client,
    get_result_archive,
    get_result_store,
    get_upload_dir,
)
from app.main import app
from app.services.extraction_client import ExtractionClient
from app.services.result_archive import ResultArchive
from app.services.result_store import InMemoryResultStore

FIXED_NOW = datetime(2026, 10, 18, 11, 34, 56, 789000, tzinfo=timezone.utc)


class FakeModels:
    """Stands in for ``genai.Client().aio.models``."""

    def __init__(self, text=None, exc=None):
        self.text = text
        self.exc = exc
        self.calls = []

    async def generate_content(self, **kwargs):
        self.calls.append(kwargs)
        if self.exc is not None:
            raise self.exc
        return SimpleNamespace(text=self.text)


class FakeGenAIClient:
    def __init__(self, text=None, exc=None):
        self.models = FakeModels(text=text, exc=exc)
        self.aio = SimpleNamespace(models=self.models)


@pytest.fixture
def sample_result():
    return {
        "status": "success",
        "confidence": 0.92,
        "extracted_text": "Dr. Jane Smith\nAmoxicillin 500mg TID x 7 days",
        "medications": [
            {
                "name": "Amoxicillin",
                "dosage": "500mg",
                "frequency": "three times a day",
                "duration": "7 days",
                "quantity": 21,
                "instructions": "Take after meals",
                "confidence": 0.95,
            },
            {
                "name": "Paracetamol",
                "dosage": "650mg",
                "frequency": "as needed",
                "duration": "",
                "quantity": 10,
                "instructions": "",
                "confidence": 0.8,
            },
        ],
        "metadata": {
            "prescription_date": "2026-10-17",
            "doctor_name": "Dr. Jane Smith",
            "image_quality": "good",
            "has_handwriting": True,
        },
        "errors": [],
    }


@pytest.fixture
def fake_genai():
    return FakeGenAIClient()


@pytest.fixture
def extraction_client(fake_genai):
    return ExtractionClient(client=fake_genai, model="gemini-test")


@pytest.fixture
def store():
    return InMemoryResultStore()


@pytest.fixture
def archive(tmp_path):
    return ResultArchive(tmp_path / "results", clock=lambda: FIXED_NOW)


@pytest.fixture
def upload_dir(tmp_path):
    return tmp_path / "uploads"


@pytest.fixture
def client(store, archive, upload_dir, extraction_client):
    app.dependency_overrides[get_result_store] = lambda: store
    app.dependency_overrides[get_result_archive] = lambda: archive
    app.dependency_overrides[get_upload_dir] = lambda: upload_dir
    app.dependency_overrides[get_extraction_client] = lambda: extraction_client
    yield TestClient(app)
    app.dependency_overrides.clear()
