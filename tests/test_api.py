import json
from pathlib import Path

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from app.api.middleware.rate_limiter import RateLimitMiddleware

PNG_BYTES = b"\x89PNG\r\n\x1a\nfake-image-bytes"


def test_health(client):
    response = client.get("/api/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}
    assert "X-Request-ID" in response.headers


def test_health_llm(client, fake_genai):
    fake_genai.models.text = "Hello!"

    response = client.get("/api/health/llm")

    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_health_llm_unavailable(client, fake_genai):
    fake_genai.models.exc = RuntimeError("bad key")

    response = client.get("/api/health/llm")

    assert response.status_code == 503
    assert response.json()["error"] == "bad key"


# ── /api/prescriptions ────────────────────────────────────────────
def test_store_and_list_prescriptions(client, sample_result):
    first = client.post("/api/prescriptions", json={"data": sample_result})
    second = client.post("/api/prescriptions", json={"data": {"source": "manual entry"}})

    assert first.status_code == 200
    assert first.json()["success"] is True
    assert second.json()["id"] > first.json()["id"]

    history = client.get("/api/prescriptions").json()
    assert [r["id"] for r in history] == [first.json()["id"], second.json()["id"]]
    assert history[0]["data"] == sample_result
    assert history[1]["data"] == {"source": "manual entry"}
    assert history[0]["created_at"].endswith("Z")


def test_store_rejects_malformed_extraction_result(client, sample_result):
    sample_result["confidence"] = 3
    response = client.post("/api/prescriptions", json={"data": sample_result})

    assert response.status_code == 400
    assert response.json()["code"] == "VALIDATION"
    assert client.get("/api/prescriptions").json() == []


def test_store_rejects_partial_extraction_result(client):
    partial = {"status": "success", "confidence": 0.5, "metadata": {}}

    response = client.post("/api/prescriptions", json={"data": partial})

    assert response.status_code == 400
    assert client.get("/api/prescriptions").json() == []


def test_store_keeps_payload_as_sent(client, sample_result):
    sample_result["source"] = "mobile-app"

    client.post("/api/prescriptions", json={"data": sample_result})

    stored = client.get("/api/prescriptions").json()[0]["data"]
    assert json.dumps(stored) == json.dumps(sample_result)
    assert isinstance(stored["medications"][0]["quantity"], int)


def test_store_requires_data(client):
    response = client.post("/api/prescriptions", json={})

    assert response.status_code == 400
    assert "error" in response.json()


def test_store_failure_is_500(client, tmp_path):
    from app.api.dependencies import get_result_store
    from app.main import app
    from app.services.result_store import JsonFileResultStore

    corrupt = tmp_path / "prescriptions.json"
    corrupt.write_text("not json")
    app.dependency_overrides[get_result_store] = lambda: JsonFileResultStore(corrupt)

    assert client.post("/api/prescriptions", json={"data": {"n": 1}}).status_code == 500
    response = client.get("/api/prescriptions")
    assert response.status_code == 500
    assert response.json()["code"] == "STORE_CORRUPT"


# ── /api/save-result and /api/results ─────────────────────────────
def test_save_list_and_download_result(client, sample_result):
    saved = client.post("/api/save-result", json={"result": sample_result})

    assert saved.status_code == 200
    body = saved.json()
    assert body["success"] is True
    assert body["filename"] == "prescription_Dr._Jane_Smith_2026-10-18T11-34-56.json"
    assert body["message"] == f"Result saved to {body['filename']}"
    assert Path(body["filepath"]).is_file()

    assert client.get("/api/results").json() == {"results": [body["filename"]]}

    download = client.get(f"/api/results/{body['filename']}")
    assert download.status_code == 200
    assert "attachment" in download.headers["content-disposition"]
    assert json.loads(download.content) == sample_result


def test_downloaded_result_is_byte_identical_to_request(client, sample_result):
    saved = client.post("/api/save-result", json={"result": sample_result}).json()

    download = client.get(f"/api/results/{saved['filename']}")

    assert download.content == json.dumps(sample_result, indent=2, ensure_ascii=False).encode("utf-8")


def test_save_result_rejects_partial_result(client, sample_result, archive):
    del sample_result["medications"][1]["confidence"]

    response = client.post("/api/save-result", json={"result": sample_result})

    assert response.status_code == 400
    assert archive.list() == []


def test_save_result_missing(client):
    response = client.post("/api/save-result", json={})

    assert response.status_code == 400
    assert response.json() == {"error": "No result data provided", "code": "MISSING_RESULT"}


def test_list_results_empty(client):
    assert client.get("/api/results").json() == {"results": []}


@pytest.mark.parametrize(
    "encoded_name",
    ["..%2F..%2Fetc%2Fpasswd", "..%5C..%5Cetc%5Cpasswd"],
)
def test_download_traversal_denied(client, archive, encoded_name):
    archive.ensure_directory()

    response = client.get(f"/api/results/{encoded_name}")

    assert response.status_code == 403
    assert response.json() == {"error": "Access denied", "code": "ACCESS_DENIED"}


def test_download_missing(client, archive):
    archive.ensure_directory()

    response = client.get("/api/results/prescription_nobody.json")

    assert response.status_code == 404
    assert response.json() == {"error": "File not found", "code": "NOT_FOUND"}


# ── /api/process-prescription ─────────────────────────────────────
def test_upload_without_image(client):
    response = client.post("/api/process-prescription")

    assert response.status_code == 400
    assert response.json() == {"status": "error", "errors": ["No image uploaded"]}


def test_upload_with_image(client, upload_dir):
    response = client.post(
        "/api/process-prescription",
        files={"image": ("rx.png", PNG_BYTES, "image/png")},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "success"
    assert body["temp_path"]
    staged = Path(body["temp_path"])
    assert staged.parent == upload_dir
    assert staged.read_bytes() == PNG_BYTES


# ── /api/extract ──────────────────────────────────────────────────
def test_extract_stores_and_archives(client, fake_genai, sample_result, store, archive):
    fake_genai.models.text = json.dumps(sample_result)

    response = client.post("/api/extract", files={"image": ("rx.png", PNG_BYTES, "image/png")})

    assert response.status_code == 200
    body = response.json()
    assert body["result"]["metadata"]["doctor_name"] == "Dr. Jane Smith"
    assert body["filename"] in archive.list()
    history = client.get("/api/prescriptions").json()
    assert [r["id"] for r in history] == [body["id"]]
    assert fake_genai.models.calls[0]["contents"][0].parts[1].inline_data.mime_type == "image/png"


def test_extract_without_saving(client, fake_genai, sample_result, archive):
    fake_genai.models.text = json.dumps(sample_result)

    response = client.post(
        "/api/extract?save=false",
        files={"image": ("rx.jpg", PNG_BYTES, "image/jpeg")},
    )

    assert response.status_code == 200
    assert response.json()["id"] is None
    assert archive.list() == []


def test_extract_ai_failure(client, fake_genai):
    fake_genai.models.text = "not json at all"

    response = client.post("/api/extract", files={"image": ("rx.png", PNG_BYTES, "image/png")})

    assert response.status_code == 500
    assert response.json()["code"] == "AI_PARSE_ERROR"


def test_extract_without_image(client):
    response = client.post("/api/extract")

    assert response.status_code == 400
    assert response.json()["code"] == "NO_IMAGE"


# ── rate limiting ─────────────────────────────────────────────────
def test_rate_limiter_blocks_after_limit():
    limited = FastAPI()
    limited.add_middleware(RateLimitMiddleware, max_requests=2, window_seconds=60, paths=("/api/extract",))

    @limited.post("/api/extract")
    async def extract():
        return {"ok": True}

    @limited.get("/api/health")
    async def health():
        return {"status": "ok"}

    test_client = TestClient(limited)
    assert test_client.post("/api/extract").status_code == 200
    assert test_client.post("/api/extract").status_code == 200
    blocked = test_client.post("/api/extract")
    assert blocked.status_code == 429
    assert "Retry-After" in blocked.headers
    assert test_client.get("/api/health").status_code == 200
