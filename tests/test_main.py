import time

import pytest
from fastapi.testclient import TestClient

from docintel.main import app

REPORT_TEXT = (
    b"Quarterly revenue report for the finance team. Revenue grew in every region. "
    b"Costs stayed flat and the outlook is positive."
)


@pytest.fixture(scope="module")
def client():
    with TestClient(app) as test_client:
        yield test_client


def wait_for_status(client, doc_id, statuses=("ready", "error"), timeout=10.0):
    deadline = time.monotonic() + timeout
    while True:
        document = client.get(f"/documents/{doc_id}").json()
        if document["status"] in statuses:
            return document
        if time.monotonic() > deadline:
            raise AssertionError(f"{doc_id} stuck in status {document['status']}")
        time.sleep(0.05)


@pytest.fixture(scope="module")
def report(client):
    response = client.post(
        "/documents",
        files={"file": ("report.txt", REPORT_TEXT, "text/plain")},
        data={"last_modified": "2024-05-01T10:00:00"},
    )
    assert response.status_code == 202
    return wait_for_status(client, response.json()["id"])


def test_health_before_startup():
    response = TestClient(app).get("/health")
    assert response.status_code == 503
    assert response.json()["status"] == "unhealthy"


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "healthy"
    assert body["storage"]["primary"] == "indexed"
    assert body["storage"]["capabilities"]["primary"]["persistent"] is True
    assert body["queue"]["worker_running"] is True


def test_cors_headers(client):
    response = client.options(
        "/documents",
        headers={"Origin": "http://localhost:3000", "Access-Control-Request-Method": "GET"},
    )
    assert response.status_code == 200
    assert response.headers["access-control-allow-origin"] == "http://localhost:3000"


# Documents

def test_upload_is_processed_to_ready(report):
    assert report["id"].startswith("doc_")
    assert report["status"] == "ready"
    assert report["original_file"]["extension"] == "txt"
    assert report["original_file"]["last_modified"].startswith("2024-05-01T10:00:00")
    assert report["summary"] is not None
    assert report["analysis"]["model_used"] == "local-fallback"
    assert report["extraction_details"]["method"] == "txt"


def test_upload_returns_uploading_record(client):
    response = client.post("/documents", files={"file": ("memo.txt", b"Short memo.", "text/plain")})
    assert response.status_code == 202
    body = response.json()
    assert body["status"] == "uploading"
    assert body["original_file"]["size"] == len(b"Short memo.")
    wait_for_status(client, body["id"])


def test_list_documents(client, report):
    response = client.get("/documents")
    assert response.status_code == 200
    assert report["id"] in [document["id"] for document in response.json()]


def test_unknown_document_is_404(client):
    response = client.get("/documents/doc_missing")
    assert response.status_code == 404
    body = response.json()
    assert body["kind"] == "NOT_FOUND"
    assert body["path"] == "/documents/doc_missing"


@pytest.mark.parametrize("filename, content", [
    ("data.xlsx", b"binary"),
    ("empty.txt", b""),
    ("bad|name.txt", b"text"),
])
def test_rejected_uploads(client, filename, content):
    response = client.post("/documents", files={"file": (filename, content, "application/octet-stream")})
    assert response.status_code == 400
    assert response.json()["kind"] == "UNSUPPORTED_TYPE"


def test_oversized_upload_is_413(client, monkeypatch):
    monkeypatch.setattr("docintel.utils.validators.MAX_FILE_SIZE", 10)
    response = client.post("/documents", files={"file": ("big.txt", b"x" * 11, "text/plain")})
    assert response.status_code == 413
    assert response.json()["kind"] == "FILE_TOO_LARGE"


def test_update_tags_and_notes(client, report):
    response = client.put(f"/documents/{report['id']}/tags", json={"tags": [" Finance ", "finance", "Q3", ""]})
    assert response.status_code == 200
    assert response.json()["tags"] == ["Finance", "Q3"]

    response = client.put(f"/documents/{report['id']}/notes", json={"notes": "  Shared with the board  "})
    assert response.json()["notes"] == "Shared with the board"

    response = client.put(f"/documents/{report['id']}/notes", json={"notes": "   "})
    assert response.json()["notes"] is None


def test_retry_ready_document(client, report):
    response = client.post(f"/documents/{report['id']}/retry")
    assert response.status_code == 202
    assert response.json()["retry_count"] == 1

    document = wait_for_status(client, report["id"])
    assert document["status"] == "ready"
    assert document["retry_count"] == 1


def test_retry_unknown_document(client):
    assert client.post("/documents/doc_missing/retry").status_code == 404


def test_queue_stats(client, report):
    response = client.get("/documents/queue/stats")
    assert response.status_code == 200
    body = response.json()
    assert body["total_enqueued"] >= 1
    assert body["completed"] >= 1
    assert any(event["document_id"] == report["id"] for event in body["recent_events"])


# Search

def test_search(client, report):
    response = client.post("/search", json={"query": "quarterly revenue", "options": {"search_type": "fulltext"}})
    assert response.status_code == 200
    body = response.json()
    assert body["search_type"] == "fulltext"
    assert report["id"] in [result["document"]["id"] for result in body["results"]]
    assert body["results"][0]["snippets"]


def test_search_without_matches_returns_suggestions(client, report):
    response = client.post("/search", json={"query": "zebra", "filters": {"status": ["error"]}})
    assert response.status_code == 200
    body = response.json()
    assert body["results"] == []
    assert body["suggestions"]


def test_unmatched_query_returns_suggestions(client, report):
    response = client.post("/search", json={"query": "qwertyzzz"})
    assert response.status_code == 200
    body = response.json()
    assert body["results"] == []
    assert "policy documents" in body["suggestions"]


def test_search_rejects_invalid_options(client):
    response = client.post("/search", json={"query": "revenue", "options": {"search_type": "psychic"}})
    assert response.status_code == 422


def test_suggestions_use_document_tags(client, report):
    client.put(f"/documents/{report['id']}/tags", json={"tags": ["Finance"]})
    response = client.get("/search/suggestions", params={"q": "fin"})
    assert response.status_code == 200
    assert "finance" in response.json()


def test_search_cache_endpoints(client, report):
    client.post("/search", json={"query": "outlook"})
    assert client.get("/search/cache/stats").json()["entries"] >= 1

    assert client.delete("/search/cache").status_code == 200
    assert client.get("/search/cache/stats").json()["entries"] == 0


def test_similar_documents(client, report):
    response = client.get(f"/documents/{report['id']}/similar", params={"limit": 3})
    assert response.status_code == 200
    assert all(item["document"]["id"] != report["id"] for item in response.json())


# Storage

def test_storage_stats_and_integrity(client, report):
    stats = client.get("/storage/stats")
    assert stats.status_code == 200
    assert stats.json()["item_count"] >= 1

    integrity = client.get("/storage/integrity")
    assert integrity.status_code == 200
    assert integrity.json()["valid"] is True


def test_backup_and_restore(client, report):
    snapshot = client.get("/storage/backup").json()
    assert snapshot["version"] == "1.0"
    assert report["id"] in [record["key"] for record in snapshot["configurations"]]

    response = client.post("/storage/restore", json=snapshot)
    assert response.status_code == 200
    assert response.json()["records"] == len(snapshot["configurations"])
    assert client.get(f"/documents/{report['id']}").status_code == 200


def test_malformed_restore_is_rejected(client):
    response = client.post("/storage/restore", json={"records": []})
    assert response.status_code == 503
    assert response.json()["kind"] == "STORAGE_ERROR"


def test_storage_cleanup(client):
    assert client.post("/storage/cleanup").status_code == 200


def test_delete_document(client):
    created = client.post("/documents", files={"file": ("temp.txt", b"Temporary file.", "text/plain")}).json()
    wait_for_status(client, created["id"])

    response = client.delete(f"/documents/{created['id']}")
    assert response.status_code == 200
    assert response.json()["id"] == created["id"]
    assert client.get(f"/documents/{created['id']}").status_code == 404
    assert client.delete(f"/documents/{created['id']}").status_code == 404
