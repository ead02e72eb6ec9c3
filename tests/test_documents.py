from fastapi.testclient import TestClient
from buchhaltung.main import app
from buchhaltung.core.config import settings
import base64
import json

client = TestClient(app)

PDF = b"%PDF-1.4 test document"

def load_json(path):
    return json.loads(path.read_text(encoding="utf-8"))["data"]

def put(storage, key, body=PDF, content_type="application/pdf"):
    storage.put_object(key, body, content_type, {})

# ---------------------------------------------------------------------------
# /api/docs
# ---------------------------------------------------------------------------

def test_list_bucket_skips_folder_markers(storage):
    put(storage, "uldocs/", body=b"")  # folder marker
    put(storage, "uldocs/2024-06-12T08-30-00-123Z-rechnung.pdf")
    put(storage, "docs/4_beleg.png", content_type="image/png")

    response = client.get("/api/docs")
    assert response.status_code == 200
    files = response.json()["data"]["files"]
    assert {f["key"] for f in files} == {"uldocs/2024-06-12T08-30-00-123Z-rechnung.pdf", "docs/4_beleg.png"}
    png = next(f for f in files if f["key"] == "docs/4_beleg.png")
    assert png["fileName"] == "4_beleg.png"
    assert png["fileType"] == "image/png"
    assert png["url"].endswith("docs/4_beleg.png")
    assert "signedUrl" in png

def test_list_empty_bucket():
    response = client.get("/api/docs")
    assert response.json() == {"success": True, "data": {"files": []}, "message": "No files found in bucket"}

def test_move_to_irrelevant_updates_catalog(storage, data_dir):
    put(storage, "uldocs/Spam_20240301_10.00.pdf")

    response = client.put("/api/docs", json={"key": "uldocs/Spam_20240301_10.00.pdf", "action": "move-to-irrelevant"})
    assert response.status_code == 200
    assert response.json()["newKey"] == "irrelevant/Spam_20240301_10.00.pdf"
    assert [o.key for o in storage.list_objects()] == ["irrelevant/Spam_20240301_10.00.pdf"]

    catalog = load_json(data_dir / "irrelevant-docs.json")
    entry = catalog[-1]
    assert entry["docname"] == "Spam_20240301_10.00.pdf"
    assert entry["id"] == 3

def test_move_with_invalid_action():
    response = client.put("/api/docs", json={"key": "uldocs/a.pdf", "action": "delete"})
    assert response.status_code == 400
    assert response.json() == {"success": False, "error": "Invalid action"}

def test_move_missing_object():
    response = client.put("/api/docs", json={"key": "uldocs/missing.pdf", "action": "move-to-irrelevant"})
    assert response.status_code == 500
    assert response.json()["error"] == "Failed to move document"

# ---------------------------------------------------------------------------
# /api/docs/upload
# ---------------------------------------------------------------------------

def test_upload_to_inbox(storage):
    files = {"file": ("Rechnung Mueller.pdf", PDF, "application/pdf")}
    response = client.post("/api/docs/upload", files=files)
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["fileSize"] == len(PDF)
    assert data["s3Key"].startswith("uldocs/")
    assert data["s3Key"].endswith("-Rechnung Mueller.pdf")

    stored = storage.get_object(data["s3Key"])
    assert stored.metadata["folder"] == "uldocs"
    assert stored.metadata["original-name"] == "Rechnung Mueller.pdf"
    assert base64.b64decode(stored.metadata["original-name-b64"]).decode("utf-8") == "Rechnung Mueller.pdf"

def test_upload_duplicate_is_skipped(storage):
    put(storage, "uldocs/2024-06-12T08-30-00-123Z-rechnung.pdf")
    files = {"file": ("rechnung.pdf", PDF, "application/pdf")}
    response = client.post("/api/docs/upload", files=files)
    assert response.status_code == 200
    assert response.json()["message"] == "File already exists, skipped"
    assert len(storage.list_objects(prefix="uldocs/")) == 1

def test_upload_rejects_empty_file():
    files = {"file": ("leer.pdf", b"", "application/pdf")}
    response = client.post("/api/docs/upload", files=files)
    assert response.status_code == 400

def test_upload_rejects_disallowed_type():
    files = {"file": ("script.sh", b"echo hi", "application/x-sh")}
    response = client.post("/api/docs/upload", files=files)
    assert response.status_code == 400
    assert response.json()["detail"] == "File type not allowed"

def test_upload_rejects_large_file(monkeypatch):
    monkeypatch.setattr(settings, "MAX_UPLOAD_SIZE", 10)
    files = {"file": ("gross.pdf", PDF, "application/pdf")}
    response = client.post("/api/docs/upload", files=files)
    assert response.status_code == 400
    assert "exceeds" in response.json()["detail"]

def test_list_inbox_marks_irrelevant(storage):
    put(storage, "uldocs/2024-06-12T08-30-00-123Z-rechnung.pdf")
    put(storage, "irrelevant/werbung.pdf")
    put(storage, "docs/1_zugeordnet.pdf")

    response = client.get("/api/docs/upload")
    files = response.json()["data"]["files"]
    assert len(files) == 2
    by_name = {f["fileName"]: f for f in files}
    assert by_name["rechnung.pdf"]["isIrrelevant"] is False
    assert by_name["werbung.pdf"]["isIrrelevant"] is True

def test_delete_inbox_document(storage):
    put(storage, "uldocs/a.pdf")
    response = client.request("DELETE", "/api/docs/upload", json={"fileKey": "uldocs/a.pdf"})
    assert response.status_code == 200
    assert response.json()["data"]["deletedKey"] == "uldocs/a.pdf"
    assert storage.list_objects() == []

def test_delete_inbox_without_key():
    response = client.request("DELETE", "/api/docs/upload", json={})
    assert response.status_code == 400

# ---------------------------------------------------------------------------
# /api/upload
# ---------------------------------------------------------------------------

def test_assign_moves_object_and_updates_ledger(storage, data_dir):
    put(storage, "uldocs/beleg.pdf")
    payload = {"action": "assign", "fileKey": "uldocs/beleg.pdf", "buchungId": 2, "fileName": "beleg.pdf"}
    response = client.post("/api/upload", json=payload)
    assert response.status_code == 200
    assert response.json()["data"]["newKey"] == "docs/2_beleg.pdf"
    assert [o.key for o in storage.list_objects()] == ["docs/2_beleg.pdf"]

    buchung = load_json(data_dir / "buchungen.json")[1]
    assert buchung["assignedDocuments"][0]["originalKey"] == "uldocs/beleg.pdf"
    assert buchung["assignedDocuments"][0]["fileType"] == "application/pdf"

def test_assign_from_irrelevant_folder(storage):
    put(storage, "irrelevant/beleg.pdf")
    payload = {"action": "assign", "fileKey": "irrelevant/beleg.pdf", "buchungId": 1}
    response = client.post("/api/upload", json=payload)
    assert response.json()["data"]["newKey"] == "docs/1_beleg.pdf"

def test_assign_survives_unknown_buchung(storage, data_dir):
    put(storage, "uldocs/beleg.pdf")
    payload = {"action": "assign", "fileKey": "uldocs/beleg.pdf", "buchungId": 999}
    response = client.post("/api/upload", json=payload)
    # the move succeeded, the ledger update is best effort
    assert response.status_code == 200
    assert all("assignedDocuments" not in b for b in load_json(data_dir / "buchungen.json"))

def test_assign_missing_object():
    payload = {"action": "assign", "fileKey": "uldocs/nichts.pdf", "buchungId": 1}
    response = client.post("/api/upload", json=payload)
    assert response.status_code == 404
    assert response.json()["detail"] == "File not found"

def test_unknown_json_action():
    response = client.post("/api/upload", json={"action": "explode"})
    assert response.status_code == 400
    assert response.json()["detail"] == "Unknown action"

def test_upload_for_buchung(storage):
    files = {"file": ("quittung.png", b"\x89PNG data", "image/png")}
    response = client.post("/api/upload", files=files, data={"buchungId": "4"})
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["buchungId"] == "4"
    assert data["s3Key"].startswith("buchungen/buchung-4/")
    assert storage.get_object(data["s3Key"]).metadata["buchung-id"] == "4"

def test_upload_for_buchung_requires_id():
    files = {"file": ("quittung.png", b"\x89PNG data", "image/png")}
    response = client.post("/api/upload", files=files)
    assert response.status_code == 400

def test_list_buchung_documents(storage):
    put(storage, "docs/2_beleg.pdf")
    put(storage, "docs/21_anderer.pdf")

    response = client.get("/api/upload", params={"buchungId": 2})
    data = response.json()["data"]
    assert data["buchungId"] == "2"
    assert [f["fileName"] for f in data["files"]] == ["beleg.pdf"]

def test_list_buchung_documents_requires_id():
    response = client.get("/api/upload")
    assert response.status_code == 400
    assert response.json()["detail"] == "buchungId parameter is required"

def test_unassign_moves_back_and_updates_ledger(storage, data_dir):
    put(storage, "uldocs/beleg.pdf")
    client.post("/api/upload", json={"action": "assign", "fileKey": "uldocs/beleg.pdf", "buchungId": 2})

    response = client.request("DELETE", "/api/upload", json={"fileKey": "docs/2_beleg.pdf", "buchungId": 2})
    assert response.status_code == 200
    assert [o.key for o in storage.list_objects()] == ["uldocs/beleg.pdf"]
    assert "assignedDocuments" not in load_json(data_dir / "buchungen.json")[1]

def test_delete_buchung_upload(storage):
    put(storage, "buchungen/buchung-4/2024-06-12T08-30-00-123Z-quittung.png")
    response = client.request(
        "DELETE", "/api/upload", json={"fileKey": "buchungen/buchung-4/2024-06-12T08-30-00-123Z-quittung.png"}
    )
    assert response.status_code == 200
    assert storage.list_objects() == []

def test_rename_keeps_folder_and_extension(storage):
    put(storage, "docs/2_scan001.pdf")
    response = client.patch("/api/upload/rename", json={"oldKey": "docs/2_scan001.pdf", "newFileName": "2_Miete: März"})
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["newKey"] == "docs/2_Miete_ März.pdf"
    assert data["newFileName"] == "2_Miete_ März.pdf"
    assert [o.key for o in storage.list_objects()] == ["docs/2_Miete_ März.pdf"]

def test_rename_to_same_name_keeps_document(storage):
    put(storage, "uldocs/Rechnung.pdf")
    response = client.patch("/api/upload/rename", json={"oldKey": "uldocs/Rechnung.pdf", "newFileName": "Rechnung"})
    assert response.status_code == 200
    assert response.json()["data"]["newKey"] == "uldocs/Rechnung.pdf"
    assert [o.key for o in storage.list_objects()] == ["uldocs/Rechnung.pdf"]

def test_rename_requires_both_fields():
    response = client.patch("/api/upload/rename", json={"oldKey": "docs/2_scan001.pdf"})
    assert response.status_code == 400

def test_rename_missing_object():
    response = client.patch("/api/upload/rename", json={"oldKey": "docs/404.pdf", "newFileName": "x"})
    assert response.status_code == 404
