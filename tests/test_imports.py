from fastapi.testclient import TestClient
from buchhaltung.main import app
import json

client = TestClient(app)

KK_CSV = (
    "Kreditkartenabrechnung\n"
    "Rechnungsperiode;Buchungsdatum;Buchungsdetails;Gutschrift in CHF;Lastschrift in CHF\n"
    "06.2024;03.06.2024;Digitec Galaxus AG;;249.90\n"
    "06.2024;10.06.2024;Rückerstattung;20.00;\n"
)

XFACT_CSV = (
    "R-Dat\tBezeichnung\tBetrag\tArt\tAdresse\tAuft. Nr\tRech. Nr\tDatum\n"
    "15.05.2024\tWebsite Relaunch\t4'500.00\tDienstleistung\tMuster AG\tA-17\tR-2024-05\t14.05.2024\n"
)

def load_json(path):
    return json.loads(path.read_text(encoding="utf-8"))

def test_bank_import_writes_staged_file(data_dir):
    rows = [
        {"datum": "01.06.2024", "avisierungstext": "Zahlung Kunde", "betrag": "1'200.50", "valuta": "02.06.2024"},
        {"datum": "03.06.2024", "avisierungstext": "Lastschrift Swisscom", "betrag": "-89,90"},
    ]
    response = client.post(
        "/api/import",
        json={"data": rows, "fileName": "1020_Kontoauszug.csv", "importDate": "2024-06-30T10:00:00.000Z"},
    )
    assert response.status_code == 200
    assert response.json()["recordCount"] == 2

    staged = load_json(data_dir / "import.json")
    assert staged["metadata"]["mapping"]["firstFourDigitsFromFilename"] == "1020"
    assert staged["metadata"]["importDate"] == "2024-06-30T10:00:00.000Z"
    first, second = staged["data"]
    assert first["id"] == 5
    assert (first["soll"], first["haben"], first["betrag"]) == (1020, 99999, 1200.5)
    assert first["datum"] == "2024-06-01"
    assert first["kto"] == "2024-06-02"
    assert (second["soll"], second["haben"], second["betrag"]) == (99999, 1020, 89.9)

def test_bank_import_requires_data():
    response = client.post("/api/import", json={"data": [], "fileName": "x.csv"})
    assert response.status_code == 400

def test_kk_upload_is_parsed_not_saved(data_dir):
    files = {"csvFile": ("kk.csv", KK_CSV.encode("utf-8"), "text/csv")}
    response = client.post("/api/importkk", files=files)
    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert len(body["data"]) == 2
    assert body["data"][0]["betrag"] == -249.9
    assert "1013" in body["description"]
    assert len(load_json(data_dir / "buchungen.json")["data"]) == 4

def test_kk_upload_without_header():
    files = {"csvFile": ("kk.csv", b"Datum;Text\n01.01.2024;x\n", "text/csv")}
    response = client.post("/api/importkk", files=files)
    assert response.status_code == 400
    body = response.json()
    assert body["success"] is False
    assert body["message"].startswith("CSV-Header nicht gefunden")

def test_kk_upload_without_file():
    response = client.post("/api/importkk")
    assert response.status_code == 400
    assert response.json()["success"] is False

def test_kk_import_appends_with_new_ids(data_dir):
    rows = [
        {"datum": "2024-06-03", "buchungstext": "Digitec", "betrag": -249.9, "soll": 99999, "haben": 1013},
        {"datum": "2024-06-10", "buchungstext": "Rückerstattung", "betrag": 20.0, "soll": 1013, "haben": 99999},
    ]
    response = client.put("/api/importkk", json={"data": rows})
    assert response.status_code == 200
    assert response.json()["importedCount"] == 2

    ledger = load_json(data_dir / "buchungen.json")["data"]
    assert [b["id"] for b in ledger[-2:]] == [5, 6]
    assert ledger[-1]["buchungstext"] == "Rückerstattung"

def test_kk_import_requires_data():
    response = client.put("/api/importkk", json={"data": []})
    assert response.status_code == 400

def test_xfact_upload():
    files = {"csvFile": ("xfact.txt", XFACT_CSV.encode("utf-8"), "text/plain")}
    response = client.post("/api/xfact", files=files)
    assert response.status_code == 200
    row = response.json()["data"][0]
    assert row["datum"] == "2024-05-15"
    assert row["betrag"] == 4500.0
    assert (row["soll"], row["haben"]) == (1100, 3600)
    assert row["rechNr"] == "R-2024-05"

def test_xfact_upload_header_only():
    files = {"csvFile": ("xfact.txt", b"R-Dat\tBezeichnung\tBetrag\n", "text/plain")}
    response = client.post("/api/xfact", files=files)
    assert response.status_code == 400
    assert "mindestens" in response.json()["message"]

def test_xfact_import_appends(data_dir):
    rows = [{"datum": "2024-05-15", "buchungstext": "Website Relaunch", "betrag": 4500.0, "soll": 1100, "haben": 3600}]
    response = client.put("/api/xfact", json={"data": rows})
    assert response.json()["importedCount"] == 1
    assert load_json(data_dir / "buchungen.json")["data"][-1]["id"] == 5

def test_kk_upload_header_only():
    content = "Rechnungsperiode;Buchungsdatum;Buchungsdetails;Gutschrift in CHF;Lastschrift in CHF\n"
    files = {"csvFile": ("kk.csv", content.encode("utf-8"), "text/csv")}
    response = client.post("/api/importkk", files=files)
    assert response.status_code == 400
    assert response.json() == {"success": False, "message": "Keine gültigen Daten in der CSV-Datei gefunden"}

def test_xfact_upload_without_valid_rows():
    content = "R-Dat\tBezeichnung\tBetrag\n01.03.2024\t\t\n02.03.2024\tOhne Betrag\t\n"
    files = {"csvFile": ("xfact.txt", content.encode("utf-8"), "text/plain")}
    response = client.post("/api/xfact", files=files)
    assert response.status_code == 400
    assert response.json()["message"] == "Keine gültigen Daten in der CSV-Datei gefunden"
