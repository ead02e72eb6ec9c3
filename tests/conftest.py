import json
import pytest

from buchhaltung.main import app
from buchhaltung.api.deps import get_storage
from buchhaltung.core import ai
from buchhaltung.core.audit import audit_repo
from buchhaltung.core.config import settings
from buchhaltung.db.storage import InMemoryDocumentStorage

SAMPLE_BUCHUNGEN = [
    {
        "id": 1,
        "datum": "2024-01-05",
        "buchungstext": "Miete Büro",
        "betrag": 1500.0,
        "soll": 6000,
        "haben": 1020,
        "kategorie": "Miete",
        "bereich": "Büro",
    },
    {
        "id": 2,
        "datum": "2024-01-10",
        "buchungstext": "Rechnung Kunde A",
        "betrag": 800.0,
        "soll": 1100,
        "subsoll": 1105,
        "haben": 3200,
        "kategorie": "",
        "bereich": "",
        "originaltext": "RG 2024-001",
    },
    {
        "id": 3,
        "datum": "2024-02-05",
        "buchungstext": "Miete Büro",
        "betrag": 1500.0,
        "soll": 6000,
        "haben": 1020,
        "kategorie": "",
        "bereich": "",
    },
    {
        "id": 4,
        "datum": "2024-02-12",
        "buchungstext": "Lieferant X",
        "betrag": 320.5,
        "soll": 2005,
        "haben": 1020,
        "kategorie": "Material",
        "bereich": "Werkstatt",
    },
]

SAMPLE_IRRELEVANT = [
    {"id": 1, "docname": "Werbung_20240101.pdf", "partner": "Werbung", "datum": "2024-01-01", "betrag": None},
    {"id": 2, "docname": None, "partner": "", "datum": "", "betrag": None},
]

SAMPLE_KONTEN = {"1020": "Bank", "1100": "Debitoren", "6000": "Mietaufwand"}


def write_json(path, payload):
    with open(path, "w", encoding="utf-8") as f:
        json.dump(payload, f, ensure_ascii=False)


def read_json(path):
    with open(path, encoding="utf-8") as f:
        return json.load(f)


@pytest.fixture
def storage():
    return InMemoryDocumentStorage(bucket="test-bucket")


@pytest.fixture(autouse=True)
def data_dir(tmp_path, monkeypatch, storage):
    """Every test gets its own data directory, bucket and audit trail."""
    monkeypatch.setattr(settings, "DATA_DIR", str(tmp_path))
    monkeypatch.setattr(ai, "client", None)

    write_json(tmp_path / "buchungen.json", {"data": SAMPLE_BUCHUNGEN})
    write_json(tmp_path / "irrelevant-docs.json", {"data": SAMPLE_IRRELEVANT})
    write_json(tmp_path / "konto.json", SAMPLE_KONTEN)

    app.dependency_overrides[get_storage] = lambda: storage
    audit_repo.clear()
    yield tmp_path
    app.dependency_overrides.clear()
