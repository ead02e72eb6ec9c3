import json
import pytest

from buchhaltung import cli
from buchhaltung.db import storage as storage_module

def load_json(path):
    return json.loads(path.read_text(encoding="utf-8"))["data"]

def test_parser_commands():
    parser = cli.create_cli()
    args = parser.parse_args(["restructure-debitoren", "--dry-run"])
    assert args.command == "restructure-debitoren"
    assert args.dry_run is True

    args = parser.parse_args(["serve", "--port", "9000"])
    assert (args.host, args.port, args.reload) == ("127.0.0.1", 9000, False)

def test_no_command_prints_help(capsys):
    assert cli.main([]) == 1
    assert "usage" in capsys.readouterr().out

def test_restructure_debitoren(data_dir):
    (data_dir / "buchungen.json").write_text(
        json.dumps({"data": [{"id": 1, "soll": 1150, "haben": 3200}, {"id": 2, "soll": 1020, "haben": 1000}]}),
        encoding="utf-8",
    )
    assert cli.main(["restructure-debitoren"]) == 0

    ledger = load_json(data_dir / "buchungen.json")
    assert ledger[0] == {"id": 1, "soll": 1100, "haben": 3200, "subsoll": 1150}
    assert ledger[1] == {"id": 2, "soll": 1020, "haben": 1000}

def test_restructure_kreditoren_dry_run(data_dir, capsys):
    before = (data_dir / "buchungen.json").read_text(encoding="utf-8")
    # sample ledger has soll 2005 on Buchung 4
    assert cli.main(["restructure-kreditoren", "--dry-run"]) == 0
    assert "1 of 4" in capsys.readouterr().out
    assert (data_dir / "buchungen.json").read_text(encoding="utf-8") == before

def test_restructure_without_ledger(data_dir):
    (data_dir / "buchungen.json").unlink()
    assert cli.main(["restructure-debitoren"]) == 1

def test_populate_irrelevant(data_dir, storage, monkeypatch):
    monkeypatch.setattr(storage_module, "_storage", storage)
    storage.put_object("irrelevant/Werbung_20240101.pdf", b"x", "application/pdf", {})
    storage.put_object("irrelevant/Post_20240315_12.40.pdf", b"x", "application/pdf", {})

    assert cli.main(["populate-irrelevant"]) == 0

    catalog = load_json(data_dir / "irrelevant-docs.json")
    assert len(catalog) == 3
    assert catalog[-1] == {
        "id": 3,
        "docname": "Post_20240315_12.40.pdf",
        "partner": "Post",
        "datum": "2024-03-15",
        "betrag": 12.4,
    }

def test_populate_irrelevant_without_credentials(monkeypatch):
    monkeypatch.setattr(storage_module, "_storage", None)
    monkeypatch.setattr(cli.settings, "STORAGE_BACKEND", "s3")
    monkeypatch.setattr(cli.settings, "AWS_ACCESS_KEY_ID", None)
    assert cli.main(["populate-irrelevant"]) == 1
