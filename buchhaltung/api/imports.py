from fastapi import APIRouter, File, HTTPException, Body, UploadFile
from fastapi.responses import JSONResponse
from typing import Callable, Optional
import json
import logging

from buchhaltung.core import csv_import
from buchhaltung.core.exceptions import CsvImportError
from buchhaltung.core.documents import iso_now
from buchhaltung.db.json_store import buchungen_store, import_store, max_id
from buchhaltung.schemas.imports import BankImportRequest, LedgerImportRequest

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("/api/import")
def stage_bank_import(request: BankImportRequest = Body(...)):
    if not request.data:
        raise HTTPException(status_code=400, detail="Invalid data format")

    store = buchungen_store()
    try:
        largest = max_id(store.records()) if store.exists() else 0
    except (OSError, json.JSONDecodeError) as e:
        logger.error(f"Error reading buchungen.json: {e}")
        raise HTTPException(status_code=500, detail="Failed to read buchungen data")

    staged = csv_import.map_bank_records(
        request.data, request.file_name, largest, request.import_date or iso_now()
    )

    target = import_store()
    try:
        target.write(staged)
    except OSError as e:
        logger.error(f"Error saving import: {e}")
        raise HTTPException(status_code=500, detail="Failed to save import data")

    logger.info(f"Staged {len(staged['data'])} bank records from {request.file_name}")
    return {
        "success": True,
        "message": "Data imported successfully",
        "filePath": str(target.path),
        "recordCount": len(staged["data"]),
    }


def _parse_upload(csv_file: Optional[UploadFile], parser: Callable, description: str, label: str):
    if csv_file is None:
        return JSONResponse(status_code=400, content={"success": False, "message": "Keine Datei hochgeladen"})

    try:
        content = csv_file.file.read().decode("utf-8-sig")
        rows = parser(content)
    except UnicodeDecodeError:
        return JSONResponse(status_code=400, content={"success": False, "message": "Datei ist nicht UTF-8 kodiert"})
    except CsvImportError as e:
        logger.warning(f"{label} import rejected: {e}")
        return JSONResponse(status_code=400, content={"success": False, "message": str(e)})

    logger.info(f"Parsed {len(rows)} {label} rows from {csv_file.filename}")
    return {
        "success": True,
        "data": rows,
        "message": f"{len(rows)} Datensätze erfolgreich verarbeitet",
        "description": description,
    }


def _append_to_ledger(request: LedgerImportRequest, label: str):
    if not request.data:
        raise HTTPException(status_code=400, detail="Keine Daten zum Importieren")

    try:
        imported = buchungen_store().append_with_ids(request.data)
    except (OSError, json.JSONDecodeError) as e:
        logger.error(f"Error importing {label} data: {e}")
        raise HTTPException(status_code=500, detail=f"Fehler beim Importieren: {e}")

    logger.info(f"Imported {len(imported)} {label} rows into buchungen.json")
    return {
        "success": True,
        "message": f"{len(imported)} Datensätze erfolgreich importiert",
        "importedCount": len(imported),
    }


@router.post("/api/importkk")
def parse_credit_card_csv(csvFile: Optional[UploadFile] = File(None)):
    return _parse_upload(csvFile, csv_import.parse_kk_csv, csv_import.kk_description(), "credit card")


@router.put("/api/importkk")
def import_credit_card(request: LedgerImportRequest = Body(...)):
    return _append_to_ledger(request, "credit card")


@router.post("/api/xfact")
def parse_xfact_csv(csvFile: Optional[UploadFile] = File(None)):
    return _parse_upload(csvFile, csv_import.parse_xfact_csv, csv_import.xfact_description(), "xfact")


@router.put("/api/xfact")
def import_xfact(request: LedgerImportRequest = Body(...)):
    return _append_to_ledger(request, "xfact")
