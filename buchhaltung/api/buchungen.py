from fastapi import APIRouter, HTTPException, Body
from fastapi.responses import JSONResponse
from pydantic import ValidationError
import json
import logging

from buchhaltung.core import ai
from buchhaltung.core.assignment import record_assignment
from buchhaltung.core.exceptions import BuchungNotFound
from buchhaltung.core.konten import apply_update, find_buchung
from buchhaltung.db.json_store import buchungen_store, max_id
from buchhaltung.schemas.buchung import AssignRequest, Buchung, BuchungUpdate
from buchhaltung.schemas.kategorie import KategorieVorschlag

router = APIRouter()
logger = logging.getLogger(__name__)


def _load_buchungen():
    try:
        return buchungen_store().records()
    except (OSError, json.JSONDecodeError) as e:
        logger.error(f"Error loading buchungen: {e}")
        raise HTTPException(status_code=500, detail="Failed to load buchungen data")


@router.get("/api/buchungen")
def list_buchungen():
    return {"success": True, "data": _load_buchungen()}


@router.get("/api/buchung/{buchung_id}")
def get_buchung(buchung_id: str):
    buchung = find_buchung(_load_buchungen(), buchung_id)
    if buchung is None:
        raise HTTPException(status_code=404, detail=f"Buchung {buchung_id} nicht gefunden")
    return JSONResponse(buchung, headers={"Cache-Control": "public, max-age=60"})


@router.post("/api/buchungen")
def create_buchung(buchung: Buchung = Body(...)):
    store = buchungen_store()
    try:
        doc = store.load()
    except (OSError, json.JSONDecodeError) as e:
        logger.error(f"Error creating buchung: {e}")
        raise HTTPException(status_code=500, detail="Failed to create buchung")

    record = buchung.model_dump(exclude_none=True)
    if buchung.id is None:
        record = {"id": max_id(doc["data"]) + 1, **record}
    elif find_buchung(doc["data"], buchung.id) is not None:
        raise HTTPException(status_code=409, detail=f"Buchung with ID {buchung.id} already exists")

    doc["data"].append(record)
    store.write(doc)
    logger.info(f"Buchung {record['id']} created")
    return {"success": True, "buchung": record}


@router.put("/api/buchungen")
def update_buchung(update: BuchungUpdate = Body(...)):
    store = buchungen_store()
    try:
        doc = store.load()
    except (OSError, json.JSONDecodeError) as e:
        logger.error(f"Error updating buchung: {e}")
        raise HTTPException(status_code=500, detail="Failed to update buchung")

    index = next((i for i, b in enumerate(doc["data"]) if b.get("id") == update.id), -1)
    if index == -1:
        raise HTTPException(status_code=404, detail=f"Buchung with ID {update.id} not found")

    fields = update.model_dump(exclude_unset=True, exclude={"id"})
    try:
        doc["data"][index] = apply_update(doc["data"][index], fields)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=f"Invalid value: {e}")

    store.write(doc)
    return {"success": True, "buchung": doc["data"][index]}


@router.post("/api/buchungen/assign")
def assign_document(request: AssignRequest = Body(...)):
    if not request.buchung_id or not request.document_info:
        raise HTTPException(status_code=400, detail="buchungId and documentInfo are required")

    try:
        buchung, assignment, created = record_assignment(
            buchungen_store(), request.buchung_id, request.document_info
        )
    except FileNotFoundError:
        logger.error("Error saving document assignment: buchungen file missing")
        raise HTTPException(status_code=404, detail="Buchungen file not found")
    except BuchungNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=f"Invalid documentInfo: {e.errors()[0]['loc']}")
    except (OSError, json.JSONDecodeError) as e:
        logger.error(f"Error saving document assignment: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to save assignment: {e}")

    if not created:
        return {"success": True, "message": "Document already assigned", "data": assignment}

    return {
        "success": True,
        "message": "Document assignment saved",
        "data": {
            "buchungId": request.buchung_id,
            "assignmentInfo": assignment,
            "totalAssignments": len(buchung["assignedDocuments"]),
        },
    }


@router.post("/api/buchungen/{buchung_id}/kategorie-vorschlag", response_model=KategorieVorschlag)
def suggest_kategorie(buchung_id: int):
    """
    Suggest kategorie/bereich for a Buchung.
    Read-only: the client decides whether to save the suggestion via PUT.
    """
    buchungen = _load_buchungen()
    buchung = find_buchung(buchungen, buchung_id)
    if buchung is None:
        raise HTTPException(status_code=404, detail=f"Buchung {buchung_id} nicht gefunden")
    return ai.suggest_kategorie(buchung, buchungen)
