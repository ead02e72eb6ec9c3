from fastapi import APIRouter, Depends, HTTPException, Body, Query
from typing import Any, Dict
import json
import logging

from buchhaltung.api.deps import get_storage
from buchhaltung.core import irrelevant
from buchhaltung.core.exceptions import StorageError
from buchhaltung.db.json_store import irrelevant_store
from buchhaltung.db.storage import IRRELEVANT_PREFIX, DocumentStorage
from buchhaltung.schemas.document import IrrelevantDoc

router = APIRouter()
logger = logging.getLogger(__name__)


def _load_catalog() -> Dict[str, Any]:
    try:
        return irrelevant_store().load_or_empty()
    except (OSError, json.JSONDecodeError) as e:
        logger.error(f"Error reading irrelevant-docs.json: {e}")
        raise HTTPException(status_code=500, detail="Failed to read irrelevant documents")


def _write_catalog(doc: Dict[str, Any]):
    try:
        irrelevant_store().write(doc)
    except OSError as e:
        logger.error(f"Error writing irrelevant-docs.json: {e}")
        raise HTTPException(status_code=500, detail="Failed to save irrelevant documents")


def _entry_fields(entry: IrrelevantDoc) -> Dict[str, Any]:
    # Fields the client sent, including ones the catalog does not know
    return {**entry.model_dump(exclude_unset=True, exclude={"id"}), **(entry.model_extra or {})}


@router.get("/api/irrelevant-docs")
def list_irrelevant(sync: bool = Query(False), storage: DocumentStorage = Depends(get_storage)):
    store = irrelevant_store()
    try:
        doc = store.load_or_empty()
    except (OSError, json.JSONDecodeError) as e:
        logger.error(f"Error reading irrelevant-docs.json: {e}")
        return {"success": True, "data": []}

    if not sync:
        return {"success": True, "data": irrelevant.visible(doc["data"])}

    # Reconciling is best effort; a failed sync still returns the catalog
    added, removed = 0, 0
    try:
        names = [obj.name for obj in storage.list_objects(prefix=IRRELEVANT_PREFIX)]
        added, removed = irrelevant.sync_with_storage(doc["data"], names)
        if added or removed:
            store.write(doc)
    except (StorageError, OSError) as e:
        logger.error(f"Error syncing with storage: {e}")

    return {
        "success": True,
        "data": irrelevant.visible(doc["data"]),
        "synced": True,
        "syncResult": {"added": added, "removed": removed},
    }


@router.post("/api/irrelevant-docs")
def add_irrelevant(entry: IrrelevantDoc = Body(...)):
    if not entry.docname:
        raise HTTPException(status_code=400, detail="docname is required")

    doc = _load_catalog()
    saved, created = irrelevant.upsert(doc["data"], _entry_fields(entry))
    _write_catalog(doc)

    return {
        "success": True,
        "message": "Document added" if created else "Document updated",
        "data": saved,
    }


@router.put("/api/irrelevant-docs")
def update_irrelevant(entry: IrrelevantDoc = Body(...)):
    if not entry.docname:
        raise HTTPException(status_code=400, detail="docname is required")

    doc = _load_catalog()
    saved, _ = irrelevant.upsert(doc["data"], _entry_fields(entry), with_defaults=False)
    _write_catalog(doc)
    return {"success": True, "data": saved}


@router.delete("/api/irrelevant-docs")
def cleanup_irrelevant():
    doc = _load_catalog()
    doc["data"], removed = irrelevant.cleanup(doc["data"])
    _write_catalog(doc)

    logger.info(f"Cleaned up {removed} entries from irrelevant-docs.json")
    return {
        "success": True,
        "message": f"Removed {removed} null entries",
        "removedCount": removed,
    }
