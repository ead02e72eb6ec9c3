"""
Document <-> Buchung assignment bookkeeping in the ledger file.

The object move itself happens in the API layer; these helpers only keep the
``assignedDocuments`` list of a Buchung in step with the bucket.
"""
from typing import Any, Dict, Tuple
import logging

from buchhaltung.core.exceptions import BuchungNotFound
from buchhaltung.core.konten import find_buchung
from buchhaltung.db.json_store import JsonFileStore
from buchhaltung.schemas.buchung import AssignedDocument

logger = logging.getLogger(__name__)


def normalize_assignment(info: Dict[str, Any]) -> Dict[str, Any]:
    """Validate ``info`` (pydantic ValidationError on missing keys) and fill defaults."""
    info = {**info, "fileType": info.get("fileType") or "unknown", "size": info.get("size") or 0}
    return AssignedDocument.model_validate(info).model_dump(by_alias=True)


def record_assignment(store: JsonFileStore, buchung_id, info: Dict[str, Any]) -> Tuple[Dict[str, Any], Dict[str, Any], bool]:
    """
    Append ``info`` to the Buchung's assigned documents.

    Returns ``(buchung, assignment, created)``; ``created`` is False when a
    document with the same ``originalKey`` was already assigned, in which case
    the existing entry is returned and the file is left untouched.
    """
    doc = store.load()
    buchung = find_buchung(doc["data"], buchung_id)
    if buchung is None:
        raise BuchungNotFound(buchung_id)

    assigned = buchung.setdefault("assignedDocuments", [])
    existing = next((d for d in assigned if d.get("originalKey") == info.get("originalKey")), None)
    if existing is not None:
        return buchung, existing, False

    assignment = normalize_assignment(info)
    assigned.append(assignment)
    store.write(doc)
    logger.info(f"Document assigned to buchung {buchung_id}: {assignment['newKey']}")
    return buchung, assignment, True


def remove_assignment(store: JsonFileStore, buchung_id, key: str) -> int:
    """
    Drop every assignment of ``key`` (matched on newKey or originalKey).
    Returns the number of removed entries. The list is deleted once empty.
    """
    doc = store.load()
    buchung = find_buchung(doc["data"], buchung_id)
    if buchung is None or not buchung.get("assignedDocuments"):
        return 0

    before = len(buchung["assignedDocuments"])
    buchung["assignedDocuments"] = [
        d for d in buchung["assignedDocuments"] if d.get("newKey") != key and d.get("originalKey") != key
    ]
    after = len(buchung["assignedDocuments"])
    if not buchung["assignedDocuments"]:
        del buchung["assignedDocuments"]

    store.write(doc)
    logger.info(f"Removed assignment from buchung {buchung_id}. Documents: {before} -> {after}")
    return before - after
