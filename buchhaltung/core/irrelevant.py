from typing import Any, Dict, Iterable, List, Tuple
import logging

from buchhaltung.core.documents import parse_document_name
from buchhaltung.db.json_store import next_id

logger = logging.getLogger(__name__)


def new_entry(records: List[Dict[str, Any]], docname: str, partner: str = "", datum: str = "", betrag=None) -> Dict[str, Any]:
    return {
        "id": next_id(records),
        "docname": docname,
        "partner": partner or "",
        "datum": datum or "",
        "betrag": betrag or None,
    }


def visible(records: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Entries whose object still exists in the bucket."""
    return [r for r in records if r.get("docname") is not None]


def sync_with_storage(records: List[Dict[str, Any]], object_names: Iterable[str]) -> Tuple[int, int]:
    """
    Reconcile the catalog with the names found under ``irrelevant/``.
    New objects get an empty entry; entries whose object vanished keep their
    row but lose the docname. Mutates ``records``; returns ``(added, removed)``.
    """
    names = [n for n in object_names if n]
    known = {r.get("docname") for r in records if r.get("docname")}

    added = 0
    for name in names:
        if name not in known:
            records.append(new_entry(records, name))
            known.add(name)
            added += 1

    present = set(names)
    removed = 0
    for r in records:
        if r.get("docname") and r["docname"] not in present:
            r["docname"] = None
            removed += 1

    logger.info(f"Sync completed: {added} added, {removed} marked as deleted")
    return added, removed


def upsert(records: List[Dict[str, Any]], doc: Dict[str, Any], with_defaults: bool = True) -> Tuple[Dict[str, Any], bool]:
    """
    Merge ``doc`` into the entry with the same docname, or add it.

    ``with_defaults`` adds new entries in the catalog's canonical shape;
    otherwise ``doc`` is stored as sent (plus an id). The id of an existing
    entry is never changed. Returns ``(entry, created)``.
    """
    for index, existing in enumerate(records):
        if existing.get("docname") == doc.get("docname"):
            merged = {**existing, **doc, "id": existing.get("id")}
            records[index] = merged
            return merged, False

    if with_defaults:
        entry = new_entry(records, doc["docname"], doc.get("partner"), doc.get("datum"), doc.get("betrag"))
    else:
        entry = {**doc, "id": next_id(records)}
    records.append(entry)
    return entry, True


def cleanup(records: List[Dict[str, Any]]) -> Tuple[List[Dict[str, Any]], int]:
    kept = [r for r in records if r.get("docname") not in (None, "")]
    return kept, len(records) - len(kept)


def populate_from_storage(records: List[Dict[str, Any]], file_names: Iterable[str]) -> int:
    """
    Add catalog entries for stored objects, reading partner/date/amount from
    the filename. Back-fills missing ids. Returns the number of added entries.
    """
    highest = 0
    for index, r in enumerate(records):
        if not r.get("id"):
            r["id"] = index + 1
        highest = max(highest, r["id"])

    known = {r.get("docname") for r in records}
    added = 0
    for name in file_names:
        if not name:
            continue
        parsed = parse_document_name(name)
        if parsed["docname"] in known:
            continue
        highest += 1
        records.append({"id": highest, **parsed})
        known.add(parsed["docname"])
        added += 1
    return added
