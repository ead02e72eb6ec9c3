"""
Source document endpoints backed by object storage.

``/api/docs*`` manages the inbox of uploaded documents (``uldocs/``) and the
irrelevant pile; ``/api/upload*`` manages documents attached to a Buchung.
"""
from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, Request, UploadFile, Body
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool
from starlette.datastructures import UploadFile as FormFile
from pydantic import ValidationError
from typing import Any, Dict, List, Optional
import json
import logging

from buchhaltung.api.deps import get_storage, storage_http_error
from buchhaltung.core import irrelevant
from buchhaltung.core.assignment import record_assignment, remove_assignment
from buchhaltung.core.config import settings
from buchhaltung.core.documents import (
    ALLOWED_UPLOAD_TYPES,
    assigned_key,
    encode_metadata_name,
    file_type_from_name,
    irrelevant_key,
    is_assigned_key,
    iso_now,
    key_basename,
    renamed_key,
    sanitize_filename,
    strip_buchung_prefix,
    strip_timestamp_prefix,
    unassigned_key,
    upload_timestamp,
)
from buchhaltung.core.exceptions import BuchungNotFound, StorageError
from buchhaltung.db.json_store import buchungen_store, irrelevant_store
from buchhaltung.db.storage import (
    ASSIGNED_PREFIX,
    BUCHUNG_UPLOAD_PREFIX,
    IRRELEVANT_PREFIX,
    UPLOAD_PREFIX,
    DocumentStorage,
    StoredObject,
)
from buchhaltung.schemas.document import AssignAction, DocumentFile, FileKeyRequest, MoveDocumentRequest, RenameRequest

router = APIRouter()
logger = logging.getLogger(__name__)

MOVE_TO_IRRELEVANT = "move-to-irrelevant"


def _file_entry(storage: DocumentStorage, obj: StoredObject, file_name: str, **extra) -> Dict[str, Any]:
    return DocumentFile(
        key=obj.key,
        file_name=file_name,
        size=obj.size or 0,
        last_modified=obj.last_modified.isoformat() if obj.last_modified else None,
        file_type=file_type_from_name(file_name),
        signed_url=storage.signed_url(obj.key, settings.SIGNED_URL_EXPIRY),
        **extra,
    ).model_dump(by_alias=True, exclude_none=True)


def _newest_first(files: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    # ISO timestamps of one bucket sort chronologically as strings
    return sorted(files, key=lambda f: f.get("lastModified") or "", reverse=True)


def _validate_upload(file_name: Optional[str], content_type: Optional[str], content: bytes):
    if not file_name or not content:
        raise HTTPException(status_code=400, detail="No file provided or file is empty")
    if len(content) > settings.MAX_UPLOAD_SIZE:
        raise HTTPException(
            status_code=400,
            detail=f"File size exceeds {settings.MAX_UPLOAD_SIZE // (1024 * 1024)}MB limit",
        )
    if content_type not in ALLOWED_UPLOAD_TYPES:
        raise HTTPException(status_code=400, detail="File type not allowed")


def _store_upload(
    storage: DocumentStorage,
    folder_prefix: str,
    file_name: str,
    content_type: str,
    content: bytes,
    metadata: Dict[str, str],
) -> Dict[str, Any]:
    """Upload below ``folder_prefix`` unless a file with the same name is already there."""
    sanitized = sanitize_filename(file_name)

    existing = storage.list_objects(prefix=folder_prefix)
    if any(strip_timestamp_prefix(obj.name) == sanitized for obj in existing):
        logger.info(f'File "{sanitized}" already exists in {folder_prefix}, skipping upload')
        return {"success": True, "message": "File already exists, skipped", "url": "", "key": ""}

    uploaded_at = iso_now()
    s3_key = f"{folder_prefix}{upload_timestamp()}-{sanitized}"
    etag = storage.put_object(
        s3_key,
        content,
        content_type,
        {**encode_metadata_name(file_name), "upload-timestamp": uploaded_at, **metadata},
    )
    logger.info(f"File uploaded successfully: {s3_key}")

    return {
        "success": True,
        "message": "File uploaded successfully",
        "data": {
            "fileName": file_name,
            "fileSize": len(content),
            "fileType": content_type,
            "s3Key": s3_key,
            "s3Url": f"https://{storage.bucket}.s3.amazonaws.com/{s3_key}",
            "uploadTimestamp": uploaded_at,
            "etag": etag,
        },
    }


# ---------------------------------------------------------------------------
# Whole bucket
# ---------------------------------------------------------------------------

@router.get("/api/docs")
def list_all_documents(storage: DocumentStorage = Depends(get_storage)):
    try:
        objects = storage.list_objects(max_keys=1000)
        # Zero-size objects are folder markers
        files = [
            _file_entry(storage, obj, key_basename(obj.key), url=storage.public_url(obj.key))
            for obj in objects
            if obj.size
        ]
    except StorageError as e:
        logger.error(f"Error fetching documents from storage: {e}")
        return JSONResponse(
            status_code=500,
            content={"success": False, "error": "Failed to fetch documents", "details": str(e)},
        )

    if not files:
        return {"success": True, "data": {"files": []}, "message": "No files found in bucket"}
    return {"success": True, "data": {"files": files}, "message": f"Found {len(files)} documents"}


@router.put("/api/docs")
def move_document(request: MoveDocumentRequest = Body(...), storage: DocumentStorage = Depends(get_storage)):
    if request.action != MOVE_TO_IRRELEVANT:
        return JSONResponse(status_code=400, content={"success": False, "error": "Invalid action"})
    if not request.key:
        return JSONResponse(status_code=400, content={"success": False, "error": "key is required"})

    file_name = key_basename(request.key)
    new_key = irrelevant_key(request.key)
    try:
        storage.move_object(request.key, new_key)
    except StorageError as e:
        logger.error(f"Error moving document: {e}")
        return JSONResponse(
            status_code=500,
            content={"success": False, "error": "Failed to move document", "details": str(e)},
        )

    # Catalog entry is a side update; the move already succeeded
    try:
        store = irrelevant_store()
        doc = store.load_or_empty()
        entry, created = irrelevant.upsert(doc["data"], {"docname": file_name})
        if created:
            store.write(doc)
            logger.info(f"Added {file_name} to irrelevant-docs.json")
    except (OSError, json.JSONDecodeError) as e:
        logger.error(f"Error adding to irrelevant-docs.json: {e}")

    return {"success": True, "message": "Document moved to irrelevant folder", "newKey": new_key}


# ---------------------------------------------------------------------------
# Inbox (uldocs/ + irrelevant/)
# ---------------------------------------------------------------------------

@router.post("/api/docs/upload")
def upload_document(
    file: Optional[UploadFile] = File(None),
    folder: Optional[str] = Form(None),
    storage: DocumentStorage = Depends(get_storage),
):
    content = file.file.read() if file else b""
    _validate_upload(file.filename if file else None, file.content_type if file else None, content)

    try:
        return _store_upload(
            storage, UPLOAD_PREFIX, file.filename, file.content_type, content, {"folder": folder or "uldocs"}
        )
    except StorageError as e:
        logger.error(f"Upload error: {e}")
        raise storage_http_error(e, "Upload")


@router.get("/api/docs/upload")
def list_inbox(storage: DocumentStorage = Depends(get_storage)):
    try:
        objects = storage.list_objects(prefix=UPLOAD_PREFIX) + storage.list_objects(prefix=IRRELEVANT_PREFIX)
        files = [
            _file_entry(
                storage,
                obj,
                strip_timestamp_prefix(obj.name),
                is_irrelevant=obj.key.startswith(IRRELEVANT_PREFIX),
            )
            for obj in objects
        ]
    except StorageError as e:
        logger.error(f"List files error: {e}")
        raise storage_http_error(e, "List files")

    if not files:
        return {"success": True, "message": "No files found", "data": {"files": []}}
    files = _newest_first(files)
    return {"success": True, "message": f"Found {len(files)} files", "data": {"files": files}}


@router.delete("/api/docs/upload")
def delete_inbox_document(request: FileKeyRequest = Body(...), storage: DocumentStorage = Depends(get_storage)):
    if not request.file_key:
        raise HTTPException(status_code=400, detail="File key is required")
    try:
        storage.delete_object(request.file_key)
    except StorageError as e:
        logger.error(f"Delete error: {e}")
        raise storage_http_error(e, "Delete")

    logger.info(f"File deleted successfully: {request.file_key}")
    return {"success": True, "message": "File deleted successfully", "data": {"deletedKey": request.file_key}}


# ---------------------------------------------------------------------------
# Documents of a Buchung
# ---------------------------------------------------------------------------

def _assign(storage: DocumentStorage, file_key: str, buchung_id, file_name: Optional[str]) -> Dict[str, Any]:
    """Move ``file_key`` to ``docs/<id>_<name>`` and record it on the Buchung."""
    logger.info(f"Assigning document: {file_name} ({file_key}) to buchung {buchung_id}")
    new_key = assigned_key(buchung_id, file_key)
    try:
        storage.move_object(file_key, new_key)
    except StorageError as e:
        logger.error(f"Assignment error: {e}")
        raise storage_http_error(e, "Assignment")
    logger.info(f"Document moved successfully to: {new_key}")

    file_name = file_name or key_basename(file_key)
    assignment = {
        "originalKey": file_key,
        "newKey": new_key,
        "fileName": file_name,
        "assignedAt": iso_now(),
        "fileType": file_type_from_name(file_name),
        "size": 0,
    }

    # Ledger entry is a side update; the move already succeeded
    try:
        _, _, created = record_assignment(buchungen_store(), buchung_id, assignment)
        if not created:
            logger.info("Document already assigned to this buchung")
    except BuchungNotFound as e:
        logger.error(str(e))
    except (OSError, json.JSONDecodeError, ValidationError) as e:
        logger.error(f"Error updating buchungen.json: {e}")

    return {"success": True, "message": "Document assigned successfully", "data": assignment}


@router.post("/api/upload")
async def upload_or_assign(request: Request, storage: DocumentStorage = Depends(get_storage)):
    content_type = request.headers.get("content-type") or ""

    if "application/json" in content_type:
        try:
            action = AssignAction.model_validate(await request.json())
        except (ValueError, ValidationError):
            raise HTTPException(status_code=400, detail="Invalid JSON body")
        if action.action != "assign":
            raise HTTPException(status_code=400, detail="Unknown action")
        if not action.file_key or not action.buchung_id:
            raise HTTPException(status_code=400, detail="fileKey and buchungId are required")
        return await run_in_threadpool(_assign, storage, action.file_key, action.buchung_id, action.file_name)

    form = await request.form()
    file = form.get("file")
    buchung_id = form.get("buchungId")
    if not isinstance(file, FormFile):
        raise HTTPException(status_code=400, detail="No file provided or file is empty")

    content = await file.read()
    _validate_upload(file.filename, file.content_type, content)
    if not buchung_id:
        raise HTTPException(status_code=400, detail="buchungId is required")

    try:
        result = await run_in_threadpool(
            _store_upload,
            storage,
            f"{BUCHUNG_UPLOAD_PREFIX}buchung-{buchung_id}/",
            file.filename,
            file.content_type,
            content,
            {"buchung-id": str(buchung_id)},
        )
    except StorageError as e:
        logger.error(f"Upload error: {e}")
        raise storage_http_error(e, "Upload")

    if "data" in result:
        result["data"]["buchungId"] = buchung_id
    return result


@router.get("/api/upload")
def list_buchung_documents(
    buchung_id: Optional[str] = Query(None, alias="buchungId"),
    storage: DocumentStorage = Depends(get_storage),
):
    if not buchung_id:
        raise HTTPException(status_code=400, detail="buchungId parameter is required")

    try:
        objects = storage.list_objects(prefix=f"{ASSIGNED_PREFIX}{buchung_id}_")
        files = [_file_entry(storage, obj, strip_buchung_prefix(obj.name)) for obj in objects]
    except StorageError as e:
        logger.error(f"List files error: {e}")
        raise storage_http_error(e, "List files")

    if not files:
        return {
            "success": True,
            "message": "No files found for this buchung",
            "data": {"files": [], "buchungId": buchung_id},
        }
    files = _newest_first(files)
    return {
        "success": True,
        "message": f"Found {len(files)} files",
        "data": {"files": files, "buchungId": buchung_id},
    }


@router.delete("/api/upload")
def delete_buchung_document(request: FileKeyRequest = Body(...), storage: DocumentStorage = Depends(get_storage)):
    file_key = request.file_key
    if not file_key:
        raise HTTPException(status_code=400, detail="File key is required")

    unassign = is_assigned_key(file_key) and bool(request.buchung_id)
    try:
        if unassign:
            restored_key = unassigned_key(file_key)
            logger.info(f"Unassigning document: moving {file_key} back to {restored_key}")
            storage.move_object(file_key, restored_key)
        else:
            storage.delete_object(file_key)
    except StorageError as e:
        logger.error(f"Delete error: {e}")
        raise storage_http_error(e, "Delete")

    if unassign:
        # Ledger entry is a side update; the object is already back in the inbox
        try:
            remove_assignment(buchungen_store(), request.buchung_id, file_key)
        except (OSError, json.JSONDecodeError) as e:
            logger.error(f"Error updating buchungen.json: {e}")

    logger.info(f"File deleted successfully: {file_key}")
    return {"success": True, "message": "File deleted successfully", "data": {"deletedKey": file_key}}


@router.patch("/api/upload/rename")
def rename_document(request: RenameRequest = Body(...), storage: DocumentStorage = Depends(get_storage)):
    if not request.old_key or not request.new_file_name:
        raise HTTPException(status_code=400, detail="Old key and new filename are required")

    new_key = renamed_key(request.old_key, request.new_file_name)
    try:
        storage.move_object(request.old_key, new_key)
        signed_url = storage.signed_url(new_key, settings.SIGNED_URL_EXPIRY)
    except StorageError as e:
        logger.error(f"Rename error: {e}")
        raise storage_http_error(e, "Rename")

    logger.info(f"File renamed successfully: {request.old_key} -> {new_key}")
    return {
        "success": True,
        "message": "File renamed successfully",
        "data": {
            "oldKey": request.old_key,
            "newKey": new_key,
            "newFileName": key_basename(new_key),
            "signedUrl": signed_url,
        },
    }
