import base64
import re
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from buchhaltung.db.storage import ASSIGNED_PREFIX, IRRELEVANT_PREFIX, UPLOAD_PREFIX

ALLOWED_UPLOAD_TYPES = {
    "image/jpeg",
    "image/png",
    "image/gif",
    "application/pdf",
    "application/msword",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "application/vnd.ms-excel",
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    "text/plain",
}

FILE_TYPES = {
    "pdf": "application/pdf",
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "png": "image/png",
    "gif": "image/gif",
    "doc": "application/msword",
    "docx": "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "xls": "application/vnd.ms-excel",
    "xlsx": "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    "txt": "text/plain",
}

TIMESTAMP_PREFIX = re.compile(r"^\d{4}-\d{2}-\d{2}T\d{2}-\d{2}-\d{2}-\d{3}Z-")
_UNSAFE_CHARS = re.compile(r'[<>:"/\\|?*]')
_WHITESPACE = re.compile(r"\s+")
# Partner_YYYYMMDD_amount.ext or Partner_YYYY-MM-DD_amount.ext
_DOCUMENT_NAME = re.compile(r"^(.+?)_(\d{4}-?\d{2}-?\d{2})_?([\d.]+)?")


def sanitize_filename(name: str) -> str:
    """Make a filename safe for object keys while keeping umlauts."""
    name = _UNSAFE_CHARS.sub("_", name)
    name = _WHITESPACE.sub(" ", name)
    return name.strip()


def upload_timestamp(now: Optional[datetime] = None) -> str:
    """UTC timestamp used as key prefix, e.g. ``2024-06-12T08-30-00-123Z``."""
    now = now or datetime.now(timezone.utc)
    iso = now.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.") + f"{now.microsecond // 1000:03d}Z"
    return iso.replace(":", "-").replace(".", "-")


def iso_now() -> str:
    now = datetime.now(timezone.utc)
    return now.strftime("%Y-%m-%dT%H:%M:%S.") + f"{now.microsecond // 1000:03d}Z"


def strip_timestamp_prefix(name: str) -> str:
    return TIMESTAMP_PREFIX.sub("", name)


def file_type_from_name(name: str) -> str:
    extension = name.rsplit(".", 1)[-1].lower() if "." in name else ""
    return FILE_TYPES.get(extension, "application/octet-stream")


def key_basename(key: str) -> str:
    return key.split("/")[-1]


def strip_buchung_prefix(name: str) -> str:
    """``4438_Wagner_20240612_95.50.pdf`` -> ``Wagner_20240612_95.50.pdf``"""
    return name[name.index("_") + 1:] if "_" in name else name


def assigned_key(buchung_id, key: str) -> str:
    original = re.sub(rf"^({UPLOAD_PREFIX}|{IRRELEVANT_PREFIX})", "", key)
    return f"{ASSIGNED_PREFIX}{buchung_id}_{original}"


def unassigned_key(key: str) -> str:
    return f"{UPLOAD_PREFIX}{strip_buchung_prefix(key_basename(key))}"


def irrelevant_key(key: str) -> str:
    return f"{IRRELEVANT_PREFIX}{key_basename(key)}"


def is_assigned_key(key: str) -> bool:
    return key.startswith(ASSIGNED_PREFIX)


def renamed_key(old_key: str, new_file_name: str) -> str:
    """Same folder, sanitized new name, original extension."""
    parts = old_key.split("/")
    old_name = parts[-1]
    extension = old_name[old_name.rindex("."):] if "." in old_name else ""
    parts[-1] = sanitize_filename(new_file_name) + extension
    return "/".join(parts)


def encode_metadata_name(name: str) -> Dict[str, str]:
    """S3 metadata must be ASCII: base64 for the real name plus a lossy fallback."""
    return {
        "original-name-b64": base64.b64encode(name.encode("utf-8")).decode("ascii"),
        "original-name": "".join(c if ord(c) < 128 else "?" for c in name),
    }


def parse_document_name(file_name: str) -> Dict[str, Any]:
    """Read partner, date and amount from a ``Partner_YYYYMMDD_amount.ext`` filename."""
    clean = strip_timestamp_prefix(file_name)
    partner, datum, betrag = "", "", None

    match = _DOCUMENT_NAME.match(clean)
    if match:
        partner = match.group(1) or ""
        date_str = match.group(2) or ""
        if date_str and "-" not in date_str:
            datum = f"{date_str[0:4]}-{date_str[4:6]}-{date_str[6:8]}"
        else:
            datum = date_str
        amount = match.group(3)
        if amount:
            try:
                betrag = float(amount.rstrip("."))
            except ValueError:
                betrag = None

    return {"docname": clean, "partner": partner, "datum": datum, "betrag": betrag}
