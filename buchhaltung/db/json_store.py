"""
JSON file persistence.

Every collection is a single file holding ``{"data": [...]}``. Handlers read the
whole file, mutate the list in memory and overwrite the file. There is no
locking: concurrent writers race and the last write wins.
"""
import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

from buchhaltung.core.config import settings

logger = logging.getLogger(__name__)


def _as_int(value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0


def max_id(records: List[Dict[str, Any]]) -> int:
    """Largest numeric ``id`` in ``records`` (non-numeric ids count as 0)."""
    return max((_as_int(r.get("id")) for r in records), default=0)


def next_id(records: List[Dict[str, Any]]) -> int:
    return max_id(records) + 1


class JsonFileStore:
    def __init__(self, path: Path):
        self.path = Path(path)

    def exists(self) -> bool:
        return self.path.exists()

    def load(self) -> Dict[str, Any]:
        """Read the document. Raises FileNotFoundError / json.JSONDecodeError."""
        with open(self.path, encoding="utf-8") as f:
            doc = json.load(f)
        # Older exports were written as a bare array
        if isinstance(doc, list):
            return {"data": doc}
        if not isinstance(doc.get("data"), list):
            doc["data"] = []
        return doc

    def load_or_empty(self) -> Dict[str, Any]:
        try:
            return self.load()
        except FileNotFoundError:
            logger.warning(f"{self.path} not found, starting with an empty collection")
            return {"data": []}

    def records(self) -> List[Dict[str, Any]]:
        return self.load()["data"]

    def write(self, doc: Dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "w", encoding="utf-8") as f:
            json.dump(doc, f, indent=2, ensure_ascii=False)

    def save(self, records: List[Dict[str, Any]], doc: Optional[Dict[str, Any]] = None) -> None:
        """Replace the ``data`` array, keeping any other top-level keys of ``doc``."""
        if doc is None:
            doc = self.load_or_empty()
        doc["data"] = records
        self.write(doc)

    def append_with_ids(self, new_records: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        """Number ``new_records`` from max+1 and append them to the file."""
        doc = self.load_or_empty()
        start = max_id(doc["data"])
        logger.info(f"Largest existing ID in {self.path.name}: {start}")

        numbered = [{**record, "id": start + 1 + i} for i, record in enumerate(new_records)]
        doc["data"].extend(numbered)
        self.write(doc)
        return numbered


def buchungen_store() -> JsonFileStore:
    return JsonFileStore(settings.data_path(settings.BUCHUNGEN_FILE))


def irrelevant_store() -> JsonFileStore:
    return JsonFileStore(settings.data_path(settings.IRRELEVANT_DOCS_FILE))


def import_store() -> JsonFileStore:
    return JsonFileStore(settings.data_path(settings.IMPORT_FILE))


def konto_names() -> Dict[str, str]:
    """Account code -> display name, empty when no konto.json is present."""
    path = settings.data_path(settings.KONTO_FILE)
    try:
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
    except FileNotFoundError:
        return {}
    except json.JSONDecodeError as e:
        logger.error(f"Invalid account names file {path}: {e}")
        return {}
    if isinstance(data, list):
        # [{"konto": 1000, "name": "Kasse"}, ...]
        return {str(k.get("konto")): k.get("name", "") for k in data if isinstance(k, dict)}
    return {str(k): v for k, v in data.items()}
