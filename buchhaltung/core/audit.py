from abc import ABC, abstractmethod
from typing import List, Optional
from buchhaltung.schemas.audit import AuditLogEntry, AuditStatus
import logging

logger = logging.getLogger(__name__)

class AuditRepository(ABC):
    @abstractmethod
    def save(self, entry: AuditLogEntry):
        pass

    @abstractmethod
    def get_all(self) -> List[AuditLogEntry]:
        pass

    @abstractmethod
    def clear(self):
        pass

    def find(
        self,
        action_type: Optional[str] = None,
        status: Optional[AuditStatus] = None,
        limit: Optional[int] = None,
    ) -> List[AuditLogEntry]:
        """Newest matching entries last; ``limit`` keeps the most recent ones."""
        entries = [
            e for e in self.get_all()
            if (action_type is None or e.action_type == action_type)
            and (status is None or e.status == status)
        ]
        if limit:
            entries = entries[-limit:]
        return entries

class InMemoryAuditRepository(AuditRepository):
    """Process-local trail; lost on restart."""

    def __init__(self, max_entries: Optional[int] = 10000):
        self._storage: List[AuditLogEntry] = []
        self._max_entries = max_entries

    def save(self, entry: AuditLogEntry):
        self._storage.append(entry)
        if self._max_entries and len(self._storage) > self._max_entries:
            del self._storage[: len(self._storage) - self._max_entries]
        logger.info(f"Audit Logged: {entry.model_dump_json()}")

    def get_all(self) -> List[AuditLogEntry]:
        return list(self._storage)

    def clear(self):
        self._storage.clear()

audit_repo = InMemoryAuditRepository()
