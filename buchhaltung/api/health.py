from fastapi import APIRouter, Query
from typing import List, Optional

from buchhaltung.core.audit import audit_repo
from buchhaltung.schemas.audit import AuditLogEntry, AuditStatus

router = APIRouter()


@router.get("/health")
def health_check():
    return {"status": "ok"}


@router.get("/api/audit", response_model=List[AuditLogEntry])
def list_audit_entries(
    action_type: Optional[str] = Query(None),
    status: Optional[AuditStatus] = Query(None),
    limit: Optional[int] = Query(None, ge=1),
):
    """Audit trail of this process, oldest first."""
    return audit_repo.find(action_type=action_type, status=status, limit=limit)
