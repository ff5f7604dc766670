from fastapi import APIRouter, Query

from oficina.dependencies import AdminUser, DbSession
from oficina.schemas.audit import AuditEntryRead
from oficina.services import audit

router = APIRouter(prefix="/audit-trail", tags=["audit"])


@router.get("", response_model=list[AuditEntryRead])
def list_audit_trail(admin: AdminUser, db: DbSession, limit: int = Query(100, ge=1, le=1000)):
    return audit.recent(db, limit)
