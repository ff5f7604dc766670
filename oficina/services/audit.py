import logging

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from oficina.errors import log_exception_with_context
from oficina.models.audit import AuditEntry

logger = logging.getLogger("oficina.audit")


def record(db: Session, user_id: int | None, action: str) -> None:
    """Append ``action`` to the audit trail.

    The entry is written in its own savepoint so a failed insert never
    undoes the operation being audited; the failure is logged instead.
    """
    try:
        with db.begin_nested():
            db.add(AuditEntry(user_id=user_id, action=action[:500]))
    except SQLAlchemyError:
        log_exception_with_context(
            "Audit entry not recorded",
            operation="audit.record",
            extra={"user_id": user_id, "action": action},
            logger_name=logger.name,
        )


def recent(db: Session, limit: int = 100) -> list[AuditEntry]:
    return list(
        db.execute(
            select(AuditEntry)
            .order_by(AuditEntry.created_at.desc(), AuditEntry.id.desc())
            .limit(limit)
        ).scalars()
    )
