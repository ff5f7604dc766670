from oficina.models.user import User
from oficina.models.invitation import Invitation, InvitationStatus
from oficina.models.topic import Topic
from oficina.models.expression import Expression
from oficina.models.petition import Petition
from oficina.models.audit import AuditEntry

__all__ = [
    "User",
    "Invitation",
    "InvitationStatus",
    "Topic",
    "Expression",
    "Petition",
    "AuditEntry",
]
