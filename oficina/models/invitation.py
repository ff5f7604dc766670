from datetime import datetime, timezone
from enum import Enum

from sqlalchemy import DateTime, ForeignKey, String, func
from sqlalchemy.orm import Mapped, mapped_column

from oficina.database import Base


class InvitationStatus(str, Enum):
    PENDING = "pending"
    USED = "used"
    EXPIRED = "expired"


def as_utc(dt: datetime | None) -> datetime | None:
    """Return ``dt`` as an aware UTC datetime; naive values are taken as UTC."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


class Invitation(Base):
    __tablename__ = "invitations"

    id: Mapped[int] = mapped_column(primary_key=True)
    # One row per address; reissuing overwrites it.
    email: Mapped[str] = mapped_column(String(255), unique=True, index=True)
    invitation_code: Mapped[str] = mapped_column(String(12), index=True)
    nombre: Mapped[str] = mapped_column(String(255))
    apellido: Mapped[str | None] = mapped_column(String(255), default=None)
    role: Mapped[str] = mapped_column(String(50), default="user")
    status: Mapped[str] = mapped_column(
        String(20), default=InvitationStatus.PENDING.value
    )
    created_by_id: Mapped[int | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"), default=None
    )
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    used_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), default=None
    )
    used_by_id: Mapped[int | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"), default=None
    )
    created_at: Mapped[datetime] = mapped_column(server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        server_default=func.now(), onupdate=func.now()
    )

    @property
    def is_expired(self) -> bool:
        return as_utc(self.expires_at) < datetime.now(timezone.utc)

    @property
    def is_pending(self) -> bool:
        return self.status == InvitationStatus.PENDING.value
