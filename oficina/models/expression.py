from datetime import datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, String, Text, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column

from oficina.database import Base


class Expression(Base):
    __tablename__ = "expresiones"
    __table_args__ = (
        UniqueConstraint("ano", "sequence", name="uq_expresiones_ano_sequence"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    ano: Mapped[int] = mapped_column(index=True)
    mes: Mapped[int]
    sequence: Mapped[int]
    numero: Mapped[str] = mapped_column(String(50))
    nombre: Mapped[str] = mapped_column(String(255))
    email: Mapped[str | None] = mapped_column(String(255), default=None)
    propuesta: Mapped[str | None] = mapped_column(Text, default=None)
    tema_id: Mapped[int | None] = mapped_column(
        ForeignKey("temas.id", ondelete="SET NULL"), default=None
    )
    fecha_recibido: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), default=None
    )
    archivado: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        server_default=func.now(), onupdate=func.now()
    )
