from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, String, Text, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column

from oficina.database import Base


class Petition(Base):
    __tablename__ = "peticiones"
    __table_args__ = (
        UniqueConstraint("year", "sequence", name="uq_peticiones_year_sequence"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    year: Mapped[int] = mapped_column(index=True)
    mes: Mapped[int]
    sequence: Mapped[int]
    num_peticion: Mapped[str] = mapped_column(String(50))
    detalles: Mapped[str | None] = mapped_column(Text, default=None)
    status: Mapped[str] = mapped_column(String(50), default="Recibida")
    tema_id: Mapped[int | None] = mapped_column(
        ForeignKey("temas.id", ondelete="SET NULL"), default=None
    )
    fecha_recibido: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), default=None
    )
    created_at: Mapped[datetime] = mapped_column(server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        server_default=func.now(), onupdate=func.now()
    )
