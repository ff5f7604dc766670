from datetime import datetime

from pydantic import BaseModel, Field


class ExpressionCreate(BaseModel):
    ano: int = Field(gt=0)
    tema_id: int
    nombre: str = Field(min_length=1)
    email: str | None = None
    propuesta: str | None = None
    mes: int | None = Field(default=None, ge=1, le=12)
    fecha_recibido: datetime | None = None


class ExpressionRead(BaseModel):
    id: int
    ano: int
    mes: int
    sequence: int
    numero: str
    nombre: str
    email: str | None
    propuesta: str | None
    tema_id: int | None
    fecha_recibido: datetime | None
    archivado: bool
    created_at: datetime

    model_config = {"from_attributes": True}
