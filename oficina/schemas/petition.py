from datetime import datetime

from pydantic import BaseModel, Field


class PetitionCreate(BaseModel):
    year: int = Field(gt=0)
    tema_id: int | None = None
    detalles: str | None = None
    status: str | None = None
    mes: int | None = Field(default=None, ge=1, le=12)
    fecha_recibido: datetime | None = None


class PetitionRead(BaseModel):
    id: int
    year: int
    mes: int
    sequence: int
    num_peticion: str
    detalles: str | None
    status: str
    tema_id: int | None
    fecha_recibido: datetime | None
    created_at: datetime

    model_config = {"from_attributes": True}
