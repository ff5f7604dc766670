from pydantic import BaseModel, Field


class GapRead(BaseModel):
    sequence: int
    numero: str

    model_config = {"from_attributes": True}


class GapReportRead(BaseModel):
    year: int
    abbreviation: str | None
    gaps: list[GapRead]
    reason: str | None = None

    model_config = {"from_attributes": True}


class AllocateRequest(BaseModel):
    year: int = Field(gt=0)
    topic_id: int | None = None
    sequence: int = Field(gt=0)
    numero: str | None = None
    nombre: str | None = None


class AllocatedRead(BaseModel):
    id: int
    sequence: int
    numero: str
