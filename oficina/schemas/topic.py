from datetime import datetime

from pydantic import BaseModel, Field


class TopicCreate(BaseModel):
    nombre: str = Field(min_length=1)
    abreviatura: str | None = None


class TopicUpdate(BaseModel):
    nombre: str | None = Field(default=None, min_length=1)
    abreviatura: str | None = None


class TopicRead(BaseModel):
    id: int
    nombre: str
    abreviatura: str | None
    created_at: datetime

    model_config = {"from_attributes": True}
