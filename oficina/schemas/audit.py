from datetime import datetime

from pydantic import BaseModel


class AuditEntryRead(BaseModel):
    id: int
    user_id: int | None
    action: str
    created_at: datetime

    model_config = {"from_attributes": True}
