from datetime import datetime

from pydantic import BaseModel, Field


class InvitationCreate(BaseModel):
    # Presence of email/nombre is checked by the service so it answers 400.
    email: str | None = None
    nombre: str | None = None
    apellido: str | None = None
    role: str | None = None
    expiration_days: int | None = Field(default=None, alias="expirationDays")

    model_config = {"populate_by_name": True}


class InvitationRead(BaseModel):
    id: int
    email: str
    invitation_code: str
    nombre: str
    apellido: str | None
    role: str
    status: str
    created_by_id: int | None
    expires_at: datetime
    used_at: datetime | None
    used_by_id: int | None
    created_at: datetime

    model_config = {"from_attributes": True}


class InvitationSummary(BaseModel):
    """What a registrant gets back: enough to prefill the form, no code or expiry."""

    id: int
    nombre: str
    apellido: str | None
    role: str

    model_config = {"from_attributes": True}


class InvitationEnvelope(BaseModel):
    success: bool = True
    message: str
    invitation: InvitationRead


class InvitationList(BaseModel):
    invitations: list[InvitationRead]


class InvitationLookup(BaseModel):
    invitation: InvitationRead


class VerifyRequest(BaseModel):
    email: str | None = None
    invitation_code: str | None = Field(default=None, alias="invitationCode")

    model_config = {"populate_by_name": True}


class UseRequest(BaseModel):
    email: str | None = None
    invitation_code: str | None = Field(default=None, alias="invitationCode")
    user_id: int | None = Field(default=None, alias="userId")

    model_config = {"populate_by_name": True}


class MarkUsedRequest(BaseModel):
    token: str | None = None
    user_id: int | None = Field(default=None, alias="userId")

    model_config = {"populate_by_name": True}


class DeleteRequest(BaseModel):
    id: int | None = None


class MessageResponse(BaseModel):
    success: bool = True
    message: str
