from pydantic import BaseModel, Field


class LoginRequest(BaseModel):
    email: str
    password: str


class RegisterRequest(BaseModel):
    email: str
    invitation_code: str = Field(alias="invitationCode")
    password: str
    nombre: str | None = None
    apellido: str | None = None

    model_config = {"populate_by_name": True}


class AccessTokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"


class RegisterResponse(AccessTokenResponse):
    # Set when the account exists but its profile setup did not complete.
    warning: str | None = None
