import jwt
from fastapi import APIRouter, Cookie, HTTPException, Response, status
from sqlalchemy import select

from oficina.config import settings
from oficina.dependencies import (
    DbSession,
    create_access_token,
    create_refresh_token,
)
from oficina.errors import (
    ConflictError,
    ExpiredError,
    NotFoundError,
    PartialFailureError,
    ValidationError,
)
from oficina.models.user import User
from oficina.schemas.auth import (
    AccessTokenResponse,
    LoginRequest,
    RegisterRequest,
    RegisterResponse,
)
from oficina.services import audit, invitations

router = APIRouter(prefix="/auth", tags=["auth"])

REFRESH_COOKIE_NAME = "oficina_refresh_token"
REFRESH_COOKIE_MAX_AGE = settings.refresh_token_expire_days * 86400


def set_refresh_cookie(response: Response, token: str) -> None:
    response.set_cookie(
        key=REFRESH_COOKIE_NAME,
        value=token,
        httponly=True,
        secure=True,
        samesite="none",
        path="/auth",
        max_age=REFRESH_COOKIE_MAX_AGE,
    )


def delete_refresh_cookie(response: Response) -> None:
    response.delete_cookie(
        key=REFRESH_COOKIE_NAME,
        httponly=True,
        secure=True,
        samesite="none",
        path="/auth",
    )


@router.post("/login", response_model=AccessTokenResponse)
def login(request: LoginRequest, response: Response, db: DbSession):
    user = db.execute(
        select(User).where(User.email == request.email)
    ).scalar_one_or_none()

    if user is None or not user.check_password(request.password):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED)

    if not user.is_active:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED)

    set_refresh_cookie(response, create_refresh_token(user))
    return AccessTokenResponse(access_token=create_access_token(user))


def _discard_account(db, user: User) -> None:
    # The invitation slipped away between verify and redeem.
    db.delete(user)
    db.flush()


@router.post("/register", response_model=RegisterResponse)
def register(request: RegisterRequest, response: Response, db: DbSession):
    email = invitations.normalize_email(request.email)
    check = invitations.verify(db, email, request.invitation_code)
    if not check.valid:
        raise ValidationError(check.message)

    existing = db.execute(select(User).where(User.email == email)).scalar_one_or_none()
    if existing is not None:
        raise ConflictError("Ya existe una cuenta con este correo electrónico")

    invitation = check.invitation
    user = User(
        email=email,
        nombre=request.nombre or invitation.nombre,
        apellido=request.apellido or invitation.apellido,
        password_hash="",
    )
    user.set_password(request.password)
    db.add(user)
    db.flush()

    warning = None
    try:
        result = invitations.redeem(db, email, request.invitation_code, user.id)
    except PartialFailureError as exc:
        warning = exc.detail
    except (ExpiredError, NotFoundError) as exc:
        _discard_account(db, user)
        raise ValidationError(exc.detail) from exc
    else:
        if result.invitation.used_by_id != user.id:
            _discard_account(db, user)
            raise ValidationError("Esta invitación ya ha sido utilizada")
    audit.record(db, user.id, f"Cuenta registrada: {email}")

    set_refresh_cookie(response, create_refresh_token(user))
    return RegisterResponse(access_token=create_access_token(user), warning=warning)


@router.post("/refresh", response_model=AccessTokenResponse)
def refresh(
    response: Response,
    db: DbSession,
    oficina_refresh_token: str | None = Cookie(default=None),
):
    if oficina_refresh_token is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED)

    try:
        payload = jwt.decode(
            oficina_refresh_token,
            settings.jwt_secret,
            algorithms=[settings.jwt_algorithm],
        )
    except jwt.InvalidTokenError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED)

    if payload.get("type") != "refresh":
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED)

    user = db.get(User, int(payload["sub"]))
    if user is None or not user.is_active:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED)

    set_refresh_cookie(response, create_refresh_token(user))
    return AccessTokenResponse(access_token=create_access_token(user))


@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT)
def logout(response: Response):
    delete_refresh_cookie(response)
