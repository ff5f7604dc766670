from typing import Annotated

from fastapi import APIRouter, Depends, Query, Response, status
from fastapi.responses import JSONResponse
from fastapi.security import HTTPAuthorizationCredentials

from oficina.config import settings
from oficina.dependencies import CurrentUser, DbSession, get_current_user, security
from oficina.errors import (
    ExpiredError,
    NotFoundError,
    PartialFailureError,
    ValidationError,
)
from oficina.schemas.invitation import (
    DeleteRequest,
    InvitationCreate,
    InvitationEnvelope,
    InvitationList,
    InvitationLookup,
    InvitationRead,
    InvitationSummary,
    MarkUsedRequest,
    MessageResponse,
    UseRequest,
    VerifyRequest,
)
from oficina.services import audit, invitations
from oficina.services.invitations import VerifyReason

router = APIRouter(prefix="/invitations", tags=["invitations"])


@router.post("", response_model=InvitationEnvelope, status_code=status.HTTP_201_CREATED)
def create_invitation(
    request: InvitationCreate, user: CurrentUser, db: DbSession, response: Response
):
    result = invitations.issue(
        db,
        email=request.email,
        nombre=request.nombre,
        apellido=request.apellido,
        role=request.role,
        expiration_days=request.expiration_days,
        created_by_id=user.id,
    )
    if result.created:
        message = "Invitación creada"
    else:
        message = "Invitación actualizada"
        response.status_code = status.HTTP_200_OK
    audit.record(db, user.id, f"{message}: {result.invitation.email}")
    return InvitationEnvelope(
        message=message, invitation=InvitationRead.model_validate(result.invitation)
    )


@router.get("", response_model=InvitationList | InvitationLookup)
def get_invitations(
    db: DbSession,
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
    token: Annotated[str | None, Query()] = None,
    email: Annotated[str | None, Query()] = None,
):
    if token:
        invitation = invitations.get_by_code(db, email, token)
        return InvitationLookup(invitation=InvitationRead.model_validate(invitation))

    get_current_user(credentials, db)
    return InvitationList(
        invitations=[InvitationRead.model_validate(i) for i in invitations.list_all(db)]
    )


@router.patch("", response_model=MessageResponse)
def mark_invitation_used(request: MarkUsedRequest, db: DbSession):
    invitations.mark_used(db, request.token, request.user_id)
    audit.record(db, request.user_id, "Invitación utilizada")
    return MessageResponse(message="Invitación utilizada correctamente")


@router.delete("", response_model=MessageResponse)
def delete_invitation_by_body(request: DeleteRequest, user: CurrentUser, db: DbSession):
    return _delete(db, user.id, request.id)


@router.delete("/{invitation_id}", response_model=MessageResponse)
def delete_invitation(invitation_id: int, user: CurrentUser, db: DbSession):
    return _delete(db, user.id, invitation_id)


def _delete(db, user_id: int, invitation_id: int | None) -> MessageResponse:
    invitation = invitations.delete(db, invitation_id)
    audit.record(db, user_id, f"Invitación eliminada: {invitation.email}")
    return MessageResponse(message="Invitación eliminada correctamente")


@router.post("/verify")
def verify_invitation(request: VerifyRequest, db: DbSession):
    try:
        result = invitations.verify(db, request.email, request.invitation_code)
    except ValidationError as exc:
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"valid": False, "error": exc.detail},
        )

    if result.valid:
        summary = InvitationSummary.model_validate(result.invitation)
        return {"valid": True, "invitation": summary.model_dump()}

    content = {"valid": False, "error": result.message, "reason": result.reason.value}
    if settings.invitation_debug:
        content["debug"] = invitations.debug_payload(
            db,
            request.email,
            request.invitation_code,
            matches_found=1 if result.reason is VerifyReason.EXPIRED else 0,
        )
    status_code = (
        status.HTTP_404_NOT_FOUND
        if result.reason is VerifyReason.NOT_FOUND
        else status.HTTP_400_BAD_REQUEST
    )
    return JSONResponse(status_code=status_code, content=content)


@router.post("/use")
def use_invitation(request: UseRequest, db: DbSession):
    try:
        result = invitations.redeem(
            db, request.email, request.invitation_code, request.user_id
        )
    except ValidationError as exc:
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"success": False, "error": exc.detail},
        )
    except NotFoundError as exc:
        content = {"success": False, "error": exc.detail}
        if settings.invitation_debug:
            content["debug"] = invitations.debug_payload(
                db, request.email, request.invitation_code
            )
        return JSONResponse(status_code=status.HTTP_404_NOT_FOUND, content=content)
    except ExpiredError as exc:
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"success": False, "error": exc.detail},
        )
    except PartialFailureError as exc:
        audit.record(
            db, request.user_id, f"Invitación utilizada con advertencia: {request.email}"
        )
        return {
            "success": True,
            "partialSuccess": True,
            "message": "Invitación marcada como utilizada correctamente",
            "warning": exc.detail,
        }

    if result.already_used:
        if result.invitation.used_by_id in (None, request.user_id):
            message = "La invitación ya fue utilizada anteriormente, pero se ha actualizado el perfil"
        else:
            message = "La invitación ya fue utilizada por otra cuenta"
        return {"success": True, "message": message, "wasAlreadyUsed": True}
    audit.record(db, request.user_id, f"Invitación utilizada: {result.invitation.email}")
    return {"success": True, "message": "Invitación marcada como utilizada correctamente"}
