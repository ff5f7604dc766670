"""Invitation codes gating self-registration.

An invitation is a short numeric code tied to one email address. Staff issue
it, the registrant verifies it while filling in the sign-up form, and it is
redeemed once when the account is created. Redemption flips the row to
``used`` and keeps it, so the table doubles as a record of who invited whom.

Expiry is detected lazily: a pending row past ``expires_at`` is marked
``expired`` by the first read that notices, never by a sweeper.

Codes are not unique across addresses. Every lookup is scoped by
(email, code), so two addresses holding the same code never interfere.
"""

import functools
import logging
import secrets
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from oficina.config import settings
from oficina.errors import (
    ConflictError,
    ExpiredError,
    NotFoundError,
    PartialFailureError,
    ValidationError,
    log_exception_with_context,
    store_operation,
)
from oficina.models.invitation import Invitation, InvitationStatus, as_utc
from oficina.models.user import User

logger = logging.getLogger("oficina.invitations")
store = functools.partial(store_operation, logger_name=logger.name)

DEFAULT_ROLE = "user"

PENDING = InvitationStatus.PENDING.value
USED = InvitationStatus.USED.value
EXPIRED = InvitationStatus.EXPIRED.value


class VerifyReason(str, Enum):
    NOT_FOUND = "not found"
    ALREADY_USED = "already used"
    ALREADY_EXPIRED = "already expired"
    EXPIRED = "expired"


REASON_MESSAGES = {
    VerifyReason.NOT_FOUND: "No se encontró una invitación pendiente con este código",
    VerifyReason.ALREADY_USED: "Esta invitación ya ha sido utilizada",
    VerifyReason.ALREADY_EXPIRED: "Esta invitación ya ha sido expirada",
    VerifyReason.EXPIRED: "La invitación ha expirado",
}


@dataclass
class IssueResult:
    invitation: Invitation
    created: bool


@dataclass
class VerifyResult:
    valid: bool
    invitation: Optional[Invitation] = None
    reason: Optional[VerifyReason] = None

    @property
    def message(self) -> Optional[str]:
        return REASON_MESSAGES[self.reason] if self.reason else None


@dataclass
class RedeemResult:
    invitation: Invitation
    already_used: bool = False
    success: bool = field(default=True, init=False)


def normalize_email(email: Optional[str]) -> str:
    return (email or "").strip().lower()


def normalize_code(code: Optional[str]) -> str:
    return (code or "").strip()


def generate_invitation_code(digits: Optional[int] = None) -> str:
    """Uniform random code with exactly ``digits`` digits and no leading zero."""
    digits = digits or settings.invitation_code_digits
    low = 10 ** (digits - 1)
    return str(low + secrets.randbelow(9 * low))


def _now() -> datetime:
    return datetime.now(timezone.utc)


@store("invitations.issue", "email", "created_by_id")
def issue(
    db: Session,
    *,
    email: Optional[str],
    nombre: Optional[str],
    apellido: Optional[str] = None,
    role: Optional[str] = None,
    expiration_days: Optional[int] = None,
    created_by_id: Optional[int] = None,
) -> IssueResult:
    """Create an invitation for ``email`` or reissue the one it already has.

    Reissuing replaces code, names, role and expiry, and puts the row back
    to pending.

    Raises:
        ValidationError: email or nombre missing, or a negative expiry.
        ConflictError: the duplicate row vanished before it could be reissued.
    """
    email = normalize_email(email)
    nombre = (nombre or "").strip()
    if not email or not nombre:
        raise ValidationError("El correo electrónico y nombre son obligatorios")

    days = expiration_days or settings.invitation_expiration_days
    if days < 0:
        raise ValidationError("Los días de expiración deben ser positivos")

    values: dict[str, Any] = {
        "invitation_code": generate_invitation_code(),
        "nombre": nombre,
        "apellido": apellido or None,
        "role": role or DEFAULT_ROLE,
        "created_by_id": created_by_id,
        "expires_at": _now() + timedelta(days=days),
        "status": PENDING,
        "used_at": None,
        "used_by_id": None,
    }

    invitation = Invitation(email=email, **values)
    try:
        with db.begin_nested():
            db.add(invitation)
    except IntegrityError:
        existing = db.execute(
            select(Invitation).where(Invitation.email == email)
        ).scalar_one_or_none()
        if existing is None:
            log_exception_with_context(
                "Invitation insert conflicted without a matching row",
                operation="invitations.issue",
                extra={"email": email},
                logger_name=logger.name,
            )
            raise ConflictError("No se pudo crear la invitación, intente nuevamente")
        for name, value in values.items():
            setattr(existing, name, value)
        db.flush()
        logger.info("Invitation %s reissued for %s", existing.id, email)
        return IssueResult(invitation=existing, created=False)

    logger.info("Invitation %s created for %s", invitation.id, email)
    return IssueResult(invitation=invitation, created=True)


def _find(db: Session, email: str, code: str, *conditions) -> list[Invitation]:
    return list(
        db.execute(
            select(Invitation)
            .where(
                Invitation.email == email,
                Invitation.invitation_code == code,
                *conditions,
            )
            .order_by(Invitation.id)
        ).scalars()
    )


def _expire(db: Session, invitation: Invitation) -> None:
    if invitation.status != EXPIRED:
        invitation.status = EXPIRED
        db.flush()
        logger.info("Invitation %s marked expired", invitation.id)


@store("invitations.verify", "email")
def verify(db: Session, email: Optional[str], invitation_code: Optional[str]) -> VerifyResult:
    """Check whether (email, code) names a pending, unexpired invitation.

    Safe to call repeatedly while the registrant types. The only write is the
    lazy pending -> expired transition.
    """
    email = normalize_email(email)
    code = normalize_code(invitation_code)
    if not email or not code:
        raise ValidationError("Email y código de invitación son requeridos")

    pending = _find(db, email, code, Invitation.status == PENDING)
    if not pending:
        others = _find(db, email, code, Invitation.status != PENDING)
        if not others:
            return VerifyResult(valid=False, reason=VerifyReason.NOT_FOUND)
        if others[0].status == USED:
            return VerifyResult(valid=False, reason=VerifyReason.ALREADY_USED)
        return VerifyResult(valid=False, reason=VerifyReason.ALREADY_EXPIRED)

    invitation = pending[0]
    if invitation.is_expired:
        _expire(db, invitation)
        return VerifyResult(valid=False, reason=VerifyReason.EXPIRED)

    return VerifyResult(valid=True, invitation=invitation)


@store("invitations.debug_payload", "email")
def debug_payload(
    db: Session, email: Optional[str], invitation_code: Optional[str], matches_found: int = 0
) -> dict[str, Any]:
    """Codes on file for ``email``. Only returned when ``invitation_debug`` is on."""
    email = normalize_email(email)
    rows = db.execute(
        select(Invitation).where(Invitation.email == email).order_by(Invitation.id)
    ).scalars()
    return {
        "emailChecked": email,
        "codeChecked": normalize_code(invitation_code),
        "availableCodes": [
            {
                "id": row.id,
                "code": row.invitation_code,
                "status": row.status,
                "expires": as_utc(row.expires_at).isoformat(),
            }
            for row in rows
        ],
        "matchesFound": matches_found,
    }


def _apply_profile(db: Session, invitation: Invitation, account_id: int) -> None:
    """Copy role and names from ``invitation`` onto the account's profile.

    Raises:
        PartialFailureError: the profile could not be written. The invitation
            state is left as it is.
    """
    try:
        with db.begin_nested():
            user = db.get(User, account_id)
            if user is None:
                raise NotFoundError("Cuenta no encontrada", account_id=account_id)
            user.role = invitation.role or DEFAULT_ROLE
            if invitation.nombre:
                user.nombre = invitation.nombre
            if invitation.apellido:
                user.apellido = invitation.apellido
    except (NotFoundError, SQLAlchemyError) as exc:
        log_exception_with_context(
            "Profile update failed after invitation redemption",
            operation="invitations.redeem",
            extra={"invitation_id": invitation.id, "account_id": account_id},
            logger_name=logger.name,
        )
        raise PartialFailureError(
            "La cuenta fue creada, pero no se pudo completar la configuración del perfil",
            invitation_id=invitation.id,
            account_id=account_id,
        ) from exc


@store("invitations.redeem", "email", "new_account_id")
def redeem(
    db: Session,
    email: Optional[str],
    invitation_code: Optional[str],
    new_account_id: Optional[int],
) -> RedeemResult:
    """Consume the invitation for a freshly created account.

    A row that is already ``used`` is not an error: if it was used by this
    same account (a client retry) the profile is written again and
    ``already_used`` is reported.

    Raises:
        ValidationError: an input is missing.
        NotFoundError: nothing matches (email, code).
        ExpiredError: the invitation is past its expiry; it is marked expired.
        PartialFailureError: the invitation was consumed but the profile
            write failed.
    """
    email = normalize_email(email)
    code = normalize_code(invitation_code)
    if not email or not code or not new_account_id:
        raise ValidationError("Faltan datos requeridos")

    matches = _find(db, email, code)
    if not matches:
        raise NotFoundError("Invitación no encontrada para este email y código")
    invitation = matches[0]

    if invitation.status == USED:
        return _already_used(db, invitation, new_account_id)

    if not invitation.is_pending or invitation.is_expired:
        _expire(db, invitation)
        raise ExpiredError("La invitación ha expirado", invitation_id=invitation.id)

    consumed = db.execute(
        update(Invitation)
        .where(Invitation.id == invitation.id, Invitation.status == PENDING)
        .values(status=USED, used_at=_now(), used_by_id=new_account_id)
        .execution_options(synchronize_session=False)
    ).rowcount
    if consumed == 0:
        # Another request changed the row between our read and this update.
        db.refresh(invitation)
        if invitation.status == USED:
            return _already_used(db, invitation, new_account_id)
        raise ExpiredError("La invitación ha expirado", invitation_id=invitation.id)

    db.refresh(invitation)
    logger.info("Invitation %s used by account %s", invitation.id, new_account_id)
    _apply_profile(db, invitation, new_account_id)
    return RedeemResult(invitation=invitation)


def _already_used(db: Session, invitation: Invitation, account_id: int) -> RedeemResult:
    if invitation.used_by_id in (None, account_id):
        _apply_profile(db, invitation, account_id)
    else:
        logger.warning(
            "Invitation %s already used by account %s, not applied to %s",
            invitation.id,
            invitation.used_by_id,
            account_id,
        )
    return RedeemResult(invitation=invitation, already_used=True)


@store("invitations.get_by_code", "email")
def get_by_code(db: Session, email: Optional[str], invitation_code: Optional[str]) -> Invitation:
    """Pending invitation for (email, code).

    Raises:
        ValidationError: email missing.
        NotFoundError: no pending match (including used ones).
        ExpiredError: the match is past its expiry; it is marked expired first.
    """
    email = normalize_email(email)
    if not email:
        raise ValidationError("Se requiere el correo electrónico")

    matches = _find(db, email, normalize_code(invitation_code), Invitation.status == PENDING)
    if not matches:
        raise NotFoundError("Invitación no encontrada o ya utilizada")
    invitation = matches[0]
    if invitation.is_expired:
        _expire(db, invitation)
        raise ExpiredError("La invitación ha expirado", invitation_id=invitation.id)
    return invitation


@store("invitations.mark_used", "user_id")
def mark_used(db: Session, invitation_code: Optional[str], user_id: Optional[int]) -> None:
    """Flip the pending invitation held by ``user_id``'s address to used.

    Raises:
        ValidationError: missing input, unknown user, or no pending row updated.
    """
    code = normalize_code(invitation_code)
    if not code or not user_id:
        raise ValidationError("Token y userId son requeridos")

    user = db.get(User, user_id)
    if user is None:
        raise ValidationError("No se pudo actualizar la invitación")

    updated = db.execute(
        update(Invitation)
        .where(
            Invitation.email == normalize_email(user.email),
            Invitation.invitation_code == code,
            Invitation.status == PENDING,
        )
        .values(status=USED, used_at=_now(), used_by_id=user_id)
        .execution_options(synchronize_session=False)
    ).rowcount
    if updated == 0:
        raise ValidationError("No se pudo actualizar la invitación")


@store("invitations.delete", "invitation_id")
def delete(db: Session, invitation_id: Optional[int]) -> Invitation:
    """Remove an invitation that has not been used.

    Raises:
        ValidationError: no id given, or the invitation was already used.
        NotFoundError: no such invitation.
    """
    if not invitation_id:
        raise ValidationError("ID de invitación requerido")
    invitation = db.get(Invitation, invitation_id)
    if invitation is None:
        raise NotFoundError("Invitación no encontrada")
    if invitation.status == USED:
        raise ValidationError("No se puede eliminar una invitación ya utilizada")
    db.delete(invitation)
    db.flush()
    logger.info("Invitation %s deleted", invitation_id)
    return invitation


@store("invitations.list_all")
def list_all(db: Session) -> list[Invitation]:
    return list(
        db.execute(
            select(Invitation).order_by(Invitation.created_at.desc(), Invitation.id.desc())
        ).scalars()
    )
