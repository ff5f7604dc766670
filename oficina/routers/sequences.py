from fastapi import APIRouter, status

from oficina.dependencies import CurrentUser, DbSession
from oficina.schemas.sequence import AllocateRequest, AllocatedRead, GapReportRead
from oficina.services import audit, sequences

router = APIRouter(prefix="/sequences", tags=["sequences"])


@router.get("/{kind}/years", response_model=list[int])
def list_years(kind: str, user: CurrentUser, db: DbSession):
    return sequences.issued_years(db, kind)


@router.get("/{kind}/gaps", response_model=GapReportRead)
def list_gaps(
    kind: str, year: int, user: CurrentUser, db: DbSession, topic_id: int | None = None
):
    return sequences.find_gaps(db, kind, year, topic_id)


@router.post(
    "/{kind}/allocate",
    response_model=AllocatedRead,
    status_code=status.HTTP_201_CREATED,
)
def allocate_gap(kind: str, request: AllocateRequest, user: CurrentUser, db: DbSession):
    entity = sequences.allocate(
        db,
        kind,
        year=request.year,
        sequence=request.sequence,
        numero=request.numero,
        topic_id=request.topic_id,
        nombre=request.nombre,
    )
    numero = getattr(entity, sequences.get_kind(kind).numero_column)
    audit.record(db, user.id, f"Número disponible utilizado: {numero}")
    return AllocatedRead(id=entity.id, sequence=entity.sequence, numero=numero)
