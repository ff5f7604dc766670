from fastapi import APIRouter, HTTPException, status
from sqlalchemy import select

from oficina.dependencies import CurrentUser, DbSession
from oficina.models.petition import Petition
from oficina.schemas.petition import PetitionCreate, PetitionRead
from oficina.services import audit, sequences

router = APIRouter(prefix="/petitions", tags=["petitions"])


@router.post("", response_model=PetitionRead, status_code=status.HTTP_201_CREATED)
def create_petition(request: PetitionCreate, user: CurrentUser, db: DbSession):
    petition = sequences.create_next(
        db,
        "peticiones",
        year=request.year,
        topic_id=request.tema_id,
        detalles=request.detalles,
        status=request.status,
        mes=request.mes,
        fecha_recibido=request.fecha_recibido,
    )
    audit.record(db, user.id, f"Petición creada: {petition.num_peticion}")
    return petition


@router.get("", response_model=list[PetitionRead])
def list_petitions(user: CurrentUser, db: DbSession, year: int | None = None):
    query = select(Petition).order_by(Petition.year.desc(), Petition.sequence)
    if year is not None:
        query = query.where(Petition.year == year)
    return db.execute(query).scalars().all()


@router.get("/{petition_id}", response_model=PetitionRead)
def get_petition(petition_id: int, user: CurrentUser, db: DbSession):
    petition = db.get(Petition, petition_id)
    if petition is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND)
    return petition


@router.delete("/{petition_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_petition(petition_id: int, user: CurrentUser, db: DbSession):
    petition = db.get(Petition, petition_id)
    if petition is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND)
    db.delete(petition)
    db.flush()
    audit.record(db, user.id, f"Petición eliminada: {petition.num_peticion}")
