from fastapi import APIRouter, HTTPException, status
from sqlalchemy import select

from oficina.dependencies import CurrentUser, DbSession
from oficina.models.expression import Expression
from oficina.schemas.expression import ExpressionCreate, ExpressionRead
from oficina.services import audit, sequences

router = APIRouter(prefix="/expressions", tags=["expressions"])


@router.post("", response_model=ExpressionRead, status_code=status.HTTP_201_CREATED)
def create_expression(request: ExpressionCreate, user: CurrentUser, db: DbSession):
    expression = sequences.create_next(
        db,
        "expresiones",
        year=request.ano,
        topic_id=request.tema_id,
        nombre=request.nombre,
        email=request.email,
        propuesta=request.propuesta,
        mes=request.mes,
        fecha_recibido=request.fecha_recibido,
    )
    audit.record(db, user.id, f"Expresión creada: {expression.numero}")
    return expression


@router.get("", response_model=list[ExpressionRead])
def list_expressions(user: CurrentUser, db: DbSession, year: int | None = None):
    query = select(Expression).order_by(Expression.ano.desc(), Expression.sequence)
    if year is not None:
        query = query.where(Expression.ano == year)
    return db.execute(query).scalars().all()


@router.get("/{expression_id}", response_model=ExpressionRead)
def get_expression(expression_id: int, user: CurrentUser, db: DbSession):
    expression = db.get(Expression, expression_id)
    if expression is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND)
    return expression


@router.delete("/{expression_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_expression(expression_id: int, user: CurrentUser, db: DbSession):
    expression = db.get(Expression, expression_id)
    if expression is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND)
    db.delete(expression)
    db.flush()
    audit.record(db, user.id, f"Expresión eliminada: {expression.numero}")
