"""Sequence numbers for expressions and petitions.

Each kind of record carries a per-year ``sequence`` and a display number
derived from it. Records get deleted and drafts abandoned, which leaves holes
below the current maximum; ``find_gaps`` lists them and ``allocate`` reissues
one. Nothing here locks: a gap claimed concurrently surfaces as
``ConflictError`` and the caller is expected to search again.
"""

import functools
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Iterable, Optional

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from oficina.config import settings
from oficina.database import Base
from oficina.errors import (
    ConflictError,
    NotFoundError,
    ValidationError,
    log_exception_with_context,
    store_operation,
)
from oficina.models.expression import Expression
from oficina.models.petition import Petition
from oficina.models.topic import Topic

logger = logging.getLogger("oficina.sequences")
store = functools.partial(store_operation, logger_name=logger.name)


def format_numero(year: int, sequence: int, abbreviation: Optional[str] = None) -> str:
    """``2024-0003-RNAR``. Falls back to the configured abbreviation."""
    return f"{year}-{sequence:04d}-{abbreviation or settings.default_topic_abbreviation}"


def format_num_peticion(year: int, sequence: int, abbreviation: Optional[str] = None) -> str:
    """``24-0003``: two-digit year, no topic."""
    return f"{year % 100:02d}-{sequence:04d}"


@dataclass(frozen=True)
class Gap:
    sequence: int
    numero: str


@dataclass(frozen=True)
class SequenceKind:
    name: str
    model: type[Base]
    year_column: str
    numero_column: str
    formatter: Callable[[int, int, Optional[str]], str]
    requires_topic: bool = True
    defaults: Callable[[str, datetime], dict[str, Any]] = lambda numero, now: {}

    @property
    def year_attr(self):
        return getattr(self.model, self.year_column)


KINDS = {
    "expresiones": SequenceKind(
        name="expresiones",
        model=Expression,
        year_column="ano",
        numero_column="numero",
        formatter=format_numero,
        defaults=lambda numero, now: {
            "nombre": f"Nueva expresión {numero}",
            "fecha_recibido": now,
        },
    ),
    "peticiones": SequenceKind(
        name="peticiones",
        model=Petition,
        year_column="year",
        numero_column="num_peticion",
        formatter=format_num_peticion,
        requires_topic=False,
        defaults=lambda numero, now: {"fecha_recibido": now},
    ),
}


@dataclass
class GapReport:
    year: int
    abbreviation: Optional[str]
    gaps: list[Gap] = field(default_factory=list)
    reason: Optional[str] = None


def get_kind(name: str) -> SequenceKind:
    try:
        return KINDS[name]
    except KeyError:
        raise NotFoundError(f"Tipo de registro desconocido: {name}")


def find_gap_numbers(
    existing: Iterable[int],
    year: int,
    abbreviation: Optional[str] = None,
    formatter: Callable[[int, int, Optional[str]], str] = format_numero,
) -> list[Gap]:
    """Integers in ``[1, max(existing))`` missing from ``existing``, ascending."""
    taken = set(existing)
    if not taken:
        return []
    max_sequence = max(taken)
    return [
        Gap(sequence=i, numero=formatter(year, i, abbreviation))
        for i in range(1, max_sequence)
        if i not in taken
    ]


def existing_sequences(db: Session, kind: SequenceKind, year: int) -> list[int]:
    return list(
        db.execute(
            select(kind.model.sequence)
            .where(kind.year_attr == year)
            .order_by(kind.model.sequence)
        ).scalars()
    )


@store("sequences.issued_years", "kind_name")
def issued_years(db: Session, kind_name: str) -> list[int]:
    kind = get_kind(kind_name)
    return list(
        db.execute(
            select(kind.year_attr).distinct().order_by(kind.year_attr.desc())
        ).scalars()
    )


def next_sequence(db: Session, kind: SequenceKind, year: int) -> int:
    current = db.execute(
        select(func.max(kind.model.sequence)).where(kind.year_attr == year)
    ).scalar()
    return (current or 0) + 1


def _resolve_topic(
    db: Session, kind: SequenceKind, topic_id: Optional[int]
) -> Optional[Topic]:
    if topic_id is None:
        if kind.requires_topic:
            raise ValidationError("Por favor seleccione un año y un tema")
        return None
    topic = db.get(Topic, topic_id)
    if topic is None:
        raise NotFoundError("Tema no encontrado")
    return topic


@store("sequences.find_gaps", "kind_name", "year", "topic_id")
def find_gaps(
    db: Session, kind_name: str, year: int, topic_id: Optional[int] = None
) -> GapReport:
    """Unused sequence numbers below the year's maximum.

    Raises:
        NotFoundError: unknown kind or topic, or nothing issued for ``year``.
        ValidationError: the kind needs a topic and none was given.
    """
    kind = get_kind(kind_name)
    topic = _resolve_topic(db, kind, topic_id)
    abbreviation = topic.abreviatura if topic else None

    sequences = existing_sequences(db, kind, year)
    if not sequences:
        raise NotFoundError(
            f"No hay {kind.name} para el año {year}. No se pueden encontrar huecos."
        )

    gaps = find_gap_numbers(sequences, year, abbreviation, kind.formatter)
    report = GapReport(year=year, abbreviation=abbreviation, gaps=gaps)
    if not gaps:
        report.reason = f"No se encontraron números disponibles para el año {year}."
    logger.debug("%d gaps for %s %s", len(gaps), kind.name, year)
    return report


def _insert(
    db: Session,
    kind: SequenceKind,
    year: int,
    sequence: int,
    numero: str,
    topic_id: Optional[int],
    fields: dict[str, Any],
):
    now = datetime.now(timezone.utc)
    values: dict[str, Any] = {
        kind.year_column: year,
        "mes": now.month,
        "sequence": sequence,
        kind.numero_column: numero,
        "tema_id": topic_id,
    }
    values.update(kind.defaults(numero, now))
    columns = kind.model.__table__.columns.keys()
    for name, value in fields.items():
        if value is None:
            continue
        if name not in columns:
            raise ValidationError(f"Campo no válido para {kind.name}: {name}")
        values[name] = value

    entity = kind.model(**values)
    try:
        with db.begin_nested():
            db.add(entity)
    except IntegrityError as exc:
        log_exception_with_context(
            "Sequence number claimed concurrently",
            operation=f"sequences.insert.{kind.name}",
            extra={"year": year, "sequence": sequence},
            logger_name=logger.name,
        )
        raise ConflictError(
            f"El número {numero} ya fue utilizado, busque nuevamente",
            year=year,
            sequence=sequence,
        ) from exc
    return entity


@store("sequences.allocate", "kind_name", "year", "sequence")
def allocate(
    db: Session,
    kind_name: str,
    *,
    year: int,
    sequence: int,
    numero: Optional[str] = None,
    topic_id: Optional[int] = None,
    **fields: Any,
):
    """Create a record reusing the gap ``sequence``.

    The gap set is recomputed first, so a stale choice is rejected before
    the insert rather than by it.

    Raises:
        ConflictError: ``sequence`` is no longer a gap, ``numero`` does not
            match it, or the insert lost a race.
    """
    kind = get_kind(kind_name)
    report = find_gaps(db, kind_name, year, topic_id)
    gap = next((g for g in report.gaps if g.sequence == sequence), None)
    if gap is None or (numero is not None and numero != gap.numero):
        raise ConflictError(
            f"El número {numero or sequence} ya no está disponible",
            year=year,
            sequence=sequence,
        )

    entity = _insert(db, kind, year, gap.sequence, gap.numero, topic_id, fields)
    logger.info("Allocated gap %s in %s", gap.numero, kind.name)
    return entity


@store("sequences.create_next", "kind_name", "year")
def create_next(
    db: Session,
    kind_name: str,
    *,
    year: int,
    topic_id: Optional[int] = None,
    **fields: Any,
):
    """Create a record with the next sequence number after the year's maximum."""
    kind = get_kind(kind_name)
    topic = _resolve_topic(db, kind, topic_id)
    sequence = next_sequence(db, kind, year)
    numero = kind.formatter(year, sequence, topic.abreviatura if topic else None)
    return _insert(db, kind, year, sequence, numero, topic_id, fields)
