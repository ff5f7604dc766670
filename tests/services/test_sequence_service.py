import pytest
from sqlalchemy.exc import OperationalError

from oficina.errors import ConflictError, NotFoundError, StoreError, ValidationError
from oficina.models.expression import Expression
from oficina.models.petition import Petition
from oficina.models.topic import Topic
from oficina.services import sequences
from oficina.services.sequences import Gap


def seed_expressions(db, year, numbers, tema=None):
    for n in numbers:
        db.add(
            Expression(
                ano=year,
                mes=1,
                sequence=n,
                numero=sequences.format_numero(year, n, "RNAR"),
                nombre=f"Expresión {n}",
                tema_id=tema.id if tema else None,
            )
        )
    db.flush()


def test_find_gap_numbers_lists_missing_in_order():
    gaps = sequences.find_gap_numbers([7, 1, 5, 2], 2024, "RNAR")
    assert [g.sequence for g in gaps] == [3, 4, 6]


def test_find_gap_numbers_without_gaps():
    assert sequences.find_gap_numbers([1, 2, 3], 2024, "RNAR") == []


def test_find_gap_numbers_leading_gap():
    gaps = sequences.find_gap_numbers([4], 2024, "RNAR")
    assert [g.sequence for g in gaps] == [1, 2, 3]


def test_find_gap_numbers_empty_input():
    assert sequences.find_gap_numbers([], 2024) == []


def test_format_numero():
    assert sequences.format_numero(2024, 3, "RNAR") == "2024-0003-RNAR"
    assert sequences.format_numero(2024, 12345, "EDU") == "2024-12345-EDU"


def test_format_numero_fallback_abbreviation():
    assert sequences.format_numero(2024, 3, None) == "2024-0003-RNAR"
    assert sequences.format_numero(2024, 3, "") == "2024-0003-RNAR"


def test_format_num_peticion():
    assert sequences.format_num_peticion(2025, 1) == "25-0001"
    assert sequences.format_num_peticion(2007, 42) == "07-0042"


def test_find_gaps(db, topic):
    seed_expressions(db, 2024, [1, 2, 5, 7], topic)
    seed_expressions(db, 2023, [3])

    report = sequences.find_gaps(db, "expresiones", 2024, topic.id)

    assert report.gaps == [
        Gap(3, "2024-0003-RNAR"),
        Gap(4, "2024-0004-RNAR"),
        Gap(6, "2024-0006-RNAR"),
    ]
    assert report.reason is None


def test_find_gaps_uses_topic_abbreviation(db):
    tema = Topic(nombre="Educación", abreviatura="EDU")
    db.add(tema)
    db.flush()
    seed_expressions(db, 2024, [1, 3])

    report = sequences.find_gaps(db, "expresiones", 2024, tema.id)
    assert [g.numero for g in report.gaps] == ["2024-0002-EDU"]


def test_find_gaps_topic_without_abbreviation(db):
    tema = Topic(nombre="Sin abreviatura")
    db.add(tema)
    db.flush()
    seed_expressions(db, 2024, [2])

    report = sequences.find_gaps(db, "expresiones", 2024, tema.id)
    assert [g.numero for g in report.gaps] == ["2024-0001-RNAR"]


def test_find_gaps_no_gaps_has_reason(db, topic):
    seed_expressions(db, 2024, [1, 2, 3], topic)

    report = sequences.find_gaps(db, "expresiones", 2024, topic.id)
    assert report.gaps == []
    assert "2024" in report.reason


def test_find_gaps_empty_year(db, topic):
    seed_expressions(db, 2023, [1, 3], topic)
    with pytest.raises(NotFoundError):
        sequences.find_gaps(db, "expresiones", 2024, topic.id)


def test_find_gaps_needs_topic_for_expressions(db):
    with pytest.raises(ValidationError):
        sequences.find_gaps(db, "expresiones", 2024, None)


def test_find_gaps_unknown_topic(db):
    with pytest.raises(NotFoundError):
        sequences.find_gaps(db, "expresiones", 2024, 424242)


def test_find_gaps_unknown_kind(db):
    with pytest.raises(NotFoundError):
        sequences.find_gaps(db, "facturas", 2024, None)


def test_find_gaps_for_petitions(db):
    for n in (1, 4):
        db.add(Petition(year=2025, mes=1, sequence=n, num_peticion=f"25-{n:04d}"))
    db.flush()

    report = sequences.find_gaps(db, "peticiones", 2025)
    assert [g.numero for g in report.gaps] == ["25-0002", "25-0003"]


def test_allocate_fills_gap(db, topic):
    seed_expressions(db, 2024, [1, 2, 5, 7], topic)

    expression = sequences.allocate(
        db,
        "expresiones",
        year=2024,
        sequence=4,
        numero="2024-0004-RNAR",
        topic_id=topic.id,
    )

    assert expression.id is not None
    assert expression.sequence == 4
    assert expression.numero == "2024-0004-RNAR"
    assert expression.nombre == "Nueva expresión 2024-0004-RNAR"
    assert expression.tema_id == topic.id
    report = sequences.find_gaps(db, "expresiones", 2024, topic.id)
    assert [g.sequence for g in report.gaps] == [3, 6]


def test_allocate_taken_sequence_conflicts(db, topic):
    seed_expressions(db, 2024, [1, 2, 5], topic)
    sequences.allocate(db, "expresiones", year=2024, sequence=3, topic_id=topic.id)

    with pytest.raises(ConflictError):
        sequences.allocate(db, "expresiones", year=2024, sequence=3, topic_id=topic.id)


def test_allocate_rejects_maximum_and_beyond(db, topic):
    seed_expressions(db, 2024, [1, 3], topic)
    for sequence in (3, 4):
        with pytest.raises(ConflictError):
            sequences.allocate(db, "expresiones", year=2024, sequence=sequence, topic_id=topic.id)


def test_allocate_numero_mismatch_conflicts(db, topic):
    seed_expressions(db, 2024, [1, 3], topic)
    with pytest.raises(ConflictError):
        sequences.allocate(
            db, "expresiones", year=2024, sequence=2, numero="2024-0002-XXX", topic_id=topic.id
        )


def test_allocate_rejects_unknown_field(db):
    db.add(Petition(year=2025, mes=1, sequence=2, num_peticion="25-0002"))
    db.flush()
    with pytest.raises(ValidationError):
        sequences.allocate(db, "peticiones", year=2025, sequence=1, nombre="x")


def test_create_next(db, topic):
    seed_expressions(db, 2024, [1, 2, 5], topic)

    expression = sequences.create_next(
        db, "expresiones", year=2024, topic_id=topic.id, nombre="Nueva"
    )
    first_of_year = sequences.create_next(
        db, "expresiones", year=2026, topic_id=topic.id, nombre="Primera"
    )

    assert expression.sequence == 6
    assert expression.numero == "2024-0006-RNAR"
    assert first_of_year.sequence == 1
    assert first_of_year.numero == "2026-0001-RNAR"


def test_issued_years(db, topic):
    seed_expressions(db, 2023, [1], topic)
    seed_expressions(db, 2025, [1, 2], topic)

    assert sequences.issued_years(db, "expresiones") == [2025, 2023]


def test_find_gaps_store_failure_raises_store_error(db, topic, monkeypatch):
    def unavailable(*args, **kwargs):
        raise OperationalError("SELECT", {}, Exception("server has gone away"))

    monkeypatch.setattr(db, "execute", unavailable)
    with pytest.raises(StoreError) as exc_info:
        sequences.find_gaps(db, "expresiones", 2024, topic.id)
    assert exc_info.value.status_code == 500
    assert exc_info.value.context == {"operation": "sequences.find_gaps"}
    assert isinstance(exc_info.value.__cause__, OperationalError)
