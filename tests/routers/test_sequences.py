from sqlalchemy.exc import OperationalError

from oficina.models.expression import Expression
from oficina.models.petition import Petition


def seed(db, topic, year, numbers):
    for n in numbers:
        db.add(
            Expression(
                ano=year,
                mes=1,
                sequence=n,
                numero=f"{year}-{n:04d}-RNAR",
                nombre=f"Expresión {n}",
                tema_id=topic.id,
            )
        )
    db.flush()


def test_list_gaps(client, db, topic, staff_user, staff_headers):
    seed(db, topic, 2024, [1, 2, 5, 7])

    response = client.get(
        "/sequences/expresiones/gaps",
        headers=staff_headers,
        params={"year": 2024, "topic_id": topic.id},
    )
    assert response.status_code == 200
    data = response.json()
    assert data["year"] == 2024
    assert data["gaps"] == [
        {"sequence": 3, "numero": "2024-0003-RNAR"},
        {"sequence": 4, "numero": "2024-0004-RNAR"},
        {"sequence": 6, "numero": "2024-0006-RNAR"},
    ]
    assert data["reason"] is None


def test_list_gaps_none_available(client, db, topic, staff_user, staff_headers):
    seed(db, topic, 2024, [1, 2, 3])

    response = client.get(
        "/sequences/expresiones/gaps",
        headers=staff_headers,
        params={"year": 2024, "topic_id": topic.id},
    )
    assert response.status_code == 200
    assert response.json()["gaps"] == []
    assert response.json()["reason"]


def test_list_gaps_empty_year(client, topic, staff_user, staff_headers):
    response = client.get(
        "/sequences/expresiones/gaps",
        headers=staff_headers,
        params={"year": 2030, "topic_id": topic.id},
    )
    assert response.status_code == 404
    assert "2030" in response.json()["error"]


def test_list_gaps_unknown_kind(client, staff_user, staff_headers):
    response = client.get(
        "/sequences/facturas/gaps", headers=staff_headers, params={"year": 2024}
    )
    assert response.status_code == 404


def test_list_gaps_unauthenticated(client):
    response = client.get("/sequences/expresiones/gaps", params={"year": 2024})
    assert response.status_code == 401


def test_allocate_gap(client, db, topic, staff_user, staff_headers):
    seed(db, topic, 2024, [1, 3])

    response = client.post(
        "/sequences/expresiones/allocate",
        headers=staff_headers,
        json={"year": 2024, "topic_id": topic.id, "sequence": 2, "numero": "2024-0002-RNAR"},
    )
    assert response.status_code == 201
    data = response.json()
    assert data["sequence"] == 2
    assert data["numero"] == "2024-0002-RNAR"
    assert db.get(Expression, data["id"]).nombre == "Nueva expresión 2024-0002-RNAR"


def test_allocate_gap_conflict(client, db, topic, staff_user, staff_headers):
    seed(db, topic, 2024, [1, 3])
    body = {"year": 2024, "topic_id": topic.id, "sequence": 2, "numero": "2024-0002-RNAR"}

    assert client.post("/sequences/expresiones/allocate", headers=staff_headers, json=body).status_code == 201
    response = client.post("/sequences/expresiones/allocate", headers=staff_headers, json=body)
    assert response.status_code == 409
    assert "error" in response.json()


def test_allocate_petition_gap(client, db, staff_user, staff_headers):
    for n in (1, 3):
        db.add(Petition(year=2025, mes=1, sequence=n, num_peticion=f"25-{n:04d}"))
    db.flush()

    response = client.post(
        "/sequences/peticiones/allocate",
        headers=staff_headers,
        json={"year": 2025, "sequence": 2},
    )
    assert response.status_code == 201
    assert response.json()["numero"] == "25-0002"


def test_list_years(client, db, topic, staff_user, staff_headers):
    seed(db, topic, 2023, [1])
    seed(db, topic, 2024, [1])

    response = client.get("/sequences/expresiones/years", headers=staff_headers)
    assert response.status_code == 200
    assert response.json() == [2024, 2023]


def test_list_gaps_store_failure(client, db, topic, staff_user, staff_headers, monkeypatch):
    def unavailable(*args, **kwargs):
        raise OperationalError("SELECT", {}, Exception("server has gone away"))

    monkeypatch.setattr(db, "execute", unavailable)
    response = client.get(
        "/sequences/expresiones/gaps",
        headers=staff_headers,
        params={"year": 2024, "topic_id": topic.id},
    )
    assert response.status_code == 500
    assert "error" in response.json()
