def test_list_users_as_admin(client, admin_user, admin_headers):
    response = client.get("/users", headers=admin_headers)
    assert response.status_code == 200
    data = response.json()
    assert len(data) >= 1
    assert data[0]["email"] == "admin@test.com"


def test_list_users_as_staff(client, staff_user, staff_headers):
    response = client.get("/users", headers=staff_headers)
    assert response.status_code == 403


def test_list_users_unauthenticated(client):
    response = client.get("/users")
    assert response.status_code == 401


def test_get_user_as_admin(client, admin_user, admin_headers):
    response = client.get(f"/users/{admin_user.id}", headers=admin_headers)
    assert response.status_code == 200
    assert response.json()["email"] == "admin@test.com"


def test_get_user_not_found(client, admin_user, admin_headers):
    response = client.get("/users/99999", headers=admin_headers)
    assert response.status_code == 404


def test_update_user_as_admin(client, staff_user, admin_headers):
    response = client.put(
        f"/users/{staff_user.id}",
        headers=admin_headers,
        json={"nombre": "Updated", "role": "admin"},
    )
    assert response.status_code == 200
    assert response.json()["nombre"] == "Updated"
    assert response.json()["role"] == "admin"


def test_update_user_as_staff(client, admin_user, staff_headers):
    response = client.put(
        f"/users/{admin_user.id}",
        headers=staff_headers,
        json={"nombre": "Hacked"},
    )
    assert response.status_code == 403


def test_delete_user_as_admin(client, staff_user, admin_headers):
    response = client.delete(
        f"/users/{staff_user.id}", headers=admin_headers
    )
    assert response.status_code == 204


def test_delete_user_as_staff(client, admin_user, staff_headers):
    response = client.delete(
        f"/users/{admin_user.id}", headers=staff_headers
    )
    assert response.status_code == 403


def test_get_own_profile(client, staff_user, staff_headers):
    response = client.get("/users/me", headers=staff_headers)
    assert response.status_code == 200
    assert response.json()["email"] == "staff@test.com"


def test_update_own_profile(client, staff_user, staff_headers):
    response = client.put(
        "/users/me",
        headers=staff_headers,
        json={"apellido": "Rivera", "telefono": "787-555-0100"},
    )
    assert response.status_code == 200
    data = response.json()
    assert data["apellido"] == "Rivera"
    assert data["telefono"] == "787-555-0100"
    assert data["role"] == "user"


def test_own_profile_cannot_change_role(client, staff_user, staff_headers):
    response = client.put("/users/me", headers=staff_headers, json={"role": "admin"})
    assert response.status_code == 200
    assert response.json()["role"] == "user"
