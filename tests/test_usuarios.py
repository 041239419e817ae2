import pytest

from app.core.security import verify_password
from app.models.reserva import Reserva
from app.models.usuario import Usuario


def usuario_payload(**overrides):
    payload = {
        "email": "taquilla@example.com",
        "password": "taquilla1",
        "nombre": "Marta",
        "apellido": "Ruiz",
        "tipo_usuario": "empleado",
    }
    payload.update(overrides)
    return payload


@pytest.fixture()
def empleado(make_usuario):
    return make_usuario(email="empleado@example.com", tipo_usuario="empleado")


@pytest.fixture()
def reserva_de(client, auth_headers, make_pelicula, make_sala, make_funcion):
    """Reserve the first seat of a fresh showtime for a user."""
    def _reserva(usuario):
        sala = make_sala(numero=1, filas=1, asientos_por_fila=2)
        funcion = make_funcion(make_pelicula(titulo="Estreno"), sala)
        response = client.post(
            "/api/cliente/reservas",
            json={"funcion_id": funcion.id, "asiento_ids": [sala.asientos[0].id]},
            headers=auth_headers(usuario),
        )
        assert response.status_code == 201
        return response.json()["reserva"]

    return _reserva


def test_create_staff_account(client, db, admin, auth_headers):
    response = client.post("/api/admin/usuarios", json=usuario_payload(), headers=auth_headers(admin))
    assert response.status_code == 201
    creado = response.json()["usuario"]
    assert creado["tipo_usuario"] == "empleado"
    assert creado["activo"] is True

    usuario = db.query(Usuario).filter(Usuario.email == "taquilla@example.com").one()
    assert verify_password("taquilla1", usuario.password_hash)

    login = client.post("/api/auth/login", json={"email": "taquilla@example.com", "password": "taquilla1"})
    assert login.json()["redirectTo"] == "/admin"


@pytest.mark.parametrize("overrides, status", [
    ({"email": ""}, 400),
    ({"email": "no-es-email"}, 400),
    ({"password": "123"}, 400),
    ({"tipo_usuario": "superusuario"}, 400),
    ({"email": "admin@example.com"}, 409),
])
def test_create_usuario_validation(client, db, admin, auth_headers, overrides, status):
    response = client.post(
        "/api/admin/usuarios", json=usuario_payload(**overrides), headers=auth_headers(admin),
    )
    assert response.status_code == status
    assert db.query(Usuario).count() == 1


def test_employee_cannot_create_or_promote_admins(client, db, empleado, cliente, auth_headers):
    headers = auth_headers(empleado)

    response = client.post(
        "/api/admin/usuarios", json=usuario_payload(tipo_usuario="administrador"), headers=headers,
    )
    assert response.status_code == 403

    response = client.patch(
        f"/api/admin/usuarios/{cliente.id}", json={"tipo_usuario": "gerente"}, headers=headers,
    )
    assert response.status_code == 403

    response = client.post("/api/admin/usuarios", json=usuario_payload(tipo_usuario="cliente"), headers=headers)
    assert response.status_code == 201


def test_clients_cannot_manage_users(client, cliente, auth_headers):
    assert client.get("/api/admin/usuarios", headers=auth_headers(cliente)).status_code == 403


def test_list_usuarios_filters(client, admin, make_usuario, auth_headers):
    make_usuario(email="ana.cliente@example.com")
    make_usuario(email="inactivo@example.com", activo=False)
    make_usuario(email="caja_1@example.com", tipo_usuario="empleado")
    headers = auth_headers(admin)

    body = client.get("/api/admin/usuarios", headers=headers).json()
    assert body["pagination"]["total"] == 4
    assert body["usuarios"][0]["email"] == "caja_1@example.com"

    body = client.get("/api/admin/usuarios", params={"tipo": "empleado"}, headers=headers).json()
    assert [u["email"] for u in body["usuarios"]] == ["caja_1@example.com"]

    body = client.get("/api/admin/usuarios", params={"activo": "false"}, headers=headers).json()
    assert [u["email"] for u in body["usuarios"]] == ["inactivo@example.com"]

    body = client.get("/api/admin/usuarios", params={"search": "ANA.CLI"}, headers=headers).json()
    assert [u["email"] for u in body["usuarios"]] == ["ana.cliente@example.com"]

    # "_" is a literal underscore, not a single-character wildcard
    body = client.get("/api/admin/usuarios", params={"search": "caja_"}, headers=headers).json()
    assert [u["email"] for u in body["usuarios"]] == ["caja_1@example.com"]
    body = client.get("/api/admin/usuarios", params={"search": "a_a"}, headers=headers).json()
    assert body["usuarios"] == []


def test_get_usuario_with_reservations(client, admin, cliente, auth_headers, reserva_de):
    reserva = reserva_de(cliente)

    response = client.get(f"/api/admin/usuarios/{cliente.id}", headers=auth_headers(admin))
    assert response.status_code == 200
    detalle = response.json()["usuario"]
    assert detalle["email"] == "cliente@example.com"
    assert [r["codigo_reserva"] for r in detalle["reservas"]] == [reserva["codigo_reserva"]]
    assert detalle["reservas"][0]["pelicula_titulo"] == "Estreno"

    assert client.get("/api/admin/usuarios/9999", headers=auth_headers(admin)).status_code == 404


def test_update_usuario(client, db, admin, cliente, auth_headers):
    response = client.patch(
        f"/api/admin/usuarios/{cliente.id}",
        json={"nombre": "Ana María", "activo": False, "password": "nueva123", "apellido": None},
        headers=auth_headers(admin),
    )
    assert response.status_code == 200
    body = response.json()
    assert body["message"] == "Usuario actualizado exitosamente"
    assert body["usuario"]["nombre"] == "Ana María"
    assert body["usuario"]["apellido"] == "Pérez"
    assert body["usuario"]["activo"] is False

    db.expire_all()
    assert verify_password("nueva123", db.query(Usuario).filter(Usuario.id == cliente.id).one().password_hash)

    response = client.patch(
        f"/api/admin/usuarios/{cliente.id}", json={"password": "123"}, headers=auth_headers(admin),
    )
    assert response.status_code == 400


def test_employee_cannot_edit_or_delete_admin(client, admin, empleado, auth_headers):
    headers = auth_headers(empleado)
    assert client.patch(
        f"/api/admin/usuarios/{admin.id}", json={"nombre": "X"}, headers=headers,
    ).status_code == 403
    assert client.delete(f"/api/admin/usuarios/{admin.id}", headers=headers).status_code == 403


def test_delete_usuario(client, db, admin, cliente, make_usuario, auth_headers, reserva_de):
    headers = auth_headers(admin)
    reserva = reserva_de(cliente)

    response = client.delete(f"/api/admin/usuarios/{cliente.id}", headers=headers)
    assert response.status_code == 400
    assert "1 reserva(s) activa(s)" in response.json()["error"]

    response = client.patch(
        f"/api/cliente/reservas/{reserva['id']}/cancelar", headers=auth_headers(cliente),
    )
    assert response.status_code == 200

    response = client.delete(f"/api/admin/usuarios/{cliente.id}", headers=headers)
    assert response.status_code == 200
    assert response.json()["message"] == "Usuario eliminado exitosamente"

    db.expire_all()
    assert db.query(Usuario).filter(Usuario.id == cliente.id).first() is None
    # The cancelled reservation is kept without an owner
    assert db.query(Reserva).filter(Reserva.id == reserva["id"]).one().usuario_id is None

    response = client.delete(f"/api/admin/usuarios/{admin.id}", headers=headers)
    assert response.status_code == 400
    assert response.json()["error"] == "No puedes eliminar tu propia cuenta"
