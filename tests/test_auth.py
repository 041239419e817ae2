import logging
from datetime import date, timedelta

from app.core.config import settings
from app.models.usuario import Usuario


def years_ago(years: int) -> date:
    today = date.today()
    try:
        return today.replace(year=today.year - years)
    except ValueError:
        # Feb 29 in a non-leap target year
        return today.replace(year=today.year - years, day=28)


def register_payload(**overrides):
    payload = {
        "email": "nuevo@example.com",
        "password": "secret123",
        "nombre": "Luis",
        "apellido": "García",
        "telefono": "5559876",
        "fecha_nacimiento": "1995-03-10",
    }
    payload.update(overrides)
    return payload


def test_register_creates_client(client, db):
    response = client.post("/api/auth/register", json=register_payload())
    assert response.status_code == 201
    body = response.json()
    assert body["success"] is True
    assert body["user"]["email"] == "nuevo@example.com"
    assert body["user"]["tipo_usuario"] == "cliente"
    assert "password" not in body["user"]
    assert "password_hash" not in body["user"]

    usuario = db.query(Usuario).filter(Usuario.email == "nuevo@example.com").one()
    assert usuario.password_hash != "secret123"


def test_register_duplicate_email_conflicts(client):
    assert client.post("/api/auth/register", json=register_payload()).status_code == 201
    response = client.post("/api/auth/register", json=register_payload(nombre="Otro"))
    assert response.status_code == 409
    assert response.json() == {"success": False, "error": "Ya existe un usuario con este email"}


def test_register_missing_field(client):
    payload = register_payload()
    del payload["telefono"]
    response = client.post("/api/auth/register", json=payload)
    assert response.status_code == 400
    assert response.json()["success"] is False


def test_register_rejects_bad_email_and_short_password(client):
    assert client.post("/api/auth/register", json=register_payload(email="no-es-email")).status_code == 400
    assert client.post("/api/auth/register", json=register_payload(password="12345")).status_code == 400


def test_register_age_boundary(client):
    thirteen_today = years_ago(13).isoformat()
    response = client.post(
        "/api/auth/register",
        json=register_payload(email="trece@example.com", fecha_nacimiento=thirteen_today),
    )
    assert response.status_code == 201

    thirteen_tomorrow = (years_ago(13) + timedelta(days=1)).isoformat()
    response = client.post(
        "/api/auth/register",
        json=register_payload(email="doce@example.com", fecha_nacimiento=thirteen_tomorrow),
    )
    assert response.status_code == 400


def test_login_sets_cookie_and_redirect(client, make_usuario):
    make_usuario(email="ana@example.com")
    response = client.post("/api/auth/login", json={"email": "ana@example.com", "password": "secret123"})
    assert response.status_code == 200
    body = response.json()
    assert body["redirectTo"] == "/cliente"
    assert body["user"]["email"] == "ana@example.com"
    assert "auth-token" in response.cookies

    set_cookie = response.headers["set-cookie"].lower()
    assert "httponly" in set_cookie
    assert "samesite=strict" in set_cookie


def test_login_staff_redirects_to_admin(client, make_usuario):
    make_usuario(email="jefe@example.com", tipo_usuario="gerente")
    response = client.post("/api/auth/login", json={"email": "jefe@example.com", "password": "secret123"})
    assert response.json()["redirectTo"] == "/admin"


def test_login_failures_are_indistinguishable(client, make_usuario):
    make_usuario(email="ana@example.com")
    wrong_password = client.post("/api/auth/login", json={"email": "ana@example.com", "password": "nope"})
    unknown_email = client.post("/api/auth/login", json={"email": "nadie@example.com", "password": "nope"})

    assert wrong_password.status_code == unknown_email.status_code == 401
    assert wrong_password.json() == unknown_email.json()


def test_login_failures_are_logged(client, make_usuario, caplog):
    usuario = make_usuario(email="ana@example.com")
    caplog.set_level(logging.INFO, logger="app.api.auth")

    client.post("/api/auth/login", json={"email": "ana@example.com", "password": "nope"})
    client.post("/api/auth/login", json={"email": "nadie@example.com", "password": "nope"})

    mensajes = [r.getMessage() for r in caplog.records if r.name == "app.api.auth"]
    assert f"Login failed: wrong password for user {usuario.id}" in mensajes
    assert "Login failed: unknown email" in mensajes
    assert not any("nope" in m for m in mensajes)


def test_login_missing_fields(client):
    assert client.post("/api/auth/login", json={"email": "ana@example.com"}).status_code == 400


def test_login_inactive_account(client, make_usuario):
    make_usuario(email="baja@example.com", activo=False)
    response = client.post("/api/auth/login", json={"email": "baja@example.com", "password": "secret123"})
    assert response.status_code == 401
    assert response.json()["error"] != "Credenciales inválidas"


def test_session_cookie_me_and_logout(client, make_usuario):
    make_usuario(email="ana@example.com")
    client.post("/api/auth/login", json={"email": "ana@example.com", "password": "secret123"})

    me = client.get("/api/auth/me")
    assert me.status_code == 200
    assert me.json()["user"]["email"] == "ana@example.com"

    logout = client.post("/api/auth/logout")
    assert logout.status_code == 200
    assert "max-age=0" in logout.headers["set-cookie"].lower()

    client.cookies.clear()
    assert client.get("/api/auth/me").status_code == 401


def test_me_requires_valid_token(client):
    assert client.get("/api/auth/me").status_code == 401
    response = client.get("/api/auth/me", headers={"Authorization": "Bearer basura"})
    assert response.status_code == 401
    assert response.json() == {"success": False, "error": "Token inválido"}


def test_me_for_deactivated_user(client, make_usuario, auth_headers, db):
    usuario = make_usuario(email="ana@example.com")
    headers = auth_headers(usuario)
    usuario.activo = False
    db.commit()

    assert client.get("/api/auth/me", headers=headers).status_code == 404


def test_admin_register_closed_without_secret(client, db):
    response = client.post("/api/auth/admin/register", json=register_payload(admin_secret="cualquiera"))
    assert response.status_code == 403
    assert response.json()["error"] == "Registro de administradores deshabilitado"
    assert db.query(Usuario).count() == 0


def test_admin_register_with_secret(client, db, monkeypatch):
    monkeypatch.setattr(settings, "ADMIN_SECRET_KEY", "llave-maestra")

    response = client.post("/api/auth/admin/register", json=register_payload(admin_secret="otra"))
    assert response.status_code == 403
    assert response.json()["error"] == "Clave de administrador inválida"

    response = client.post("/api/auth/admin/register", json=register_payload(admin_secret="llave-maestra"))
    assert response.status_code == 201
    assert response.json()["message"] == "Administrador creado exitosamente"
    assert response.json()["user"]["tipo_usuario"] == "administrador"

    # A fresh deployment can now staff itself
    login = client.post("/api/auth/login", json={"email": "nuevo@example.com", "password": "secret123"})
    assert login.status_code == 200
    assert login.json()["redirectTo"] == "/admin"
