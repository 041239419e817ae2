import asyncio
import threading
from datetime import datetime, timedelta

import pytest

from app import main
from app.models.funcion import Funcion
from app.models.reserva import Reserva, ReservaAsiento
from app.services.reservas import expire_overdue_reservas


@pytest.fixture()
def funcion(make_pelicula, make_sala, make_funcion):
    sala = make_sala(numero=1, filas=2, asientos_por_fila=5, precio_extra=20)
    return make_funcion(make_pelicula(titulo="Función de prueba"), sala, precio_base=100)


@pytest.fixture()
def asiento_ids(funcion):
    return [a.id for a in funcion.sala.asientos]


@pytest.fixture()
def reservar(client, auth_headers):
    def _reservar(usuario, funcion_id, ids):
        return client.post(
            "/api/cliente/reservas",
            json={"funcion_id": funcion_id, "asiento_ids": ids},
            headers=auth_headers(usuario),
        )

    return _reservar


def counters(db, funcion_id):
    db.expire_all()
    f = db.query(Funcion).filter(Funcion.id == funcion_id).one()
    return f.asientos_disponibles, f.asientos_reservados


def test_create_reserva(client, db, cliente, funcion, asiento_ids, reservar):
    response = reservar(cliente, funcion.id, asiento_ids[:3])
    assert response.status_code == 201
    body = response.json()
    reserva = body["reserva"]
    assert body["success"] is True
    assert reserva["estado"] == "pendiente"
    assert reserva["cantidad_entradas"] == 3
    assert reserva["precio_total"] == 360.0
    assert reserva["codigo_reserva"].startswith("R")
    assert len(reserva["codigo_reserva"]) == 9
    assert reserva["funcion"]["pelicula"]["titulo"] == "Función de prueba"
    assert [(a["fila"], a["numero"]) for a in reserva["asientos"]] == [("A", 1), ("A", 2), ("A", 3)]

    limite = datetime.fromisoformat(reserva["fecha_limite_pago"])
    creada = datetime.fromisoformat(reserva["fecha_reserva"])
    assert limite - creada == timedelta(minutes=30)

    assert counters(db, funcion.id) == (7, 3)


def test_discounted_price_plus_room_extra(client, cliente, make_pelicula, make_sala, make_funcion, reservar):
    sala = make_sala(numero=9, filas=1, asientos_por_fila=4, precio_extra=20)
    funcion = make_funcion(make_pelicula(), sala, precio_base=100, precio_con_descuento=80)
    response = reservar(cliente, funcion.id, [a.id for a in sala.asientos][:2])
    assert response.json()["reserva"]["precio_total"] == 200.0


def test_double_booking_is_rejected(client, db, make_usuario, funcion, asiento_ids, reservar):
    primero = make_usuario()
    segundo = make_usuario()

    assert reservar(primero, funcion.id, asiento_ids[:2]).status_code == 201
    response = reservar(segundo, funcion.id, asiento_ids[1:3])
    assert response.status_code == 409
    assert response.json()["success"] is False

    # The losing request leaves no trace
    assert counters(db, funcion.id) == (8, 2)
    assert db.query(Reserva).count() == 1
    assert db.query(ReservaAsiento).count() == 2


def test_not_enough_seats(client, cliente, make_pelicula, make_sala, make_funcion, reservar):
    sala = make_sala(numero=3, filas=1, asientos_por_fila=2)
    funcion = make_funcion(make_pelicula(), sala, asientos_reservados=2)
    response = reservar(cliente, funcion.id, [sala.asientos[0].id])
    assert response.status_code == 409


@pytest.mark.parametrize("build_ids", [
    lambda ids: [],
    lambda ids: [ids[0], ids[0]],
    lambda ids: ids[:1] * 11,
    lambda ids: [ids[0], 999999],
])
def test_invalid_seat_selection(client, db, cliente, funcion, asiento_ids, reservar, build_ids):
    response = reservar(cliente, funcion.id, build_ids(asiento_ids))
    assert response.status_code == 400
    assert counters(db, funcion.id) == (10, 0)


def test_seat_from_another_room(client, cliente, funcion, make_sala, reservar):
    otra = make_sala(numero=2, filas=1, asientos_por_fila=2)
    response = reservar(cliente, funcion.id, [otra.asientos[0].id])
    assert response.status_code == 400


def test_past_or_missing_showtime(client, cliente, make_pelicula, make_sala, make_funcion, reservar):
    sala = make_sala(numero=4, filas=1, asientos_por_fila=2)
    pasada = make_funcion(make_pelicula(), sala, inicio=datetime.now() - timedelta(hours=1))
    assert reservar(cliente, pasada.id, [sala.asientos[0].id]).status_code == 400
    assert reservar(cliente, 9999, [sala.asientos[0].id]).status_code == 404


def test_create_requires_authentication(client, funcion, asiento_ids):
    response = client.post(
        "/api/cliente/reservas", json={"funcion_id": funcion.id, "asiento_ids": asiento_ids[:1]},
    )
    assert response.status_code == 401


def test_get_reserva(client, cliente, funcion, asiento_ids, reservar):
    reserva_id = reservar(cliente, funcion.id, asiento_ids[:1]).json()["reserva"]["id"]

    response = client.get(f"/api/cliente/reservas/{reserva_id}")
    assert response.status_code == 200
    assert response.json()["reserva"]["id"] == reserva_id

    response = client.get("/api/cliente/reservas/9999")
    assert response.status_code == 404
    assert response.json() == {"success": False, "error": "Reserva no encontrada"}


def test_showtime_reservation_count(client, cliente, funcion, asiento_ids, reservar):
    reservar(cliente, funcion.id, asiento_ids[:2])
    funciones = client.get(f"/api/cliente/peliculas/{funcion.pelicula_id}/funciones").json()["funciones"]
    assert funciones[0]["reservas_count"] == 1
    assert funciones[0]["asientos_reservados"] == 2


def test_cancel_releases_seats(client, db, cliente, make_usuario, funcion, asiento_ids, reservar, auth_headers):
    reserva_id = reservar(cliente, funcion.id, asiento_ids[:2]).json()["reserva"]["id"]

    otro = make_usuario()
    response = client.patch(f"/api/cliente/reservas/{reserva_id}/cancelar", headers=auth_headers(otro))
    assert response.status_code == 404

    response = client.patch(f"/api/cliente/reservas/{reserva_id}/cancelar", headers=auth_headers(cliente))
    assert response.status_code == 200
    assert response.json()["estado"] == "cancelada"
    assert counters(db, funcion.id) == (10, 0)
    assert db.query(ReservaAsiento).count() == 0

    # The same seats can be booked again
    assert reservar(otro, funcion.id, asiento_ids[:2]).status_code == 201

    response = client.patch(f"/api/cliente/reservas/{reserva_id}/cancelar", headers=auth_headers(cliente))
    assert response.status_code == 409


def test_cannot_cancel_paid_reservation(client, cliente, admin, funcion, asiento_ids, reservar, auth_headers):
    reserva_id = reservar(cliente, funcion.id, asiento_ids[:1]).json()["reserva"]["id"]
    client.patch(f"/api/admin/reservas/{reserva_id}", json={"estado": "pagada"}, headers=auth_headers(admin))

    response = client.patch(f"/api/cliente/reservas/{reserva_id}/cancelar", headers=auth_headers(cliente))
    assert response.status_code == 409


def test_admin_state_machine(client, db, cliente, admin, funcion, asiento_ids, reservar, auth_headers):
    headers = auth_headers(admin)
    reserva_id = reservar(cliente, funcion.id, asiento_ids[:2]).json()["reserva"]["id"]
    url = f"/api/admin/reservas/{reserva_id}"

    assert client.patch(url, json={"estado": "inexistente"}, headers=headers).status_code == 400

    response = client.patch(url, json={"estado": "pagada", "metodo_pago": "tarjeta"}, headers=headers)
    assert response.status_code == 200
    reserva = response.json()["reserva"]
    assert reserva["estado"] == "pagada"
    assert reserva["metodo_pago"] == "tarjeta"
    assert reserva["fecha_pago"] is not None
    assert reserva["usuario"]["email"] == "cliente@example.com"

    db.expire_all()
    stored = db.query(Reserva).filter(Reserva.id == reserva_id).one()
    assert stored.empleado_vendedor_id == admin.id

    assert client.patch(url, json={"estado": "cancelada"}, headers=headers).status_code == 409
    assert client.patch(url, json={"estado": "usada"}, headers=headers).status_code == 200
    assert client.patch(url, json={"estado": "pendiente"}, headers=headers).status_code == 409

    # Used tickets keep holding their seats
    assert counters(db, funcion.id) == (8, 2)


def test_admin_cancel_frees_seats(client, db, cliente, admin, funcion, asiento_ids, reservar, auth_headers):
    reserva_id = reservar(cliente, funcion.id, asiento_ids[:3]).json()["reserva"]["id"]
    response = client.patch(
        f"/api/admin/reservas/{reserva_id}", json={"estado": "cancelada", "notas": "Pedido del cliente"},
        headers=auth_headers(admin),
    )
    assert response.status_code == 200
    assert response.json()["reserva"]["notas"] == "Pedido del cliente"
    assert counters(db, funcion.id) == (10, 0)


def test_admin_list_reservas(client, make_usuario, admin, funcion, asiento_ids, reservar, auth_headers):
    ana = make_usuario(email="ana@example.com")
    beto = make_usuario(email="beto@example.com")
    primera = reservar(ana, funcion.id, asiento_ids[:1]).json()["reserva"]
    segunda = reservar(beto, funcion.id, asiento_ids[1:2]).json()["reserva"]
    headers = auth_headers(admin)
    client.patch(f"/api/admin/reservas/{segunda['id']}", json={"estado": "confirmada"}, headers=headers)

    def ids(**params):
        body = client.get("/api/admin/reservas", params=params, headers=headers).json()
        return [r["id"] for r in body["reservas"]]

    assert ids() == [segunda["id"], primera["id"]]
    assert ids(estado="confirmada") == [segunda["id"]]
    assert ids(search="ana@") == [primera["id"]]
    assert ids(search=primera["codigo_reserva"]) == [primera["id"]]
    assert ids(fecha=(datetime.now() + timedelta(days=5)).date().isoformat()) == []

    assert client.patch("/api/admin/reservas/9999", json={"notas": "x"}, headers=headers).status_code == 404


def test_expiry_sweep(app, client, db, cliente, admin, funcion, asiento_ids, reservar, auth_headers):
    vencida_id = reservar(cliente, funcion.id, asiento_ids[:2]).json()["reserva"]["id"]
    pagada_id = reservar(cliente, funcion.id, asiento_ids[2:3]).json()["reserva"]["id"]
    vigente_id = reservar(cliente, funcion.id, asiento_ids[3:4]).json()["reserva"]["id"]
    client.patch(f"/api/admin/reservas/{pagada_id}", json={"estado": "pagada"}, headers=auth_headers(admin))

    db.expire_all()
    pasado = datetime.now() - timedelta(minutes=1)
    db.query(Reserva).filter(Reserva.id.in_([vencida_id, pagada_id])).update(
        {Reserva.fecha_vencimiento: pasado}, synchronize_session=False,
    )
    db.commit()

    session = app.state.SessionLocal()
    try:
        assert expire_overdue_reservas(session) == 1
        assert expire_overdue_reservas(session) == 0
    finally:
        session.close()

    db.expire_all()
    estados = dict(db.query(Reserva.id, Reserva.estado).all())
    assert estados == {vencida_id: "vencida", pagada_id: "pagada", vigente_id: "pendiente"}
    assert counters(db, funcion.id) == (8, 2)
    assert db.query(ReservaAsiento).filter(ReservaAsiento.reserva_id == vencida_id).count() == 0


def test_expiry_loop_sweeps_in_a_worker_thread(app, client, monkeypatch):
    expire_once = main._expire_once
    assert expire_once(app) == 0

    hilos = []

    def sweep(app_):
        hilos.append(threading.get_ident())
        return expire_once(app_)

    monkeypatch.setattr(main, "_expire_once", sweep)

    async def run_one_sweep():
        task = asyncio.create_task(main._reservation_expiry_loop(app, 3600))
        while not hilos:
            await asyncio.sleep(0.01)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
        return threading.get_ident()

    loop_thread = asyncio.run(run_one_sweep())
    assert len(hilos) == 1
    assert hilos[0] != loop_thread


def test_admin_get_reserva(client, cliente, admin, funcion, asiento_ids, reservar, auth_headers):
    reserva_id = reservar(cliente, funcion.id, asiento_ids[:2]).json()["reserva"]["id"]
    headers = auth_headers(admin)

    response = client.get(f"/api/admin/reservas/{reserva_id}", headers=headers)
    assert response.status_code == 200
    reserva = response.json()["reserva"]
    assert reserva["usuario"]["email"] == "cliente@example.com"
    assert [(a["fila"], a["numero"]) for a in reserva["asientos"]] == [("A", 1), ("A", 2)]

    assert client.get("/api/admin/reservas/9999", headers=headers).status_code == 404
    assert client.get(f"/api/admin/reservas/{reserva_id}", headers=auth_headers(cliente)).status_code == 403


def test_counter_sale_paid_on_the_spot(client, db, admin, funcion, asiento_ids, auth_headers):
    response = client.post(
        "/api/admin/reservas",
        json={
            "funcion_id": funcion.id,
            "asiento_ids": asiento_ids[:2],
            "estado": "pagada",
            "metodo_pago": "tarjeta",
            "notas": "Venta en taquilla",
        },
        headers=auth_headers(admin),
    )
    assert response.status_code == 201
    body = response.json()
    assert body["message"] == "Reserva creada exitosamente"
    reserva = body["reserva"]
    assert reserva["estado"] == "pagada"
    assert reserva["usuario"] is None
    assert reserva["metodo_pago"] == "tarjeta"
    assert reserva["fecha_pago"] is not None
    assert reserva["precio_total"] == 240.0

    db.expire_all()
    stored = db.query(Reserva).filter(Reserva.id == reserva["id"]).one()
    assert stored.empleado_vendedor_id == admin.id
    assert counters(db, funcion.id) == (8, 2)


def test_counter_sale_for_registered_client(client, db, cliente, make_usuario, funcion, asiento_ids, auth_headers):
    empleado = make_usuario(tipo_usuario="empleado")
    response = client.post(
        "/api/admin/reservas",
        json={"usuario_id": cliente.id, "funcion_id": funcion.id, "asiento_ids": asiento_ids[:1]},
        headers=auth_headers(empleado),
    )
    assert response.status_code == 201
    reserva = response.json()["reserva"]
    assert reserva["estado"] == "pendiente"
    assert reserva["usuario"]["email"] == "cliente@example.com"

    db.expire_all()
    assert db.query(Reserva).filter(Reserva.id == reserva["id"]).one().empleado_vendedor_id == empleado.id


def test_counter_sale_validation(client, db, admin, make_usuario, funcion, asiento_ids, auth_headers):
    inactivo = make_usuario(activo=False)
    headers = auth_headers(admin)

    def vender(**overrides):
        payload = {"funcion_id": funcion.id, "asiento_ids": asiento_ids[:1]}
        payload.update(overrides)
        return client.post("/api/admin/reservas", json=payload, headers=headers)

    assert vender(estado="usada").status_code == 400
    assert vender(funcion_id=9999).status_code == 404
    response = vender(usuario_id=9999)
    assert response.status_code == 404
    assert response.json()["error"] == "Cliente no encontrado"
    assert vender(usuario_id=inactivo.id).status_code == 404
    assert vender(asiento_ids=[]).status_code == 400

    assert vender().status_code == 201
    assert vender().status_code == 409
    assert counters(db, funcion.id) == (9, 1)


def test_admin_delete_reserva(client, db, cliente, admin, funcion, asiento_ids, reservar, auth_headers):
    headers = auth_headers(admin)
    pendiente_id = reservar(cliente, funcion.id, asiento_ids[:2]).json()["reserva"]["id"]
    usada_id = reservar(cliente, funcion.id, asiento_ids[2:3]).json()["reserva"]["id"]
    client.patch(f"/api/admin/reservas/{usada_id}", json={"estado": "pagada"}, headers=headers)
    client.patch(f"/api/admin/reservas/{usada_id}", json={"estado": "usada"}, headers=headers)

    response = client.delete(f"/api/admin/reservas/{pendiente_id}", headers=headers)
    assert response.status_code == 200
    assert response.json()["message"] == "Reserva eliminada exitosamente"
    assert counters(db, funcion.id) == (9, 1)
    assert db.query(Reserva).filter(Reserva.id == pendiente_id).first() is None
    assert db.query(ReservaAsiento).filter(ReservaAsiento.reserva_id == pendiente_id).count() == 0

    response = client.delete(f"/api/admin/reservas/{usada_id}", headers=headers)
    assert response.status_code == 409
    assert client.delete("/api/admin/reservas/9999", headers=headers).status_code == 404


def test_admin_delete_paid_reserva_after_showtime(client, db, cliente, admin, funcion, asiento_ids, reservar, auth_headers):
    headers = auth_headers(admin)
    pagada_id = reservar(cliente, funcion.id, asiento_ids[:1]).json()["reserva"]["id"]
    client.patch(f"/api/admin/reservas/{pagada_id}", json={"estado": "pagada"}, headers=headers)

    db.query(Funcion).filter(Funcion.id == funcion.id).update(
        {Funcion.fecha_hora_inicio: datetime.now() - timedelta(hours=1)}, synchronize_session=False,
    )
    db.commit()

    response = client.delete(f"/api/admin/reservas/{pagada_id}", headers=headers)
    assert response.status_code == 409
    assert db.query(Reserva).filter(Reserva.id == pagada_id).count() == 1
