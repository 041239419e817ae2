import os
from datetime import date, datetime, timedelta

import pytest

# Must be set before the app modules read their settings
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("EXPIRY_SWEEP_ENABLED", "false")

from fastapi.testclient import TestClient

from app.core.config import Settings
from app.core.security import create_access_token, get_password_hash
from app.main import create_app
from app.api.admin.salas import build_asientos
from app.models.catalogo import Genero, Pais
from app.models.funcion import Funcion
from app.models.pelicula import Clasificacion, Pelicula, PeliculaGenero
from app.models.sala import Sala
from app.models.usuario import Usuario

PASSWORD = "secret123"


@pytest.fixture()
def app(tmp_path):
    test_settings = Settings(
        DATABASE_URL=f"sqlite:///{tmp_path / 'test.db'}",
        EXPIRY_SWEEP_ENABLED=False,
        LOG_LEVEL="WARNING",
    )
    return create_app(test_settings)


@pytest.fixture()
def client(app):
    with TestClient(app) as client:
        yield client


@pytest.fixture()
def db(app, client):
    session = app.state.SessionLocal()
    yield session
    session.close()


# ---------------------------------------------------------------------------
# Seed helpers
# ---------------------------------------------------------------------------


@pytest.fixture()
def make_usuario(db):
    counter = {"n": 0}

    def _make(email=None, tipo_usuario="cliente", activo=True, password=PASSWORD):
        counter["n"] += 1
        usuario = Usuario(
            email=email or f"user{counter['n']}@example.com",
            password_hash=get_password_hash(password),
            nombre="Ana",
            apellido="Pérez",
            telefono="5551234",
            fecha_nacimiento=date(1990, 5, 17),
            tipo_usuario=tipo_usuario,
            activo=activo,
        )
        db.add(usuario)
        db.commit()
        db.refresh(usuario)
        return usuario

    return _make


@pytest.fixture()
def make_sala(db):
    def _make(numero=1, filas=5, asientos_por_fila=10, precio_extra=0, activa=True, nombre=None):
        sala = Sala(
            numero=numero,
            nombre=nombre or f"Sala {numero}",
            tipo_sala="estandar",
            capacidad_total=filas * asientos_por_fila,
            filas=filas,
            asientos_por_fila=asientos_por_fila,
            precio_extra=precio_extra,
            activa=activa,
            equipamiento={},
        )
        sala.asientos = build_asientos(filas, asientos_por_fila)
        db.add(sala)
        db.commit()
        db.refresh(sala)
        return sala

    return _make


@pytest.fixture()
def make_pelicula(db):
    def _make(
        titulo="Película",
        clasificacion=Clasificacion.PG,
        activa=True,
        generos=(),
        director=None,
        reparto=None,
        duracion_minutos=120,
        fecha_estreno_local=None,
        calificacion_imdb=None,
    ):
        pelicula = Pelicula(
            titulo=titulo,
            duracion_minutos=duracion_minutos,
            clasificacion=clasificacion,
            activa=activa,
            director=director,
            reparto=reparto,
            fecha_estreno_local=fecha_estreno_local,
            calificacion_imdb=calificacion_imdb,
        )
        for nombre in generos:
            genero = db.query(Genero).filter(Genero.nombre == nombre).first()
            if genero is None:
                genero = Genero(nombre=nombre, activo=True)
                db.add(genero)
                db.flush()
            pelicula.peliculas_generos.append(PeliculaGenero(genero_id=genero.id))
        db.add(pelicula)
        db.commit()
        db.refresh(pelicula)
        return pelicula

    return _make


@pytest.fixture()
def make_funcion(db):
    def _make(pelicula, sala, inicio=None, precio_base=100, precio_con_descuento=None, activa=True,
              asientos_reservados=0):
        inicio = inicio or datetime.now() + timedelta(days=1)
        funcion = Funcion(
            pelicula_id=pelicula.id,
            sala_id=sala.id,
            fecha_hora_inicio=inicio,
            fecha_hora_fin=inicio + timedelta(minutes=pelicula.duracion_minutos + 30),
            precio_base=precio_base,
            precio_con_descuento=precio_con_descuento,
            asientos_disponibles=sala.capacidad_total - asientos_reservados,
            asientos_reservados=asientos_reservados,
            activa=activa,
        )
        db.add(funcion)
        db.commit()
        db.refresh(funcion)
        return funcion

    return _make


@pytest.fixture()
def make_pais(db):
    def _make(nombre, codigo_iso, activo=True):
        pais = Pais(nombre=nombre, codigo_iso=codigo_iso, activo=activo)
        db.add(pais)
        db.commit()
        return pais

    return _make


@pytest.fixture()
def auth_headers():
    """Bearer header for a user, so tests never depend on the cookie jar."""
    def _headers(usuario: Usuario) -> dict:
        token = create_access_token(
            user_id=usuario.id,
            email=usuario.email,
            nombre=usuario.nombre,
            apellido=usuario.apellido,
            tipo_usuario=usuario.tipo_usuario,
        )
        return {"Authorization": f"Bearer {token}"}

    return _headers


@pytest.fixture()
def cliente(make_usuario):
    return make_usuario(email="cliente@example.com")


@pytest.fixture()
def admin(make_usuario):
    return make_usuario(email="admin@example.com", tipo_usuario="administrador")
