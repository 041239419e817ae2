import logging
from datetime import date, datetime, timedelta
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy import or_
from sqlalchemy.orm import Session, joinedload

from app.db.session import get_db
from app.api.deps import get_current_staff_user
from app.core.config import settings
from app.core.errors import Conflict, NotFound, ValidationError
from app.models.funcion import Funcion
from app.models.pelicula import Pelicula
from app.models.reserva import Reserva, ESTADOS_ACTIVOS
from app.models.sala import Sala
from app.models.usuario import Usuario
from app.schemas.common import MessageResponse, build_pagination, clamp_limit
from app.schemas.funcion import (
    FuncionAdmin,
    FuncionAdminListResponse,
    FuncionAdminResponse,
    FuncionCreate,
    FuncionUpdate,
)
from app.services.reportes import day_bounds

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin/funciones", tags=["Admin - Funciones"])

MAX_LIMIT = 100

# Fields that stay editable once the showtime has live reservations
CAMPOS_EDITABLES_CON_RESERVAS = {"activa", "precio_base", "precio_con_descuento", "especial"}

HORARIO_OCUPADO = "Ya existe una función programada en ese horario para esta sala"


def _local_naive(value: datetime) -> datetime:
    """Stored datetimes are naive local time."""
    if value.tzinfo is not None:
        return value.astimezone().replace(tzinfo=None)
    return value


def _fin(inicio: datetime, pelicula: Pelicula) -> datetime:
    return inicio + timedelta(minutes=pelicula.duracion_minutos + settings.SHOWTIME_CLEANUP_MINUTES)


def _hay_solapamiento(db: Session, sala_id: int, inicio: datetime, fin: datetime, exclude_id=None) -> bool:
    """Another active showtime in the room intersects [inicio, fin)."""
    query = db.query(Funcion.id).filter(
        Funcion.sala_id == sala_id,
        Funcion.activa == True,  # noqa: E712
        Funcion.fecha_hora_inicio < fin,
        Funcion.fecha_hora_fin > inicio,
    )
    if exclude_id is not None:
        query = query.filter(Funcion.id != exclude_id)
    return query.first() is not None


def _reservas_activas(db: Session, funcion: Funcion) -> int:
    return (
        db.query(Reserva.id)
        .filter(Reserva.funcion_id == funcion.id, Reserva.estado.in_(ESTADOS_ACTIVOS))
        .count()
    )


def _get_funcion_or_404(db: Session, id: int) -> Funcion:
    funcion = (
        db.query(Funcion)
        .options(joinedload(Funcion.pelicula), joinedload(Funcion.sala))
        .filter(Funcion.id == id)
        .first()
    )
    if not funcion:
        raise NotFound("Función no encontrada")
    return funcion


@router.get("", response_model=FuncionAdminListResponse)
def list_funciones(
    search: str = Query(""),
    activa: str = Query("all"),
    fecha: Optional[date] = Query(None),
    page: int = Query(1),
    limit: int = Query(20),
    db: Session = Depends(get_db),
    current_user: Usuario = Depends(get_current_staff_user),
):
    """
    Showtimes, soonest first.

    - `search` matches the movie title or room name, or the exact room number.
    - `activa`: `true` | `false` | `all`.
    - `fecha` (YYYY-MM-DD) restricts to showtimes starting that local day.
    """
    page = max(page, 1)
    limit = clamp_limit(limit, MAX_LIMIT)

    query = (
        db.query(Funcion)
        .join(Pelicula, Pelicula.id == Funcion.pelicula_id)
        .join(Sala, Sala.id == Funcion.sala_id)
    )
    if activa in ("true", "false"):
        query = query.filter(Funcion.activa == (activa == "true"))
    if fecha:
        start, end = day_bounds(fecha)
        query = query.filter(Funcion.fecha_hora_inicio >= start, Funcion.fecha_hora_inicio < end)
    term = search.strip()
    if term:
        conditions = [
            Pelicula.titulo.icontains(term, autoescape=True),
            Sala.nombre.icontains(term, autoescape=True),
        ]
        if term.isdigit():
            conditions.append(Sala.numero == int(term))
        query = query.filter(or_(*conditions))

    total = query.count()
    funciones = (
        query.options(joinedload(Funcion.pelicula), joinedload(Funcion.sala))
        .order_by(Funcion.fecha_hora_inicio.asc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )

    return FuncionAdminListResponse(
        funciones=[FuncionAdmin.model_validate(f) for f in funciones],
        pagination=build_pagination(total, page, limit),
    )


@router.post("", response_model=FuncionAdminResponse, status_code=status.HTTP_201_CREATED)
def create_funcion(
    data: FuncionCreate,
    db: Session = Depends(get_db),
    current_user: Usuario = Depends(get_current_staff_user),
):
    """
    Schedule a showtime. The end time is the movie length plus the room
    cleanup window, and it may not overlap another active showtime in the
    same room.
    """
    if not (data.pelicula_id and data.sala_id and data.fecha_hora_inicio and data.precio_base):
        raise ValidationError("Todos los campos son requeridos")

    pelicula = db.query(Pelicula).filter(Pelicula.id == data.pelicula_id).first()
    if not pelicula:
        raise NotFound("Película no encontrada")

    sala = db.query(Sala).filter(Sala.id == data.sala_id).first()
    if not sala:
        raise NotFound("Sala no encontrada")

    inicio = _local_naive(data.fecha_hora_inicio)
    fin = _fin(inicio, pelicula)

    if _hay_solapamiento(db, sala.id, inicio, fin):
        raise Conflict(HORARIO_OCUPADO)

    funcion = Funcion(
        pelicula_id=pelicula.id,
        sala_id=sala.id,
        fecha_hora_inicio=inicio,
        fecha_hora_fin=fin,
        precio_base=data.precio_base,
        precio_con_descuento=data.precio_con_descuento,
        asientos_disponibles=sala.capacidad_total,
        asientos_reservados=0,
        especial=data.especial,
        activa=True,
    )
    db.add(funcion)
    db.commit()
    db.refresh(funcion)

    logger.info("Showtime %s scheduled in room %s at %s", funcion.id, sala.numero, inicio)
    return FuncionAdminResponse(funcion=FuncionAdmin.model_validate(funcion))


@router.get("/{id}", response_model=FuncionAdminResponse)
def get_funcion(
    id: int,
    db: Session = Depends(get_db),
    current_user: Usuario = Depends(get_current_staff_user),
):
    return FuncionAdminResponse(funcion=FuncionAdmin.model_validate(_get_funcion_or_404(db, id)))


@router.patch("/{id}", response_model=FuncionAdminResponse)
def update_funcion(
    id: int,
    data: FuncionUpdate,
    db: Session = Depends(get_db),
    current_user: Usuario = Depends(get_current_staff_user),
):
    """
    Update a showtime.

    Once it has live reservations only the prices, `especial` and `activa`
    may change. Otherwise movie, room and start time can be moved too: the
    end time is recomputed and the new slot may not overlap another active
    showtime in the room.
    """
    funcion = _get_funcion_or_404(db, id)
    changes = {
        field: value
        for field, value in data.model_dump(exclude_unset=True).items()
        if value is not None or field == "precio_con_descuento"
    }

    if _reservas_activas(db, funcion):
        changes = {k: v for k, v in changes.items() if k in CAMPOS_EDITABLES_CON_RESERVAS}
        if not changes:
            raise ValidationError(
                "No se pueden modificar estos campos cuando hay reservas activas"
            )

    if "precio_base" in changes and changes["precio_base"] <= 0:
        raise ValidationError("El precio base debe ser mayor a 0")

    pelicula = funcion.pelicula
    if "pelicula_id" in changes:
        pelicula = db.query(Pelicula).filter(Pelicula.id == changes["pelicula_id"]).first()
        if not pelicula:
            raise NotFound("Película no encontrada")

    sala = funcion.sala
    if "sala_id" in changes:
        sala = db.query(Sala).filter(Sala.id == changes["sala_id"]).first()
        if not sala:
            raise NotFound("Sala no encontrada")

    inicio = funcion.fecha_hora_inicio
    if "fecha_hora_inicio" in changes:
        inicio = _local_naive(changes["fecha_hora_inicio"])
        changes["fecha_hora_inicio"] = inicio
    fin = funcion.fecha_hora_fin
    if "fecha_hora_inicio" in changes or "pelicula_id" in changes:
        fin = _fin(inicio, pelicula)
        changes["fecha_hora_fin"] = fin

    reprograma = bool({"sala_id", "fecha_hora_inicio", "pelicula_id"} & changes.keys())
    activa = changes.get("activa", funcion.activa)
    if activa and (reprograma or not funcion.activa):
        if _hay_solapamiento(db, sala.id, inicio, fin, exclude_id=funcion.id):
            raise Conflict(HORARIO_OCUPADO)

    if sala.id != funcion.sala_id:
        # No live reservations here, so the new room starts empty
        changes["asientos_disponibles"] = sala.capacidad_total
        changes["asientos_reservados"] = 0

    for field, value in changes.items():
        setattr(funcion, field, value)

    db.commit()
    db.expire_all()
    logger.info("Showtime %s updated by user %s", id, current_user.id)
    return FuncionAdminResponse(funcion=FuncionAdmin.model_validate(_get_funcion_or_404(db, id)))


@router.delete("/{id}", response_model=MessageResponse)
def delete_funcion(
    id: int,
    db: Session = Depends(get_db),
    current_user: Usuario = Depends(get_current_staff_user),
):
    """Delete a showtime along with its cancelled and expired reservations."""
    funcion = _get_funcion_or_404(db, id)

    if _reservas_activas(db, funcion):
        raise ValidationError("No se puede eliminar una función con reservas activas")

    for reserva in db.query(Reserva).filter(Reserva.funcion_id == funcion.id).all():
        db.delete(reserva)
    db.flush()
    db.delete(funcion)
    db.commit()

    logger.info("Showtime %s deleted by user %s", id, current_user.id)
    return MessageResponse(message="Función eliminada exitosamente")
