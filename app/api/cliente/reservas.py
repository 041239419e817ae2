import logging

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session, joinedload

from app.db.session import get_db
from app.core.config import settings
from app.core.errors import Conflict, NotFound
from app.api.deps import get_current_user
from app.models.funcion import Funcion
from app.models.reserva import Reserva, ReservaAsiento
from app.models.usuario import Usuario
from app.schemas.reserva import (
    Reserva as ReservaSchema,
    ReservaAsientoOut,
    ReservaCancelResponse,
    ReservaCreate,
    ReservaCreateResponse,
    ReservaFuncionSummary,
    ReservaPeliculaSummary,
    ReservaResponse,
    ReservaSalaSummary,
)
from app.services.reservas import ESTADOS_CANCELABLES, create_reserva, transition

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/cliente/reservas", tags=["Cliente - Reservas"])


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def isoformat(value):
    return value.isoformat() if value else None


def load_reserva(db: Session, reserva_id: int):
    """Load a reservation with showtime, movie, room and seats eager-loaded."""
    return (
        db.query(Reserva)
        .options(
            joinedload(Reserva.funcion).joinedload(Funcion.pelicula),
            joinedload(Reserva.funcion).joinedload(Funcion.sala),
            joinedload(Reserva.reservas_asientos).joinedload(ReservaAsiento.asiento),
            joinedload(Reserva.usuario),
        )
        .filter(Reserva.id == reserva_id)
        .first()
    )


def reserva_fields(reserva: Reserva) -> dict:
    """Money as float, dates as ISO strings."""
    funcion = reserva.funcion
    pelicula = funcion.pelicula if funcion else None
    sala = funcion.sala if funcion else None

    return dict(
        id=reserva.id,
        codigo_reserva=reserva.codigo_reserva,
        cantidad_entradas=reserva.cantidad_asientos,
        precio_total=float(reserva.precio_total or 0),
        estado=reserva.estado,
        fecha_reserva=isoformat(reserva.fecha_reserva),
        fecha_limite_pago=isoformat(reserva.fecha_vencimiento),
        funcion=ReservaFuncionSummary(
            id=funcion.id if funcion else None,
            fecha_hora_inicio=isoformat(funcion.fecha_hora_inicio) if funcion else None,
            fecha_hora_fin=isoformat(funcion.fecha_hora_fin) if funcion else None,
            pelicula=ReservaPeliculaSummary(
                titulo=pelicula.titulo if pelicula else None,
                poster_url=pelicula.poster_url if pelicula else None,
                duracion_minutos=pelicula.duracion_minutos if pelicula else None,
                clasificacion=pelicula.clasificacion if pelicula else None,
            ),
            sala=ReservaSalaSummary(nombre=sala.nombre if sala else None),
        ),
        asientos=[
            ReservaAsientoOut(numero=ra.asiento.numero, fila=ra.asiento.fila)
            for ra in reserva.reservas_asientos
            if ra.asiento is not None
        ],
    )


# ---------------------------------------------------------------------------
# POST /cliente/reservas: claim seats
# ---------------------------------------------------------------------------


@router.post("", response_model=ReservaCreateResponse, status_code=status.HTTP_201_CREATED)
def create(
    data: ReservaCreate,
    db: Session = Depends(get_db),
    current_user: Usuario = Depends(get_current_user),
):
    """
    Reserve specific seats for a showtime.

    The reservation starts as `pendiente` with a payment deadline. Seats
    already held by another live reservation make the whole request fail
    with 409 and nothing is stored.
    """
    funcion = (
        db.query(Funcion)
        .options(joinedload(Funcion.sala))
        .filter(Funcion.id == data.funcion_id)
        .first()
    )
    if not funcion:
        raise NotFound("Función no encontrada")

    reserva = create_reserva(
        db,
        funcion=funcion,
        asiento_ids=data.asiento_ids,
        usuario_id=current_user.id,
        hold_minutes=settings.RESERVATION_HOLD_MINUTES,
    )
    reserva_id = reserva.id
    db.commit()
    logger.info("Reservation %s created for showtime %s", reserva_id, data.funcion_id)

    full = load_reserva(db, reserva_id)
    return ReservaCreateResponse(
        message="Reserva creada exitosamente",
        reserva=ReservaSchema(**reserva_fields(full)),
    )


# ---------------------------------------------------------------------------
# GET /cliente/reservas/{id}
# ---------------------------------------------------------------------------


@router.get("/{id}", response_model=ReservaResponse)
def get_reserva(id: int, db: Session = Depends(get_db)):
    """Reservation confirmation view, looked up by id."""
    reserva = load_reserva(db, id)
    if not reserva:
        raise NotFound("Reserva no encontrada")
    return ReservaResponse(reserva=ReservaSchema(**reserva_fields(reserva)))


# ---------------------------------------------------------------------------
# PATCH /cliente/reservas/{id}/cancelar
# ---------------------------------------------------------------------------


@router.patch("/{id}/cancelar", response_model=ReservaCancelResponse)
def cancel_reserva(
    id: int,
    db: Session = Depends(get_db),
    current_user: Usuario = Depends(get_current_user),
):
    """
    Cancel one of the current user's unpaid reservations.
    Its seats go back to the showtime.
    """
    reserva = db.query(Reserva).filter(
        Reserva.id == id,
        Reserva.usuario_id == current_user.id,
    ).first()
    if not reserva:
        raise NotFound("Reserva no encontrada")
    if reserva.estado not in ESTADOS_CANCELABLES:
        raise Conflict(
            f"Solo se pueden cancelar reservas pendientes o confirmadas (estado actual: '{reserva.estado}')"
        )

    transition(db, reserva, "cancelada", actor_id=current_user.id)
    db.commit()
    db.refresh(reserva)

    return ReservaCancelResponse(
        id=reserva.id,
        codigo_reserva=reserva.codigo_reserva,
        estado=reserva.estado,
    )
