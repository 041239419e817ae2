import logging
from datetime import date, datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy import or_
from sqlalchemy.orm import Session, joinedload

from app.db.session import get_db
from app.api.deps import get_current_staff_user
from app.api.cliente.reservas import isoformat, load_reserva, reserva_fields
from app.core.config import settings
from app.core.errors import Conflict, NotFound, ValidationError
from app.models.funcion import Funcion
from app.models.reserva import Reserva, ReservaAsiento
from app.models.usuario import Usuario
from app.schemas.common import MessageResponse, build_pagination, clamp_limit
from app.schemas.reserva import (
    ReservaAdmin,
    ReservaAdminCreate,
    ReservaAdminCreateResponse,
    ReservaAdminListResponse,
    ReservaAdminResponse,
    ReservaUpdate,
)
from app.schemas.usuario import UsuarioSummary
from app.services.reportes import day_bounds
from app.services.reservas import create_reserva, release_asientos, transition

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin/reservas", tags=["Admin - Reservas"])

MAX_LIMIT = 100

# Statuses a counter sale may start in
ESTADOS_VENTA = ("pendiente", "pagada")


def serialize_reserva_admin(reserva: Reserva) -> ReservaAdmin:
    return ReservaAdmin(
        **reserva_fields(reserva),
        usuario=UsuarioSummary.model_validate(reserva.usuario) if reserva.usuario else None,
        metodo_pago=reserva.metodo_pago,
        fecha_pago=isoformat(reserva.fecha_pago),
        notas=reserva.notas,
    )


@router.get("", response_model=ReservaAdminListResponse)
def list_reservas(
    search: str = Query(""),
    estado: str = Query("all"),
    fecha: Optional[date] = Query(None),
    page: int = Query(1),
    limit: int = Query(20),
    db: Session = Depends(get_db),
    current_user: Usuario = Depends(get_current_staff_user),
):
    """
    Reservations, newest first.

    - `search` matches the reservation code or the customer's email.
    - `estado` filters by status (`all` for every status).
    - `fecha` (YYYY-MM-DD) restricts to reservations made that local day.
    """
    page = max(page, 1)
    limit = clamp_limit(limit, MAX_LIMIT)

    query = db.query(Reserva).outerjoin(Usuario, Usuario.id == Reserva.usuario_id)
    if estado and estado != "all":
        query = query.filter(Reserva.estado == estado)
    if fecha:
        start, end = day_bounds(fecha)
        query = query.filter(Reserva.fecha_reserva >= start, Reserva.fecha_reserva < end)
    if search:
        query = query.filter(
            or_(
                Reserva.codigo_reserva.icontains(search, autoescape=True),
                Usuario.email.icontains(search, autoescape=True),
            )
        )

    total = query.count()
    reservas = (
        query.options(
            joinedload(Reserva.funcion).joinedload(Funcion.pelicula),
            joinedload(Reserva.funcion).joinedload(Funcion.sala),
            joinedload(Reserva.reservas_asientos).joinedload(ReservaAsiento.asiento),
            joinedload(Reserva.usuario),
        )
        .order_by(Reserva.fecha_reserva.desc(), Reserva.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )

    return ReservaAdminListResponse(
        reservas=[serialize_reserva_admin(r) for r in reservas],
        pagination=build_pagination(total, page, limit),
    )


@router.post("", response_model=ReservaAdminCreateResponse, status_code=status.HTTP_201_CREATED)
def create_venta(
    data: ReservaAdminCreate,
    db: Session = Depends(get_db),
    current_user: Usuario = Depends(get_current_staff_user),
):
    """
    Box-office sale. Seats are claimed exactly as for an online reservation
    and the staff member is recorded as the seller. With `estado=pagada` the
    reservation is paid on the spot.
    """
    if data.estado not in ESTADOS_VENTA:
        raise ValidationError("El estado inicial debe ser 'pendiente' o 'pagada'")

    funcion = (
        db.query(Funcion)
        .options(joinedload(Funcion.sala))
        .filter(Funcion.id == data.funcion_id)
        .first()
    )
    if not funcion:
        raise NotFound("Función no encontrada")

    if data.usuario_id is not None:
        cliente = (
            db.query(Usuario.id)
            .filter(Usuario.id == data.usuario_id, Usuario.activo == True)  # noqa: E712
            .first()
        )
        if not cliente:
            raise NotFound("Cliente no encontrado")

    reserva = create_reserva(
        db,
        funcion=funcion,
        asiento_ids=data.asiento_ids,
        usuario_id=data.usuario_id,
        hold_minutes=settings.RESERVATION_HOLD_MINUTES,
    )
    reserva.empleado_vendedor_id = current_user.id
    if data.metodo_pago:
        reserva.metodo_pago = data.metodo_pago
    reserva.notas = data.notas
    if data.estado == "pagada":
        transition(db, reserva, "pagada", actor_id=current_user.id)

    reserva_id = reserva.id
    db.commit()
    logger.info("Counter sale %s for showtime %s by user %s", reserva_id, data.funcion_id, current_user.id)

    return ReservaAdminCreateResponse(
        message="Reserva creada exitosamente",
        reserva=serialize_reserva_admin(load_reserva(db, reserva_id)),
    )


@router.get("/{id}", response_model=ReservaAdminResponse)
def get_reserva(
    id: int,
    db: Session = Depends(get_db),
    current_user: Usuario = Depends(get_current_staff_user),
):
    reserva = load_reserva(db, id)
    if not reserva:
        raise NotFound("Reserva no encontrada")
    return ReservaAdminResponse(reserva=serialize_reserva_admin(reserva))


@router.patch("/{id}", response_model=ReservaAdminResponse)
def update_reserva(
    id: int,
    data: ReservaUpdate,
    db: Session = Depends(get_db),
    current_user: Usuario = Depends(get_current_staff_user),
):
    """
    Staff update of a reservation. A status change goes through the
    reservation state machine: marking it paid records the payment time and
    the staff member, cancelling or expiring it frees its seats.
    """
    reserva = db.query(Reserva).filter(Reserva.id == id).first()
    if not reserva:
        raise NotFound("Reserva no encontrada")

    if data.estado is not None:
        anterior = reserva.estado
        transition(db, reserva, data.estado, actor_id=current_user.id)
        if anterior != reserva.estado:
            logger.info("Reservation %s: %s -> %s by user %s", id, anterior, reserva.estado, current_user.id)
    if data.metodo_pago is not None:
        reserva.metodo_pago = data.metodo_pago
    if data.notas is not None:
        reserva.notas = data.notas

    db.commit()
    return ReservaAdminResponse(reserva=serialize_reserva_admin(load_reserva(db, id)))


@router.delete("/{id}", response_model=MessageResponse)
def delete_reserva(
    id: int,
    db: Session = Depends(get_db),
    current_user: Usuario = Depends(get_current_staff_user),
):
    """
    Remove a reservation for good, giving its seats back. Used tickets, and
    paid ones for a showtime that already started, are kept.
    """
    reserva = db.query(Reserva).filter(Reserva.id == id).first()
    if not reserva:
        raise NotFound("Reserva no encontrada")

    if reserva.estado == "usada":
        raise Conflict("No se puede eliminar una reserva que ya fue usada")
    if reserva.estado == "pagada" and reserva.funcion.fecha_hora_inicio < datetime.now():
        raise Conflict(
            "No se puede eliminar una reserva pagada de una función que ya pasó. "
            "Considere cancelarla en su lugar."
        )

    release_asientos(db, reserva)
    db.delete(reserva)
    db.commit()

    logger.info("Reservation %s deleted by user %s", id, current_user.id)
    return MessageResponse(message="Reserva eliminada exitosamente")
