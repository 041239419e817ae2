"""
Reservation lifecycle: seat claims, releases, status transitions and expiry.

Seat inventory lives in two places that must agree: the ``reservas_asientos``
link rows (unique per showtime and seat) and the denormalized counters on
``funciones``. Every function here changes both inside the caller's
transaction; none of them commit except the expiry sweep.
"""
import logging
import random
import string
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Sequence

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.errors import Conflict, ValidationError
from app.models.funcion import Funcion
from app.models.reserva import Reserva, ReservaAsiento, ESTADOS_RESERVA
from app.models.sala import Asiento

logger = logging.getLogger(__name__)

# Allowed status changes; anything else is a conflict
TRANSICIONES: Dict[str, tuple] = {
    "pendiente": ("confirmada", "pagada", "cancelada", "vencida"),
    "confirmada": ("pagada", "cancelada", "vencida"),
    "pagada": ("usada",),
    "usada": (),
    "cancelada": (),
    "vencida": (),
}

ESTADOS_LIBERAN_ASIENTOS = ("cancelada", "vencida")
ESTADOS_CANCELABLES = ("pendiente", "confirmada")


def generate_codigo_reserva(db: Session) -> str:
    """Generate a unique 'R' + 8 character reservation code."""
    chars = string.ascii_uppercase + string.digits
    while True:
        codigo = "R" + "".join(random.choices(chars, k=8))
        if not db.query(Reserva.id).filter(Reserva.codigo_reserva == codigo).first():
            return codigo


def precio_unitario(funcion: Funcion) -> float:
    """Discounted price if set, otherwise base price, plus the room surcharge."""
    base = funcion.precio_con_descuento if funcion.precio_con_descuento is not None else funcion.precio_base
    extra = funcion.sala.precio_extra if funcion.sala and funcion.sala.precio_extra else 0
    return float(base) + float(extra)


def _claim_counters(db: Session, funcion_id: int, cantidad: int) -> bool:
    updated = (
        db.query(Funcion)
        .filter(Funcion.id == funcion_id, Funcion.asientos_disponibles >= cantidad)
        .update(
            {
                Funcion.asientos_disponibles: Funcion.asientos_disponibles - cantidad,
                Funcion.asientos_reservados: Funcion.asientos_reservados + cantidad,
            },
            synchronize_session=False,
        )
    )
    return updated == 1


def _release_counters(db: Session, funcion_id: int, cantidad: int) -> None:
    db.query(Funcion).filter(
        Funcion.id == funcion_id,
        Funcion.asientos_reservados >= cantidad,
    ).update(
        {
            Funcion.asientos_disponibles: Funcion.asientos_disponibles + cantidad,
            Funcion.asientos_reservados: Funcion.asientos_reservados - cantidad,
        },
        synchronize_session=False,
    )


def create_reserva(
    db: Session,
    funcion: Funcion,
    asiento_ids: Sequence[int],
    usuario_id: Optional[int],
    hold_minutes: int,
) -> Reserva:
    """
    Claim seats for a showtime and create a pending reservation.

    The caller commits. On any conflict the session is rolled back and
    ``Conflict`` is raised, so nothing from this call is persisted.
    """
    now = datetime.now()
    if not funcion.activa or funcion.fecha_hora_inicio <= now:
        raise ValidationError("Función no disponible")

    unique_ids = set(asiento_ids)
    if len(unique_ids) != len(asiento_ids):
        raise ValidationError("Hay asientos repetidos en la selección")

    asientos: List[Asiento] = (
        db.query(Asiento)
        .filter(Asiento.id.in_(list(unique_ids)), Asiento.sala_id == funcion.sala_id)
        .order_by(Asiento.id)
        .all()
    )
    if len(asientos) != len(unique_ids):
        raise ValidationError("Uno o más asientos no pertenecen a la sala de la función")

    cantidad = len(asientos)
    total = round(precio_unitario(funcion) * cantidad, 2)

    if not _claim_counters(db, funcion.id, cantidad):
        db.rollback()
        raise Conflict("No hay suficientes asientos disponibles")

    reserva = Reserva(
        codigo_reserva=generate_codigo_reserva(db),
        usuario_id=usuario_id,
        funcion_id=funcion.id,
        cantidad_asientos=cantidad,
        precio_subtotal=total,
        precio_total=total,
        estado="pendiente",
        metodo_pago="efectivo",
        fecha_reserva=now,
        fecha_vencimiento=now + timedelta(minutes=hold_minutes),
    )
    db.add(reserva)
    try:
        db.flush()  # get reserva.id
        for asiento in asientos:
            db.add(ReservaAsiento(
                reserva_id=reserva.id,
                funcion_id=funcion.id,
                asiento_id=asiento.id,
            ))
        db.flush()
    except IntegrityError:
        db.rollback()
        raise Conflict("Uno o más asientos ya están reservados para esta función")

    return reserva


def release_asientos(db: Session, reserva: Reserva) -> int:
    """Delete the reservation's seat links and give the seats back to the showtime."""
    released = (
        db.query(ReservaAsiento)
        .filter(ReservaAsiento.reserva_id == reserva.id)
        .delete(synchronize_session="fetch")
    )
    if released:
        _release_counters(db, reserva.funcion_id, released)
    return released


def transition(
    db: Session,
    reserva: Reserva,
    nuevo_estado: str,
    actor_id: Optional[int] = None,
) -> Reserva:
    """Apply a status change with its side effects. The caller commits."""
    if nuevo_estado not in ESTADOS_RESERVA:
        raise ValidationError(f"Estado de reserva inválido: '{nuevo_estado}'")
    if nuevo_estado == reserva.estado:
        return reserva
    if nuevo_estado not in TRANSICIONES.get(reserva.estado, ()):
        raise Conflict(
            f"No se puede cambiar una reserva de '{reserva.estado}' a '{nuevo_estado}'"
        )

    if nuevo_estado == "pagada" and reserva.fecha_pago is None:
        reserva.fecha_pago = datetime.now()
        reserva.empleado_vendedor_id = actor_id

    if nuevo_estado in ESTADOS_LIBERAN_ASIENTOS:
        release_asientos(db, reserva)

    reserva.estado = nuevo_estado
    return reserva


def expire_overdue_reservas(db: Session, now: Optional[datetime] = None) -> int:
    """
    Mark as 'vencida' every unpaid reservation whose payment deadline has passed,
    releasing its seats.

    Returns the number of reservations expired.
    """
    now = now or datetime.now()
    overdue = (
        db.query(Reserva)
        .filter(
            Reserva.estado.in_(ESTADOS_CANCELABLES),
            Reserva.fecha_vencimiento != None,  # noqa: E711
            Reserva.fecha_vencimiento < now,
        )
        .all()
    )
    if not overdue:
        return 0

    for reserva in overdue:
        transition(db, reserva, "vencida")

    db.commit()
    return len(overdue)
