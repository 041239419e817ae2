from datetime import date, datetime, time, timedelta
from typing import Optional, Tuple

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.core.errors import ValidationError
from app.models.funcion import Funcion
from app.models.sala import Sala


def day_bounds(day: Optional[date] = None) -> Tuple[datetime, datetime]:
    """[start, end) of a local calendar day."""
    day = day or date.today()
    start = datetime.combine(day, time.min)
    return start, start + timedelta(days=1)


def period_bounds(
    periodo: str,
    fecha_inicio: Optional[date] = None,
    fecha_fin: Optional[date] = None,
    today: Optional[date] = None,
) -> Tuple[str, datetime, datetime]:
    """
    Resolve a report period to ``(periodo, start, end)`` with [start, end) in
    local time.

    ``week`` is the last seven days plus today. ``custom`` needs both dates
    (inclusive) and falls back to the current month without them, as does
    any unknown period.
    """
    today = today or date.today()
    if periodo == "custom" and fecha_inicio and fecha_fin:
        if fecha_inicio > fecha_fin:
            raise ValidationError("La fecha de inicio no puede ser posterior a la fecha de fin")
        return periodo, day_bounds(fecha_inicio)[0], day_bounds(fecha_fin)[1]
    if periodo == "today":
        return (periodo,) + day_bounds(today)
    if periodo == "week":
        return periodo, day_bounds(today - timedelta(days=7))[0], day_bounds(today)[1]
    if periodo == "year":
        start = datetime(today.year, 1, 1)
        return periodo, start, datetime(today.year + 1, 1, 1)

    start = datetime(today.year, today.month, 1)
    if today.month == 12:
        end = datetime(today.year + 1, 1, 1)
    else:
        end = datetime(today.year, today.month + 1, 1)
    return "month", start, end


def ocupacion(db: Session, start: datetime, end: datetime) -> Tuple[int, int]:
    """
    Occupancy of the active showtimes starting in [start, end).

    Returns ``(capacidad_total, asientos_ocupados)``: the summed room capacity
    of those showtimes and their summed ``asientos_reservados`` counters. The
    counter moves with the live seat links, so this is also the number of
    seats held by pending, confirmed, paid and used reservations.
    """
    row = (
        db.query(
            func.coalesce(func.sum(Sala.capacidad_total), 0).label("capacidad"),
            func.coalesce(func.sum(Funcion.asientos_reservados), 0).label("ocupados"),
        )
        .select_from(Funcion)
        .join(Sala, Sala.id == Funcion.sala_id)
        .filter(
            Funcion.activa == True,  # noqa: E712
            Funcion.fecha_hora_inicio >= start,
            Funcion.fecha_hora_inicio < end,
        )
        .one()
    )
    return int(row.capacidad), int(row.ocupados)


def porcentaje(ocupados: int, capacidad: int) -> float:
    return (ocupados / capacidad) * 100 if capacidad > 0 else 0.0
