import logging

from fastapi import APIRouter, Depends
from sqlalchemy import func
from sqlalchemy.orm import Session

from app.db.session import get_db
from app.api.deps import get_current_staff_user
from app.models.funcion import Funcion
from app.models.pelicula import Pelicula
from app.models.reserva import Reserva
from app.models.sala import Sala
from app.models.usuario import Usuario
from app.schemas.reportes import (
    DashboardStats,
    FuncionesStats,
    IngresosStats,
    OcupacionStats,
    PeliculasStats,
    ReservasStats,
    SalasStats,
    UsuariosStats,
)
from app.services.reportes import day_bounds, ocupacion, porcentaje

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin/dashboard", tags=["Admin - Dashboard"])


@router.get("/stats", response_model=DashboardStats)
def get_stats(
    db: Session = Depends(get_db),
    current_user: Usuario = Depends(get_current_staff_user),
):
    """
    Aggregates for the current local calendar day.

    Every figure is a live query; nothing is cached and the queries are not
    run in a single snapshot, so they can be slightly out of step under load.
    """
    start, end = day_bounds()

    total_peliculas = db.query(func.count(Pelicula.id)).scalar()
    peliculas_activas = db.query(func.count(Pelicula.id)).filter(Pelicula.activa == True).scalar()  # noqa: E712
    usuarios_activos = db.query(func.count(Usuario.id)).filter(Usuario.activo == True).scalar()  # noqa: E712
    salas_activas = db.query(func.count(Sala.id)).filter(Sala.activa == True).scalar()  # noqa: E712

    funciones_hoy = (
        db.query(func.count(Funcion.id))
        .filter(
            Funcion.activa == True,  # noqa: E712
            Funcion.fecha_hora_inicio >= start,
            Funcion.fecha_hora_inicio < end,
        )
        .scalar()
    )

    hoy = (Reserva.fecha_reserva >= start, Reserva.fecha_reserva < end)
    reservas_hoy = db.query(func.count(Reserva.id)).filter(*hoy).scalar()

    vendidos, ingresos = (
        db.query(
            func.coalesce(func.sum(Reserva.cantidad_asientos), 0),
            func.coalesce(func.sum(Reserva.precio_total), 0),
        )
        .filter(*hoy, Reserva.estado == "pagada")
        .one()
    )

    por_estado = dict(
        db.query(Reserva.estado, func.count(Reserva.id))
        .filter(*hoy)
        .group_by(Reserva.estado)
        .all()
    )

    capacidad, ocupados = ocupacion(db, start, end)

    return DashboardStats(
        peliculas=PeliculasStats(total=total_peliculas, activas=peliculas_activas),
        reservas=ReservasStats(
            hoy=reservas_hoy,
            asientos_vendidos=int(vendidos),
            por_estado=por_estado,
        ),
        ingresos=IngresosStats(hoy=float(ingresos)),
        usuarios=UsuariosStats(total=usuarios_activos),
        funciones=FuncionesStats(hoy=funciones_hoy),
        salas=SalasStats(activas=salas_activas),
        ocupacion=OcupacionStats(
            porcentaje=round(porcentaje(ocupados, capacidad)),
            capacidad_total=capacidad,
            asientos_ocupados=ocupados,
        ),
    )
