from datetime import date, timedelta
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy import func, or_
from sqlalchemy.orm import Session, joinedload

from app.db.session import get_db
from app.api.admin.reservas import serialize_reserva_admin
from app.api.deps import get_current_staff_user
from app.models.funcion import Funcion
from app.models.pelicula import Pelicula
from app.models.reserva import Reserva, ReservaAsiento
from app.models.sala import Sala
from app.models.usuario import Usuario
from app.schemas.common import build_pagination, clamp_limit
from app.schemas.reportes import (
    ReportSummary,
    ReportSummaryResponse,
    VentasFiltros,
    VentasHoy,
    VentasMetricas,
    VentasPorEstado,
    VentasReport,
    VentasReportResponse,
    VentasTopPelicula,
)
from app.services.reportes import day_bounds, ocupacion, period_bounds, porcentaje

router = APIRouter(prefix="/admin/reportes", tags=["Admin - Reportes"])

MAX_LIMIT = 100
TOP_PELICULAS = 5


@router.get("/summary", response_model=ReportSummaryResponse)
def get_summary(
    db: Session = Depends(get_db),
    current_user: Usuario = Depends(get_current_staff_user),
):
    """Sales of the day plus the same occupancy figure the dashboard reports."""
    start, end = day_bounds()
    hoy = (Reserva.fecha_reserva >= start, Reserva.fecha_reserva < end)

    total_reservas, ingresos = (
        db.query(func.count(Reserva.id), func.coalesce(func.sum(Reserva.precio_total), 0))
        .filter(*hoy)
        .one()
    )
    pagadas = db.query(func.count(Reserva.id)).filter(*hoy, Reserva.estado == "pagada").scalar()

    capacidad, ocupados = ocupacion(db, start, end)

    peliculas_activas = db.query(func.count(Pelicula.id)).filter(Pelicula.activa == True).scalar()  # noqa: E712
    usuarios = db.query(func.count(Usuario.id)).scalar()

    return ReportSummaryResponse(
        data=ReportSummary(
            ventasHoy=VentasHoy(
                total_reservas=total_reservas,
                ingresos_total=float(ingresos),
                pagadas=pagadas,
            ),
            ocupacionPromedio=round(porcentaje(ocupados, capacidad), 1),
            peliculasActivas=peliculas_activas,
            usuariosRegistrados=usuarios,
        )
    )


def _joined(query):
    return (
        query.join(Funcion, Funcion.id == Reserva.funcion_id)
        .join(Pelicula, Pelicula.id == Funcion.pelicula_id)
        .join(Sala, Sala.id == Funcion.sala_id)
    )


@router.get("/ventas", response_model=VentasReportResponse)
def get_ventas(
    periodo: str = Query("month"),
    fecha_inicio: Optional[date] = Query(None, alias="fechaInicio"),
    fecha_fin: Optional[date] = Query(None, alias="fechaFin"),
    pelicula: str = Query(""),
    sala: str = Query(""),
    estado: str = Query(""),
    page: int = Query(1),
    limit: int = Query(20),
    db: Session = Depends(get_db),
    current_user: Usuario = Depends(get_current_staff_user),
):
    """
    Sales report over the reservations made in a period.

    - `periodo`: `today` | `week` | `month` | `year` | `custom` (with
      `fechaInicio` and `fechaFin`, both inclusive). Defaults to the month.
    - `pelicula` matches the title, `sala` the room name or exact number.
    - `estado` filters by reservation status (`all` for every status).

    `metricas.por_estado` ignores `estado` so the breakdown always shows
    every status under the other filters.
    """
    page = max(page, 1)
    limit = clamp_limit(limit, MAX_LIMIT)
    periodo, start, end = period_bounds(periodo, fecha_inicio, fecha_fin)

    conditions = [Reserva.fecha_reserva >= start, Reserva.fecha_reserva < end]
    if pelicula:
        conditions.append(Pelicula.titulo.icontains(pelicula, autoescape=True))
    if sala:
        por_sala = [Sala.nombre.icontains(sala, autoescape=True)]
        if sala.strip().isdigit():
            por_sala.append(Sala.numero == int(sala))
        conditions.append(or_(*por_sala))
    sin_estado = list(conditions)
    if estado and estado != "all":
        conditions.append(Reserva.estado == estado)

    total, ingresos, asientos, promedio = (
        _joined(
            db.query(
                func.count(Reserva.id),
                func.coalesce(func.sum(Reserva.precio_total), 0),
                func.coalesce(func.sum(Reserva.cantidad_asientos), 0),
                func.coalesce(func.avg(Reserva.precio_total), 0),
            ).select_from(Reserva)
        )
        .filter(*conditions)
        .one()
    )

    por_estado = (
        _joined(
            db.query(
                Reserva.estado,
                func.count(Reserva.id),
                func.coalesce(func.sum(Reserva.precio_total), 0),
            ).select_from(Reserva)
        )
        .filter(*sin_estado)
        .group_by(Reserva.estado)
        .order_by(Reserva.estado)
        .all()
    )

    ingresos_pelicula = func.coalesce(func.sum(Reserva.precio_total), 0)
    top = (
        _joined(
            db.query(
                Pelicula.id,
                Pelicula.titulo,
                Pelicula.poster_url,
                func.count(Reserva.id),
                func.coalesce(func.sum(Reserva.cantidad_asientos), 0),
                ingresos_pelicula,
            ).select_from(Reserva)
        )
        .filter(*conditions)
        .group_by(Pelicula.id, Pelicula.titulo, Pelicula.poster_url)
        .order_by(ingresos_pelicula.desc(), Pelicula.id.asc())
        .limit(TOP_PELICULAS)
        .all()
    )

    reservas = (
        _joined(db.query(Reserva))
        .filter(*conditions)
        .options(
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

    return VentasReportResponse(
        data=VentasReport(
            reservas=[serialize_reserva_admin(r) for r in reservas],
            metricas=VentasMetricas(
                total_reservas=total,
                ingresos_total=float(ingresos),
                asientos_vendidos=int(asientos),
                precio_promedio=round(float(promedio), 2),
                por_estado=[
                    VentasPorEstado(estado=e, cantidad=c, ingresos=float(i))
                    for e, c, i in por_estado
                ],
            ),
            top_peliculas=[
                VentasTopPelicula(
                    pelicula_id=pid,
                    titulo=titulo,
                    poster_url=poster,
                    reservas=n,
                    asientos=int(a),
                    ingresos=float(i),
                )
                for pid, titulo, poster, n, a, i in top
            ],
            filtros=VentasFiltros(
                periodo=periodo,
                fecha_inicio=start.date(),
                fecha_fin=(end - timedelta(days=1)).date(),
                pelicula=pelicula,
                sala=sala,
                estado=estado,
            ),
        ),
        pagination=build_pagination(total, page, limit),
    )
