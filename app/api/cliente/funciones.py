from datetime import datetime

from fastapi import APIRouter, Depends
from sqlalchemy import func
from sqlalchemy.orm import Session, joinedload

from app.db.session import get_db
from app.core.errors import NotFound
from app.models.funcion import Funcion
from app.models.reserva import Reserva, ReservaAsiento, ESTADOS_ACTIVOS
from app.models.sala import Asiento
from app.schemas.funcion import (
    AsientoEstado,
    FuncionCliente,
    FuncionClienteListResponse,
    MapaAsientosResponse,
    SalaFuncionCliente,
)

router = APIRouter(prefix="/cliente", tags=["Cliente - Funciones"])


@router.get("/peliculas/{id}/funciones", response_model=FuncionClienteListResponse)
def list_funciones_pelicula(id: int, db: Session = Depends(get_db)):
    """Future active showtimes of a movie, soonest first, with live reservation counts."""
    funciones = (
        db.query(Funcion)
        .options(joinedload(Funcion.sala))
        .filter(
            Funcion.pelicula_id == id,
            Funcion.activa == True,  # noqa: E712
            Funcion.fecha_hora_inicio >= datetime.now(),
        )
        .order_by(Funcion.fecha_hora_inicio.asc())
        .all()
    )

    # One grouped query instead of one count per showtime
    counts = dict(
        db.query(Reserva.funcion_id, func.count(Reserva.id))
        .filter(
            Reserva.funcion_id.in_([f.id for f in funciones]),
            Reserva.estado.in_(ESTADOS_ACTIVOS),
        )
        .group_by(Reserva.funcion_id)
        .all()
    ) if funciones else {}

    return FuncionClienteListResponse(
        funciones=[
            FuncionCliente(
                id=f.id,
                fecha_hora_inicio=f.fecha_hora_inicio,
                fecha_hora_fin=f.fecha_hora_fin,
                precio_base=float(f.precio_base),
                precio_con_descuento=(
                    float(f.precio_con_descuento) if f.precio_con_descuento is not None else None
                ),
                asientos_disponibles=f.asientos_disponibles,
                asientos_reservados=f.asientos_reservados or 0,
                especial=bool(f.especial),
                reservas_count=counts.get(f.id, 0),
                sala=SalaFuncionCliente(
                    id=f.sala.id,
                    nombre=f.sala.nombre,
                    capacidad=f.sala.capacidad_total,
                    tipo=f.sala.tipo_sala,
                ),
            )
            for f in funciones
        ]
    )


@router.get("/funciones/{id}/asientos", response_model=MapaAsientosResponse)
def get_mapa_asientos(id: int, db: Session = Depends(get_db)):
    """Every seat of the showtime's room, flagged when a live reservation holds it."""
    funcion = (
        db.query(Funcion)
        .options(joinedload(Funcion.sala))
        .filter(Funcion.id == id, Funcion.activa == True)  # noqa: E712
        .first()
    )
    if not funcion:
        raise NotFound("Función no encontrada")

    ocupados = {
        row.asiento_id
        for row in db.query(ReservaAsiento.asiento_id).filter(ReservaAsiento.funcion_id == id)
    }
    asientos = (
        db.query(Asiento)
        .filter(Asiento.sala_id == funcion.sala_id)
        .order_by(Asiento.id)
        .all()
    )

    return MapaAsientosResponse(
        funcion_id=funcion.id,
        filas=funcion.sala.filas,
        asientos_por_fila=funcion.sala.asientos_por_fila,
        asientos=[
            AsientoEstado(id=a.id, fila=a.fila, numero=a.numero, ocupado=a.id in ocupados)
            for a in asientos
        ],
    )
