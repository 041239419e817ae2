from datetime import datetime, timedelta

from fastapi import APIRouter, Depends, Query
from sqlalchemy import false, or_
from sqlalchemy.orm import Session, joinedload

from app.db.session import get_db
from app.core.config import settings
from app.core.errors import NotFound
from app.models.funcion import Funcion
from app.models.pelicula import Pelicula, PeliculaGenero, Clasificacion
from app.schemas.common import build_pagination, clamp_limit
from app.schemas.pelicula import (
    FuncionDetalle,
    PeliculaDetalle,
    PeliculaDetalleResponse,
    PeliculaFiltros,
    PeliculaListItem,
    PeliculaListResponse,
    SalaDetalleSummary,
)

router = APIRouter(prefix="/public/peliculas", tags=["Public - Peliculas"])

MAX_LIMIT = 50

# UI labels that differ from the stored enum values
CLASIFICACION_LABELS = {
    "PG-13": Clasificacion.PG_13,
    "NC-17": Clasificacion.NC_17,
}

ORDER_BY = {
    "titulo": Pelicula.titulo.asc(),
    "calificacion_imdb": Pelicula.calificacion_imdb.desc(),
    "fecha_estreno": Pelicula.fecha_estreno_local.desc(),
}
DEFAULT_ORDER = "fecha_estreno"


def parse_clasificacion(value: str):
    """Map a UI label or enum value to Clasificacion; None if unknown."""
    if value in CLASIFICACION_LABELS:
        return CLASIFICACION_LABELS[value]
    try:
        return Clasificacion(value)
    except ValueError:
        return None


def _as_float(value):
    return float(value) if value is not None else None


@router.get("", response_model=PeliculaListResponse)
def list_peliculas(
    search: str = Query(""),
    clasificacion: str = Query(""),
    ordenarPor: str = Query(DEFAULT_ORDER),
    page: int = Query(1),
    limit: int = Query(12),
    db: Session = Depends(get_db),
):
    """
    Public catalog. Only active movies are ever returned.

    - `search` matches title, director or cast (case-insensitive).
    - `clasificacion` accepts UI labels such as `PG-13`.
    - `ordenarPor`: `titulo` | `calificacion_imdb` | `fecha_estreno` (default).
    - `limit` is clamped to 50.
    """
    page = max(page, 1)
    limit = clamp_limit(limit, MAX_LIMIT)

    query = db.query(Pelicula).filter(Pelicula.activa == True)  # noqa: E712

    if search:
        query = query.filter(
            or_(
                Pelicula.titulo.icontains(search, autoescape=True),
                Pelicula.director.icontains(search, autoescape=True),
                Pelicula.reparto.icontains(search, autoescape=True),
            )
        )
    if clasificacion:
        clasificacion_enum = parse_clasificacion(clasificacion)
        # An unknown rating matches nothing instead of being ignored
        query = query.filter(
            Pelicula.clasificacion == clasificacion_enum if clasificacion_enum else false()
        )

    total = query.count()
    order = ORDER_BY.get(ordenarPor, ORDER_BY[DEFAULT_ORDER])
    peliculas = (
        query.options(joinedload(Pelicula.peliculas_generos).joinedload(PeliculaGenero.genero))
        .order_by(order, Pelicula.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )

    items = [
        PeliculaListItem(
            id=p.id,
            titulo=p.titulo,
            sinopsis=p.sinopsis,
            poster_url=p.poster_url,
            trailer_url=p.trailer_url,
            duracion_minutos=p.duracion_minutos,
            clasificacion=p.clasificacion,
            genero=", ".join(g.nombre for g in p.generos) or "No especificado",
            director=p.director,
            actores_principales=p.reparto,
            calificacion_imdb=_as_float(p.calificacion_imdb),
            fecha_estreno_mundial=p.fecha_estreno_mundial,
            fecha_estreno_local=p.fecha_estreno_local,
            activa=p.activa,
        )
        for p in peliculas
    ]

    return PeliculaListResponse(
        peliculas=items,
        pagination=build_pagination(total, page, limit),
        filtros=PeliculaFiltros(search=search, clasificacion=clasificacion, ordenarPor=ordenarPor),
    )


@router.get("/{id}", response_model=PeliculaDetalleResponse)
def get_pelicula(id: int, db: Session = Depends(get_db)):
    pelicula = (
        db.query(Pelicula)
        .options(joinedload(Pelicula.peliculas_generos).joinedload(PeliculaGenero.genero))
        .filter(Pelicula.id == id, Pelicula.activa == True)  # noqa: E712
        .first()
    )
    if not pelicula:
        raise NotFound("Película no encontrada")

    # Recently started showtimes stay visible for a grace window
    desde = datetime.now() - timedelta(hours=settings.SHOWTIME_GRACE_HOURS)
    funciones = (
        db.query(Funcion)
        .options(joinedload(Funcion.sala))
        .filter(
            Funcion.pelicula_id == pelicula.id,
            Funcion.activa == True,  # noqa: E712
            Funcion.fecha_hora_inicio >= desde,
        )
        .order_by(Funcion.fecha_hora_inicio.asc())
        .all()
    )

    detalle = PeliculaDetalle(
        id=pelicula.id,
        titulo=pelicula.titulo,
        sinopsis=pelicula.sinopsis,
        poster_url=pelicula.poster_url,
        trailer_url=pelicula.trailer_url,
        duracion_minutos=pelicula.duracion_minutos,
        clasificacion=pelicula.clasificacion,
        director=pelicula.director,
        actores_principales=pelicula.reparto,
        calificacion_imdb=_as_float(pelicula.calificacion_imdb),
        fecha_estreno_mundial=pelicula.fecha_estreno_mundial,
        fecha_estreno_local=pelicula.fecha_estreno_local,
        generos=[g.nombre for g in pelicula.generos],
        funciones=[
            FuncionDetalle(
                id=f.id,
                fecha_hora_inicio=f.fecha_hora_inicio,
                fecha_hora_fin=f.fecha_hora_fin,
                precio_base=float(f.precio_base),
                asientos_disponibles=f.asientos_disponibles,
                asientos_reservados=f.asientos_reservados,
                sala=SalaDetalleSummary(
                    id=f.sala.id,
                    numero=f.sala.numero,
                    nombre=f.sala.nombre,
                    tipo_sala=f.sala.tipo_sala,
                    capacidad_total=f.sala.capacidad_total,
                ),
            )
            for f in funciones
        ],
    )
    return PeliculaDetalleResponse(pelicula=detalle)
