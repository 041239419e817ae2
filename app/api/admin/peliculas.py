import logging
from typing import List

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy import or_
from sqlalchemy.orm import Session, joinedload

from app.db.session import get_db
from app.api.deps import get_current_admin_user, get_current_staff_user
from app.api.public.peliculas import parse_clasificacion
from app.core.errors import NotFound, ValidationError
from app.models.catalogo import Genero, Pais
from app.models.funcion import Funcion
from app.models.pelicula import Clasificacion, Pelicula, PeliculaGenero
from app.models.usuario import Usuario
from app.schemas.common import build_pagination, clamp_limit
from app.schemas.pelicula import (
    PeliculaAdmin,
    PeliculaAdminItem,
    PeliculaAdminListResponse,
    PeliculaAdminMessageResponse,
    PeliculaAdminResponse,
    PeliculaCreate,
    PeliculaDeleteResponse,
    PeliculaEstadoUpdate,
    PeliculaSimpleResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin/peliculas", tags=["Admin - Peliculas"])

SIMPLE_LIMIT = 50
MAX_LIMIT = 100


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _search_filter(search: str):
    """Title, director or genre name, case-insensitive."""
    return or_(
        Pelicula.titulo.icontains(search, autoescape=True),
        Pelicula.director.icontains(search, autoescape=True),
        Pelicula.peliculas_generos.any(
            PeliculaGenero.genero.has(Genero.nombre.icontains(search, autoescape=True))
        ),
    )


def serialize_pelicula_admin(pelicula: Pelicula) -> PeliculaAdmin:
    return PeliculaAdmin(
        id=pelicula.id,
        titulo=pelicula.titulo,
        sinopsis=pelicula.sinopsis,
        director=pelicula.director,
        reparto=pelicula.reparto,
        duracion_minutos=pelicula.duracion_minutos,
        clasificacion=pelicula.clasificacion,
        fecha_estreno_mundial=pelicula.fecha_estreno_mundial,
        fecha_estreno_local=pelicula.fecha_estreno_local,
        calificacion_imdb=float(pelicula.calificacion_imdb) if pelicula.calificacion_imdb is not None else None,
        poster_url=pelicula.poster_url,
        trailer_url=pelicula.trailer_url,
        pais_id=pelicula.pais_id,
        activa=pelicula.activa,
        generos=[g.nombre for g in pelicula.generos],
        fecha_creacion=pelicula.fecha_creacion,
        fecha_actualizacion=pelicula.fecha_actualizacion,
    )


def _get_pelicula_or_404(db: Session, id: int) -> Pelicula:
    pelicula = (
        db.query(Pelicula)
        .options(joinedload(Pelicula.peliculas_generos).joinedload(PeliculaGenero.genero))
        .filter(Pelicula.id == id)
        .first()
    )
    if not pelicula:
        raise NotFound("Película no encontrada")
    return pelicula


def _clean(value):
    if value is None:
        return None
    return value.strip() or None


def _generos_por_nombre(db: Session, nombres: List[str]) -> List[Genero]:
    generos = []
    for nombre in dict.fromkeys(n.strip() for n in nombres if n and n.strip()):
        genero = db.query(Genero).filter(Genero.nombre == nombre).first()
        if genero is None:
            genero = Genero(nombre=nombre, activo=True)
            db.add(genero)
            db.flush()
        generos.append(genero)
    return generos


def _apply_pelicula(db: Session, pelicula: Pelicula, data: PeliculaCreate) -> None:
    """Validate a create/replace body and copy it onto the movie."""
    if not data.titulo or not data.titulo.strip():
        raise ValidationError("El título es requerido")
    if not data.duracion_minutos or data.duracion_minutos <= 0:
        raise ValidationError("La duración debe ser mayor a 0 minutos")

    clasificacion = Clasificacion.PG
    if data.clasificacion:
        clasificacion = parse_clasificacion(data.clasificacion)
        if clasificacion is None:
            raise ValidationError(f"Clasificación inválida: '{data.clasificacion}'")

    if data.calificacion_imdb is not None and not 0 <= data.calificacion_imdb <= 10:
        raise ValidationError("La calificación IMDB debe estar entre 0 y 10")

    if data.pais_id is not None:
        if not db.query(Pais.id).filter(Pais.id == data.pais_id).first():
            raise NotFound("País no encontrado")

    pelicula.titulo = data.titulo.strip()
    pelicula.sinopsis = _clean(data.sinopsis)
    pelicula.director = _clean(data.director)
    pelicula.reparto = _clean(data.reparto)
    pelicula.duracion_minutos = data.duracion_minutos
    pelicula.clasificacion = clasificacion
    pelicula.fecha_estreno_mundial = data.fecha_estreno_mundial
    pelicula.fecha_estreno_local = data.fecha_estreno_local
    pelicula.calificacion_imdb = data.calificacion_imdb
    pelicula.poster_url = _clean(data.poster_url)
    pelicula.trailer_url = _clean(data.trailer_url)
    pelicula.pais_id = data.pais_id
    pelicula.activa = data.activa

    if data.generos is not None:
        # Replace the genre set; dropped links are removed by the cascade
        actuales = {pg.genero_id: pg for pg in pelicula.peliculas_generos}
        pelicula.peliculas_generos = [
            actuales.get(genero.id) or PeliculaGenero(genero=genero)
            for genero in _generos_por_nombre(db, data.generos)
        ]


# ---------------------------------------------------------------------------
# Lists
# ---------------------------------------------------------------------------


@router.get("/simple", response_model=PeliculaSimpleResponse)
def list_peliculas_simple(
    search: str = Query(""),
    db: Session = Depends(get_db),
    current_user: Usuario = Depends(get_current_staff_user),
):
    """Lightweight movie picker: active or not, newest first, at most 50."""
    query = db.query(Pelicula)
    if search:
        query = query.filter(_search_filter(search))

    peliculas = (
        query.order_by(Pelicula.fecha_creacion.desc(), Pelicula.id.desc())
        .limit(SIMPLE_LIMIT)
        .all()
    )
    return PeliculaSimpleResponse(
        peliculas=[PeliculaAdminItem.model_validate(p) for p in peliculas],
        total=len(peliculas),
    )


@router.get("", response_model=PeliculaAdminListResponse)
def list_peliculas(
    search: str = Query(""),
    activa: str = Query("all"),
    page: int = Query(1),
    limit: int = Query(10),
    db: Session = Depends(get_db),
    current_user: Usuario = Depends(get_current_staff_user),
):
    """Paginated back-office catalog, newest first. `activa`: `true` | `false` | `all`."""
    page = max(page, 1)
    limit = clamp_limit(limit, MAX_LIMIT)

    query = db.query(Pelicula)
    if search:
        query = query.filter(_search_filter(search))
    if activa in ("true", "false"):
        query = query.filter(Pelicula.activa == (activa == "true"))

    total = query.count()
    peliculas = (
        query.options(joinedload(Pelicula.peliculas_generos).joinedload(PeliculaGenero.genero))
        .order_by(Pelicula.fecha_creacion.desc(), Pelicula.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return PeliculaAdminListResponse(
        peliculas=[serialize_pelicula_admin(p) for p in peliculas],
        pagination=build_pagination(total, page, limit),
    )


# ---------------------------------------------------------------------------
# Pelicula CRUD
# ---------------------------------------------------------------------------


@router.post("", response_model=PeliculaAdminMessageResponse, status_code=status.HTTP_201_CREATED)
def create_pelicula(
    data: PeliculaCreate,
    db: Session = Depends(get_db),
    current_user: Usuario = Depends(get_current_staff_user),
):
    pelicula = Pelicula()
    _apply_pelicula(db, pelicula, data)
    db.add(pelicula)
    db.commit()

    logger.info("Movie %s created by user %s", pelicula.id, current_user.id)
    return PeliculaAdminMessageResponse(
        message="Película creada exitosamente",
        pelicula=serialize_pelicula_admin(_get_pelicula_or_404(db, pelicula.id)),
    )


@router.get("/{id}", response_model=PeliculaAdminResponse)
def get_pelicula(
    id: int,
    db: Session = Depends(get_db),
    current_user: Usuario = Depends(get_current_staff_user),
):
    return PeliculaAdminResponse(pelicula=serialize_pelicula_admin(_get_pelicula_or_404(db, id)))


@router.put("/{id}", response_model=PeliculaAdminMessageResponse)
def replace_pelicula(
    id: int,
    data: PeliculaCreate,
    db: Session = Depends(get_db),
    current_user: Usuario = Depends(get_current_staff_user),
):
    """Full update. Genres are replaced only when `generos` is sent."""
    pelicula = _get_pelicula_or_404(db, id)
    _apply_pelicula(db, pelicula, data)
    db.commit()
    db.expire_all()

    return PeliculaAdminMessageResponse(
        message="Película actualizada exitosamente",
        pelicula=serialize_pelicula_admin(_get_pelicula_or_404(db, id)),
    )


@router.patch("/{id}", response_model=PeliculaAdminMessageResponse)
def set_pelicula_activa(
    id: int,
    data: PeliculaEstadoUpdate,
    db: Session = Depends(get_db),
    current_user: Usuario = Depends(get_current_admin_user),
):
    """Publish or withdraw a movie. Administrators and managers only."""
    pelicula = _get_pelicula_or_404(db, id)
    pelicula.activa = data.activa
    db.commit()
    db.refresh(pelicula)

    accion = "activada" if pelicula.activa else "desactivada"
    return PeliculaAdminMessageResponse(
        message=f"Película {accion} exitosamente",
        pelicula=serialize_pelicula_admin(pelicula),
    )


@router.delete("/{id}", response_model=PeliculaDeleteResponse)
def delete_pelicula(
    id: int,
    db: Session = Depends(get_db),
    current_user: Usuario = Depends(get_current_staff_user),
):
    """Delete a movie; one that has showtimes is deactivated instead."""
    pelicula = _get_pelicula_or_404(db, id)

    if db.query(Funcion.id).filter(Funcion.pelicula_id == pelicula.id).first():
        pelicula.activa = False
        db.commit()
        db.refresh(pelicula)
        return PeliculaDeleteResponse(
            message="Película desactivada debido a funciones asociadas",
            pelicula=serialize_pelicula_admin(pelicula),
        )

    db.delete(pelicula)
    db.commit()
    logger.info("Movie %s deleted by user %s", id, current_user.id)
    return PeliculaDeleteResponse(message="Película eliminada exitosamente")
