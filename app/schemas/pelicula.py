from typing import Optional, List
from datetime import date, datetime

from pydantic import BaseModel

from app.models.pelicula import Clasificacion
from app.schemas.common import Pagination


# Public listing card (GET /public/peliculas)
class PeliculaListItem(BaseModel):
    id: int
    titulo: str
    sinopsis: Optional[str] = None
    poster_url: Optional[str] = None
    trailer_url: Optional[str] = None
    duracion_minutos: int
    clasificacion: Clasificacion
    genero: str
    director: Optional[str] = None
    actores_principales: Optional[str] = None
    calificacion_imdb: Optional[float] = None
    fecha_estreno_mundial: Optional[date] = None
    fecha_estreno_local: Optional[date] = None
    activa: bool


class PeliculaFiltros(BaseModel):
    search: str
    clasificacion: str
    ordenarPor: str


class PeliculaListResponse(BaseModel):
    success: bool = True
    peliculas: List[PeliculaListItem]
    pagination: Pagination
    filtros: PeliculaFiltros


# Movie detail (GET /public/peliculas/{id})
class SalaDetalleSummary(BaseModel):
    id: int
    numero: int
    nombre: str
    tipo_sala: str
    capacidad_total: int


class FuncionDetalle(BaseModel):
    id: int
    fecha_hora_inicio: datetime
    fecha_hora_fin: datetime
    precio_base: float
    asientos_disponibles: int
    asientos_reservados: int
    sala: SalaDetalleSummary


class PeliculaDetalle(BaseModel):
    id: int
    titulo: str
    sinopsis: Optional[str] = None
    poster_url: Optional[str] = None
    trailer_url: Optional[str] = None
    duracion_minutos: int
    clasificacion: Clasificacion
    director: Optional[str] = None
    actores_principales: Optional[str] = None
    calificacion_imdb: Optional[float] = None
    fecha_estreno_mundial: Optional[date] = None
    fecha_estreno_local: Optional[date] = None
    generos: List[str] = []
    funciones: List[FuncionDetalle] = []


class PeliculaDetalleResponse(BaseModel):
    success: bool = True
    pelicula: PeliculaDetalle


# Admin simple search (GET /admin/peliculas/simple)
class PeliculaAdminItem(BaseModel):
    id: int
    titulo: str
    director: Optional[str] = None
    duracion_minutos: int
    clasificacion: Clasificacion
    poster_url: Optional[str] = None
    calificacion_imdb: Optional[float] = None
    fecha_estreno_local: Optional[date] = None
    activa: bool
    fecha_creacion: Optional[datetime] = None

    class Config:
        from_attributes = True


class PeliculaSimpleResponse(BaseModel):
    success: bool = True
    peliculas: List[PeliculaAdminItem]
    total: int


# Pelicula: Create / full update (POST /admin/peliculas, PUT /admin/peliculas/{id}).
# `generos` are genre names; unknown names are created.
class PeliculaCreate(BaseModel):
    titulo: Optional[str] = None
    sinopsis: Optional[str] = None
    director: Optional[str] = None
    reparto: Optional[str] = None
    duracion_minutos: Optional[int] = None
    clasificacion: Optional[str] = None
    fecha_estreno_mundial: Optional[date] = None
    fecha_estreno_local: Optional[date] = None
    calificacion_imdb: Optional[float] = None
    poster_url: Optional[str] = None
    trailer_url: Optional[str] = None
    pais_id: Optional[int] = None
    activa: bool = True
    generos: Optional[List[str]] = None


class PeliculaEstadoUpdate(BaseModel):
    activa: bool


class PeliculaAdmin(BaseModel):
    id: int
    titulo: str
    sinopsis: Optional[str] = None
    director: Optional[str] = None
    reparto: Optional[str] = None
    duracion_minutos: int
    clasificacion: Clasificacion
    fecha_estreno_mundial: Optional[date] = None
    fecha_estreno_local: Optional[date] = None
    calificacion_imdb: Optional[float] = None
    poster_url: Optional[str] = None
    trailer_url: Optional[str] = None
    pais_id: Optional[int] = None
    activa: bool
    generos: List[str] = []
    fecha_creacion: Optional[datetime] = None
    fecha_actualizacion: Optional[datetime] = None


class PeliculaAdminResponse(BaseModel):
    success: bool = True
    pelicula: PeliculaAdmin


class PeliculaAdminMessageResponse(PeliculaAdminResponse):
    message: str


class PeliculaAdminListResponse(BaseModel):
    success: bool = True
    peliculas: List[PeliculaAdmin]
    pagination: Pagination


# DELETE /admin/peliculas/{id}: movies with showtimes are deactivated instead
class PeliculaDeleteResponse(BaseModel):
    success: bool = True
    message: str
    pelicula: Optional[PeliculaAdmin] = None
