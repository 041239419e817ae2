from typing import Optional, List
from datetime import datetime

from pydantic import BaseModel

from app.models.pelicula import Clasificacion
from app.schemas.common import Pagination


# Showtimes offered to clients (GET /cliente/peliculas/{id}/funciones)
class SalaFuncionCliente(BaseModel):
    id: int
    nombre: str
    capacidad: int
    tipo: str


class FuncionCliente(BaseModel):
    id: int
    fecha_hora_inicio: datetime
    fecha_hora_fin: datetime
    precio_base: float
    precio_con_descuento: Optional[float] = None
    asientos_disponibles: int
    asientos_reservados: int
    especial: bool
    reservas_count: int
    sala: SalaFuncionCliente


class FuncionClienteListResponse(BaseModel):
    success: bool = True
    funciones: List[FuncionCliente]


# Seat map (GET /cliente/funciones/{id}/asientos)
class AsientoEstado(BaseModel):
    id: int
    fila: str
    numero: int
    ocupado: bool


class MapaAsientosResponse(BaseModel):
    success: bool = True
    funcion_id: int
    filas: int
    asientos_por_fila: int
    asientos: List[AsientoEstado]


# Funcion: Create (POST /admin/funciones)
class FuncionCreate(BaseModel):
    pelicula_id: Optional[int] = None
    sala_id: Optional[int] = None
    fecha_hora_inicio: Optional[datetime] = None
    precio_base: Optional[float] = None
    precio_con_descuento: Optional[float] = None
    especial: bool = False


# Funcion: Update (PATCH /admin/funciones/{id}); unset fields are left as is
class FuncionUpdate(BaseModel):
    pelicula_id: Optional[int] = None
    sala_id: Optional[int] = None
    fecha_hora_inicio: Optional[datetime] = None
    precio_base: Optional[float] = None
    precio_con_descuento: Optional[float] = None
    especial: Optional[bool] = None
    activa: Optional[bool] = None


class FuncionPeliculaSummary(BaseModel):
    titulo: str
    poster_url: Optional[str] = None
    duracion_minutos: int
    clasificacion: Clasificacion

    class Config:
        from_attributes = True


class FuncionSalaSummary(BaseModel):
    numero: int
    nombre: str
    tipo_sala: str
    capacidad_total: int

    class Config:
        from_attributes = True


class FuncionAdmin(BaseModel):
    id: int
    pelicula_id: int
    sala_id: int
    fecha_hora_inicio: datetime
    fecha_hora_fin: datetime
    precio_base: float
    precio_con_descuento: Optional[float] = None
    asientos_disponibles: int
    asientos_reservados: int
    especial: bool
    activa: bool
    pelicula: FuncionPeliculaSummary
    sala: FuncionSalaSummary

    class Config:
        from_attributes = True


class FuncionAdminResponse(BaseModel):
    success: bool = True
    funcion: FuncionAdmin


class FuncionAdminListResponse(BaseModel):
    success: bool = True
    funciones: List[FuncionAdmin]
    pagination: Pagination
