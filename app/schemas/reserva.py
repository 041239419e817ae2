from __future__ import annotations

from typing import Annotated, Optional, List
from pydantic import BaseModel, Field

from app.models.pelicula import Clasificacion
from app.schemas.common import Pagination


# Reserva: Create (POST /cliente/reservas)
class ReservaCreate(BaseModel):
    funcion_id: int
    asiento_ids: Annotated[List[int], Field(min_length=1, max_length=10)]


# Reserva: Counter sale (POST /admin/reservas); usuario_id is empty for walk-in customers
class ReservaAdminCreate(BaseModel):
    usuario_id: Optional[int] = None
    funcion_id: int
    asiento_ids: Annotated[List[int], Field(min_length=1, max_length=10)]
    estado: str = "pendiente"
    metodo_pago: Optional[str] = None
    notas: Optional[str] = None


# Reserva: Update (PATCH /admin/reservas/{id})
class ReservaUpdate(BaseModel):
    estado: Optional[str] = None
    metodo_pago: Optional[str] = None
    notas: Optional[str] = None


# Nested response objects for reservation responses
class ReservaPeliculaSummary(BaseModel):
    titulo: Optional[str] = None
    poster_url: Optional[str] = None
    duracion_minutos: Optional[int] = None
    clasificacion: Optional[Clasificacion] = None


class ReservaSalaSummary(BaseModel):
    nombre: Optional[str] = None


class ReservaFuncionSummary(BaseModel):
    id: Optional[int] = None
    fecha_hora_inicio: Optional[str] = None
    fecha_hora_fin: Optional[str] = None
    pelicula: ReservaPeliculaSummary
    sala: ReservaSalaSummary


class ReservaAsientoOut(BaseModel):
    numero: Optional[int] = None
    fila: Optional[str] = None


# Reserva: Full response (GET /cliente/reservas/{id}); dates as ISO strings
class Reserva(BaseModel):
    id: int
    codigo_reserva: str
    cantidad_entradas: int
    precio_total: float
    estado: str
    fecha_reserva: Optional[str] = None
    fecha_limite_pago: Optional[str] = None
    funcion: ReservaFuncionSummary
    asientos: List[ReservaAsientoOut] = []


class ReservaResponse(BaseModel):
    success: bool = True
    reserva: Reserva


class ReservaCreateResponse(ReservaResponse):
    message: str


# Reserva: Cancel response (PATCH /cliente/reservas/{id}/cancelar)
class ReservaCancelResponse(BaseModel):
    success: bool = True
    id: int
    codigo_reserva: str
    estado: str


# Reserva: Admin view (GET /admin/reservas, includes user info)
class ReservaAdmin(Reserva):
    usuario: Optional[UsuarioSummary] = None
    metodo_pago: Optional[str] = None
    fecha_pago: Optional[str] = None
    notas: Optional[str] = None


class ReservaAdminResponse(BaseModel):
    success: bool = True
    reserva: ReservaAdmin


class ReservaAdminCreateResponse(ReservaAdminResponse):
    message: str


class ReservaAdminListResponse(BaseModel):
    success: bool = True
    reservas: List[ReservaAdmin]
    pagination: Pagination


# Import at the bottom to avoid circular imports
from app.schemas.usuario import UsuarioSummary  # noqa: E402

ReservaAdmin.model_rebuild()
ReservaAdminResponse.model_rebuild()
ReservaAdminCreateResponse.model_rebuild()
ReservaAdminListResponse.model_rebuild()
