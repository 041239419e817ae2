from typing import Optional, List, Any, Dict
from datetime import datetime

from pydantic import BaseModel

from app.schemas.common import Pagination


# Sala: Create (POST /admin/salas). Required fields are checked by the
# handler so that missing and zero values share one message.
class SalaCreate(BaseModel):
    numero: Optional[int] = None
    nombre: Optional[str] = None
    tipo_sala: Optional[str] = None
    capacidad_total: Optional[int] = None
    filas: Optional[int] = None
    asientos_por_fila: Optional[int] = None
    precio_extra: Optional[float] = None
    equipamiento: Optional[Dict[str, Any]] = None
    notas: Optional[str] = None


class SalaUpdate(BaseModel):
    numero: Optional[int] = None
    nombre: Optional[str] = None
    tipo_sala: Optional[str] = None
    capacidad_total: Optional[int] = None
    filas: Optional[int] = None
    asientos_por_fila: Optional[int] = None
    precio_extra: Optional[float] = None
    activa: Optional[bool] = None
    equipamiento: Optional[Dict[str, Any]] = None
    notas: Optional[str] = None


class Sala(BaseModel):
    id: int
    numero: int
    nombre: str
    tipo_sala: str
    capacidad_total: int
    filas: int
    asientos_por_fila: int
    precio_extra: float = 0
    activa: bool
    equipamiento: Optional[Dict[str, Any]] = None
    notas: Optional[str] = None
    fecha_creacion: Optional[datetime] = None
    fecha_actualizacion: Optional[datetime] = None

    class Config:
        from_attributes = True


class Asiento(BaseModel):
    id: int
    fila: str
    numero: int

    class Config:
        from_attributes = True


class SalaFuncionSummary(BaseModel):
    id: int
    fecha_hora_inicio: datetime
    fecha_hora_fin: datetime
    activa: bool
    pelicula_titulo: str


class SalaDetalle(Sala):
    asientos: List[Asiento] = []
    funciones: List[SalaFuncionSummary] = []


class SalaResponse(BaseModel):
    success: bool = True
    sala: Sala


class SalaDetalleResponse(BaseModel):
    success: bool = True
    sala: SalaDetalle


class SalaListResponse(BaseModel):
    success: bool = True
    salas: List[Sala]
    pagination: Pagination
