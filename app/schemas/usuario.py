from typing import List, Optional
from datetime import date, datetime

from pydantic import BaseModel

from app.schemas.common import Pagination


# Registration body (POST /auth/register). Presence is checked by the handler
# so a missing field gets the same localized message as an empty one.
class RegisterRequest(BaseModel):
    email: Optional[str] = None
    password: Optional[str] = None
    nombre: Optional[str] = None
    apellido: Optional[str] = None
    telefono: Optional[str] = None
    fecha_nacimiento: Optional[str] = None


class AdminRegisterRequest(RegisterRequest):
    admin_secret: Optional[str] = None


class LoginRequest(BaseModel):
    email: Optional[str] = None
    password: Optional[str] = None


# Properties returned via API (never the hash)
class UsuarioOut(BaseModel):
    id: int
    email: str
    nombre: str
    apellido: str
    telefono: Optional[str] = None
    fecha_nacimiento: Optional[date] = None
    tipo_usuario: str
    activo: bool
    fecha_registro: Optional[datetime] = None


class RegisterResponse(BaseModel):
    success: bool = True
    message: str
    user: UsuarioOut


class LoginResponse(BaseModel):
    success: bool = True
    user: UsuarioOut
    redirectTo: str


class MeResponse(BaseModel):
    success: bool = True
    user: UsuarioOut


# Compact user for nested responses (admin reservation view)
class UsuarioSummary(BaseModel):
    id: int
    nombre: str
    apellido: str
    email: str

    class Config:
        from_attributes = True


# Verified session token principal
class AuthUser(BaseModel):
    user_id: int
    email: str
    tipo_usuario: str


# Usuario: staff management (/admin/usuarios)
class UsuarioCreate(BaseModel):
    email: Optional[str] = None
    password: Optional[str] = None
    nombre: Optional[str] = None
    apellido: Optional[str] = None
    telefono: Optional[str] = None
    fecha_nacimiento: Optional[date] = None
    tipo_usuario: str = "cliente"
    activo: bool = True
    email_verificado: bool = False


class UsuarioUpdate(BaseModel):
    nombre: Optional[str] = None
    apellido: Optional[str] = None
    telefono: Optional[str] = None
    fecha_nacimiento: Optional[date] = None
    tipo_usuario: Optional[str] = None
    activo: Optional[bool] = None
    password: Optional[str] = None


class UsuarioReservaSummary(BaseModel):
    id: int
    codigo_reserva: str
    estado: str
    fecha_reserva: Optional[datetime] = None
    precio_total: float
    funcion_inicio: Optional[datetime] = None
    pelicula_titulo: Optional[str] = None
    sala_nombre: Optional[str] = None


class UsuarioDetalle(UsuarioOut):
    reservas: List[UsuarioReservaSummary] = []


class UsuarioResponse(BaseModel):
    success: bool = True
    usuario: UsuarioOut


class UsuarioUpdateResponse(UsuarioResponse):
    message: str


class UsuarioDetalleResponse(BaseModel):
    success: bool = True
    usuario: UsuarioDetalle


class UsuarioListResponse(BaseModel):
    success: bool = True
    usuarios: List[UsuarioOut]
    pagination: Pagination
