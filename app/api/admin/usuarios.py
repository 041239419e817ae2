import logging

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload

from app.db.session import get_db
from app.api.auth import MIN_PASSWORD_LENGTH, serialize_usuario
from app.api.deps import get_current_staff_user
from app.core.errors import Conflict, Forbidden, NotFound, ValidationError
from app.core.security import ADMIN_ROLES, TIPOS_USUARIO, get_password_hash, validate_email
from app.models.funcion import Funcion
from app.models.reserva import Reserva
from app.models.usuario import Usuario
from app.schemas.common import MessageResponse, build_pagination, clamp_limit
from app.schemas.usuario import (
    UsuarioCreate,
    UsuarioDetalle,
    UsuarioDetalleResponse,
    UsuarioListResponse,
    UsuarioReservaSummary,
    UsuarioResponse,
    UsuarioUpdate,
    UsuarioUpdateResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin/usuarios", tags=["Admin - Usuarios"])

MAX_LIMIT = 100

# Reservations that block deleting their owner
ESTADOS_BLOQUEAN_BAJA = ("pendiente", "confirmada", "pagada")

EMAIL_DUPLICADO = "El email ya está registrado"


def _get_usuario_or_404(db: Session, id: int) -> Usuario:
    usuario = db.query(Usuario).filter(Usuario.id == id).first()
    if not usuario:
        raise NotFound("Usuario no encontrado")
    return usuario


def _check_tipo_usuario(tipo_usuario: str, current_user: Usuario) -> None:
    if tipo_usuario not in TIPOS_USUARIO:
        raise ValidationError(f"Tipo de usuario inválido: '{tipo_usuario}'")
    # Employees may manage clients and employees, not administrators
    if tipo_usuario in ADMIN_ROLES and current_user.tipo_usuario not in ADMIN_ROLES:
        raise Forbidden("Solo un administrador puede asignar ese tipo de usuario")


@router.get("", response_model=UsuarioListResponse)
def list_usuarios(
    search: str = Query(""),
    tipo: str = Query("all"),
    activo: str = Query("all"),
    page: int = Query(1),
    limit: int = Query(10),
    db: Session = Depends(get_db),
    current_user: Usuario = Depends(get_current_staff_user),
):
    """
    Accounts, newest first. `search` matches name, surname, email or phone;
    `tipo` and `activo` accept `all`.
    """
    page = max(page, 1)
    limit = clamp_limit(limit, MAX_LIMIT)

    query = db.query(Usuario)
    if search:
        query = query.filter(
            or_(
                Usuario.nombre.icontains(search, autoescape=True),
                Usuario.apellido.icontains(search, autoescape=True),
                Usuario.email.icontains(search, autoescape=True),
                Usuario.telefono.icontains(search, autoescape=True),
            )
        )
    if tipo and tipo != "all":
        query = query.filter(Usuario.tipo_usuario == tipo)
    if activo in ("true", "false"):
        query = query.filter(Usuario.activo == (activo == "true"))

    total = query.count()
    usuarios = (
        query.order_by(Usuario.fecha_creacion.desc(), Usuario.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )

    return UsuarioListResponse(
        usuarios=[serialize_usuario(u) for u in usuarios],
        pagination=build_pagination(total, page, limit),
    )


@router.post("", response_model=UsuarioResponse, status_code=status.HTTP_201_CREATED)
def create_usuario(
    data: UsuarioCreate,
    db: Session = Depends(get_db),
    current_user: Usuario = Depends(get_current_staff_user),
):
    """Create an account of any type, e.g. box-office staff."""
    if not (data.email and data.password and data.nombre and data.apellido):
        raise ValidationError("Campos requeridos: email, password, nombre, apellido")

    email = data.email.strip()
    if not validate_email(email):
        raise ValidationError("El formato del email no es válido")
    if len(data.password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(
            f"La contraseña debe tener al menos {MIN_PASSWORD_LENGTH} caracteres"
        )
    _check_tipo_usuario(data.tipo_usuario, current_user)

    if db.query(Usuario.id).filter(Usuario.email == email).first():
        raise Conflict(EMAIL_DUPLICADO)

    usuario = Usuario(
        email=email,
        password_hash=get_password_hash(data.password),
        nombre=data.nombre,
        apellido=data.apellido,
        telefono=data.telefono,
        fecha_nacimiento=data.fecha_nacimiento,
        tipo_usuario=data.tipo_usuario,
        activo=data.activo,
        email_verificado=data.email_verificado,
    )
    db.add(usuario)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise Conflict(EMAIL_DUPLICADO)
    db.refresh(usuario)

    logger.info("User %s created %s %s", current_user.id, usuario.tipo_usuario, usuario.id)
    return UsuarioResponse(usuario=serialize_usuario(usuario))


@router.get("/{id}", response_model=UsuarioDetalleResponse)
def get_usuario(
    id: int,
    db: Session = Depends(get_db),
    current_user: Usuario = Depends(get_current_staff_user),
):
    usuario = _get_usuario_or_404(db, id)
    reservas = (
        db.query(Reserva)
        .options(
            joinedload(Reserva.funcion).joinedload(Funcion.pelicula),
            joinedload(Reserva.funcion).joinedload(Funcion.sala),
        )
        .filter(Reserva.usuario_id == usuario.id)
        .order_by(Reserva.fecha_reserva.desc(), Reserva.id.desc())
        .all()
    )

    detalle = UsuarioDetalle(
        **serialize_usuario(usuario).model_dump(),
        reservas=[
            UsuarioReservaSummary(
                id=r.id,
                codigo_reserva=r.codigo_reserva,
                estado=r.estado,
                fecha_reserva=r.fecha_reserva,
                precio_total=float(r.precio_total or 0),
                funcion_inicio=r.funcion.fecha_hora_inicio,
                pelicula_titulo=r.funcion.pelicula.titulo,
                sala_nombre=r.funcion.sala.nombre,
            )
            for r in reservas
        ],
    )
    return UsuarioDetalleResponse(usuario=detalle)


@router.patch("/{id}", response_model=UsuarioUpdateResponse)
def update_usuario(
    id: int,
    data: UsuarioUpdate,
    db: Session = Depends(get_db),
    current_user: Usuario = Depends(get_current_staff_user),
):
    """Partial update; a non-empty `password` replaces the stored hash."""
    usuario = _get_usuario_or_404(db, id)
    if usuario.tipo_usuario in ADMIN_ROLES and current_user.tipo_usuario not in ADMIN_ROLES:
        raise Forbidden("Solo un administrador puede modificar esta cuenta")

    changes = data.model_dump(exclude_unset=True)
    password = changes.pop("password", None)
    if changes.get("tipo_usuario") is not None:
        _check_tipo_usuario(changes["tipo_usuario"], current_user)

    for field in ("nombre", "apellido", "tipo_usuario", "activo"):
        # Required columns: null means "leave as is"
        if field in changes and changes[field] is None:
            del changes[field]

    if password and password.strip():
        if len(password) < MIN_PASSWORD_LENGTH:
            raise ValidationError(
                f"La contraseña debe tener al menos {MIN_PASSWORD_LENGTH} caracteres"
            )
        usuario.password_hash = get_password_hash(password)

    for field, value in changes.items():
        setattr(usuario, field, value)

    db.commit()
    db.refresh(usuario)
    return UsuarioUpdateResponse(
        message="Usuario actualizado exitosamente",
        usuario=serialize_usuario(usuario),
    )


@router.delete("/{id}", response_model=MessageResponse)
def delete_usuario(
    id: int,
    db: Session = Depends(get_db),
    current_user: Usuario = Depends(get_current_staff_user),
):
    """
    Delete an account without live reservations. Its past reservations and
    sales are kept with the user reference cleared.
    """
    usuario = _get_usuario_or_404(db, id)
    if usuario.id == current_user.id:
        raise ValidationError("No puedes eliminar tu propia cuenta")
    if usuario.tipo_usuario in ADMIN_ROLES and current_user.tipo_usuario not in ADMIN_ROLES:
        raise Forbidden("Solo un administrador puede eliminar esta cuenta")

    activas = (
        db.query(Reserva.id)
        .filter(Reserva.usuario_id == usuario.id, Reserva.estado.in_(ESTADOS_BLOQUEAN_BAJA))
        .count()
    )
    if activas:
        raise ValidationError(
            f"No se puede eliminar el usuario porque tiene {activas} reserva(s) activa(s)"
        )

    db.query(Reserva).filter(Reserva.usuario_id == usuario.id).update(
        {Reserva.usuario_id: None}, synchronize_session=False,
    )
    db.query(Reserva).filter(Reserva.empleado_vendedor_id == usuario.id).update(
        {Reserva.empleado_vendedor_id: None}, synchronize_session=False,
    )
    db.delete(usuario)
    db.commit()

    logger.info("User %s deleted by %s", id, current_user.id)
    return MessageResponse(message="Usuario eliminado exitosamente")
