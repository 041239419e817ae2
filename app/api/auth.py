import hmac
import logging
from datetime import date

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.db.session import get_db
from app.core.config import settings
from app.core.errors import Conflict, Forbidden, NotFound, Unauthorized, ValidationError
from app.core.security import (
    calculate_age,
    create_access_token,
    get_password_hash,
    pwd_context,
    redirect_for_role,
    validate_email,
    verify_password,
)
from app.api.deps import get_current_principal
from app.models.usuario import Usuario
from app.schemas.common import MessageResponse
from app.schemas.usuario import (
    AdminRegisterRequest,
    AuthUser,
    LoginRequest,
    LoginResponse,
    MeResponse,
    RegisterRequest,
    RegisterResponse,
    UsuarioOut,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])

MIN_AGE = 13
MIN_PASSWORD_LENGTH = 6
INVALID_CREDENTIALS = "Credenciales inválidas"


def serialize_usuario(usuario: Usuario) -> UsuarioOut:
    return UsuarioOut(
        id=usuario.id,
        email=usuario.email,
        nombre=usuario.nombre,
        apellido=usuario.apellido,
        telefono=usuario.telefono,
        fecha_nacimiento=usuario.fecha_nacimiento,
        tipo_usuario=usuario.tipo_usuario,
        activo=usuario.activo,
        fecha_registro=usuario.fecha_creacion,
    )


def _parse_birth_date(value: str) -> date:
    try:
        # Accept plain dates and full ISO timestamps from date pickers
        return date.fromisoformat(value[:10])
    except ValueError:
        raise ValidationError("La fecha de nacimiento no es válida")


def _set_session_cookie(response: Response, token: str) -> None:
    response.set_cookie(
        key=settings.AUTH_COOKIE_NAME,
        value=token,
        max_age=settings.ACCESS_TOKEN_EXPIRE_DAYS * 24 * 60 * 60,
        path="/",
        secure=settings.AUTH_COOKIE_SECURE,
        httponly=True,
        samesite="strict",
    )


def _create_account(db: Session, body: RegisterRequest, tipo_usuario: str) -> Usuario:
    """Validate a self-registration body and store the account."""
    required = (
        body.email, body.password, body.nombre, body.apellido, body.telefono, body.fecha_nacimiento,
    )
    if not all(required):
        raise ValidationError("Todos los campos son obligatorios")

    email = body.email.strip()
    if not validate_email(email):
        raise ValidationError("El formato del email no es válido")

    birth_date = _parse_birth_date(body.fecha_nacimiento)
    if calculate_age(birth_date) < MIN_AGE:
        raise ValidationError(f"Debes ser mayor de {MIN_AGE} años para registrarte")

    if len(body.password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(
            f"La contraseña debe tener al menos {MIN_PASSWORD_LENGTH} caracteres"
        )

    if db.query(Usuario.id).filter(Usuario.email == email).first():
        raise Conflict("Ya existe un usuario con este email")

    usuario = Usuario(
        email=email,
        password_hash=get_password_hash(body.password),
        nombre=body.nombre,
        apellido=body.apellido,
        telefono=body.telefono,
        fecha_nacimiento=birth_date,
        tipo_usuario=tipo_usuario,
        email_verificado=False,
        activo=True,
    )
    db.add(usuario)
    try:
        db.commit()
    except IntegrityError:
        # Lost a race against a concurrent registration with the same email
        db.rollback()
        raise Conflict("Ya existe un usuario con este email")
    db.refresh(usuario)
    logger.info("Registered %s %s", tipo_usuario, usuario.id)
    return usuario


@router.post("/register", response_model=RegisterResponse, status_code=status.HTTP_201_CREATED)
def register(body: RegisterRequest, db: Session = Depends(get_db)):
    usuario = _create_account(db, body, "cliente")
    return RegisterResponse(
        message="Usuario creado exitosamente",
        user=serialize_usuario(usuario),
    )


@router.post("/admin/register", response_model=RegisterResponse, status_code=status.HTTP_201_CREATED)
def admin_register(body: AdminRegisterRequest, db: Session = Depends(get_db)):
    """
    Create an administrator account. Needs the shared `ADMIN_SECRET_KEY`;
    the route is closed while that setting is empty.
    """
    if not settings.ADMIN_SECRET_KEY or not body.admin_secret:
        raise Forbidden("Registro de administradores deshabilitado")
    if not hmac.compare_digest(body.admin_secret, settings.ADMIN_SECRET_KEY):
        raise Forbidden("Clave de administrador inválida")

    usuario = _create_account(db, body, "administrador")
    return RegisterResponse(
        message="Administrador creado exitosamente",
        user=serialize_usuario(usuario),
    )


@router.post("/login", response_model=LoginResponse)
def login(body: LoginRequest, response: Response, db: Session = Depends(get_db)):
    if not body.email or not body.password:
        raise ValidationError("Email y contraseña son obligatorios")

    usuario = db.query(Usuario).filter(Usuario.email == body.email.strip()).first()
    if not usuario:
        # Same cost and same answer as a wrong password
        pwd_context.dummy_verify()
        logger.info("Login failed: unknown email")
        raise Unauthorized(INVALID_CREDENTIALS)
    if not verify_password(body.password, usuario.password_hash):
        logger.info("Login failed: wrong password for user %s", usuario.id)
        raise Unauthorized(INVALID_CREDENTIALS)
    if not usuario.activo:
        logger.info("Login refused: user %s is inactive", usuario.id)
        raise Unauthorized("La cuenta está desactivada. Contacta al administrador")

    token = create_access_token(
        user_id=usuario.id,
        email=usuario.email,
        nombre=usuario.nombre,
        apellido=usuario.apellido,
        tipo_usuario=usuario.tipo_usuario,
    )
    _set_session_cookie(response, token)

    return LoginResponse(
        user=serialize_usuario(usuario),
        redirectTo=redirect_for_role(usuario.tipo_usuario),
    )


@router.post("/logout", response_model=MessageResponse)
def logout(response: Response):
    """
    Logout the current user.
    Tokens are stateless, so this only overwrites the session cookie with an
    empty value that expires immediately.
    """
    response.set_cookie(
        key=settings.AUTH_COOKIE_NAME,
        value="",
        max_age=0,
        path="/",
        secure=settings.AUTH_COOKIE_SECURE,
        httponly=True,
        samesite="strict",
    )
    return MessageResponse(message="Logout exitoso")


@router.get("/me", response_model=MeResponse)
def me(
    principal: AuthUser = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    """Return the session user, re-read from the database."""
    usuario = db.query(Usuario).filter(Usuario.id == principal.user_id).first()
    if not usuario or not usuario.activo:
        raise NotFound("Usuario no encontrado o inactivo")
    return MeResponse(user=serialize_usuario(usuario))
