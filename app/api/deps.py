from fastapi import Depends, Request
from sqlalchemy.orm import Session

from app.core.errors import Forbidden, Unauthorized
from app.core.security import ADMIN_ROLES, STAFF_ROLES, get_token_from_request, verify_token
from app.db.session import get_db
from app.models.usuario import Usuario
from app.schemas.usuario import AuthUser


def get_current_principal(request: Request) -> AuthUser:
    """Verified token claims. Claims are not re-checked against the database here."""
    token = get_token_from_request(request)
    if not token:
        raise Unauthorized("No autenticado")

    principal = verify_token(token)
    if principal is None:
        raise Unauthorized("Token inválido")
    return principal


def get_current_user(
    principal: AuthUser = Depends(get_current_principal),
    db: Session = Depends(get_db),
) -> Usuario:
    usuario = db.query(Usuario).filter(Usuario.id == principal.user_id).first()
    if not usuario or not usuario.activo:
        raise Unauthorized("Usuario no encontrado o inactivo")
    return usuario


def get_current_staff_user(current_user: Usuario = Depends(get_current_user)) -> Usuario:
    if current_user.tipo_usuario not in STAFF_ROLES:
        raise Forbidden("Acceso denegado")
    return current_user


def get_current_admin_user(current_user: Usuario = Depends(get_current_user)) -> Usuario:
    if current_user.tipo_usuario not in ADMIN_ROLES:
        raise Forbidden("Acceso denegado")
    return current_user
