import re
from datetime import date, datetime, timedelta, timezone
from typing import Optional

from fastapi import Request
from jose import jwt, JWTError
from passlib.context import CryptContext
from app.core.config import settings
from app.schemas.usuario import AuthUser

pwd_context = CryptContext(
    schemes=["bcrypt"],
    deprecated="auto",
    bcrypt__rounds=settings.BCRYPT_ROUNDS,
)

ALGORITHM = "HS256"

EMAIL_REGEX = re.compile(r"^[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}$")

TIPOS_USUARIO = ("cliente", "empleado", "administrador", "gerente")

STAFF_ROLES = ("empleado", "administrador", "gerente")

# Roles allowed to manage accounts and to create other administrators
ADMIN_ROLES = ("administrador", "gerente")


def create_access_token(
    user_id: int,
    email: str,
    nombre: str,
    apellido: str,
    tipo_usuario: str,
    expires_delta: Optional[timedelta] = None,
) -> str:
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(days=settings.ACCESS_TOKEN_EXPIRE_DAYS)
    )
    to_encode = {
        "exp": expire,
        "sub": str(user_id),
        "userId": user_id,
        "email": email,
        "nombre": nombre,
        "apellido": apellido,
        "tipo_usuario": tipo_usuario,
    }
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=ALGORITHM)


def verify_token(token: str) -> Optional[AuthUser]:
    """Returns the token principal, or None if the token is invalid/expired/malformed."""
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[ALGORITHM])
        return AuthUser(
            user_id=int(payload["userId"]),
            email=payload["email"],
            tipo_usuario=payload["tipo_usuario"],
        )
    except (JWTError, KeyError, TypeError, ValueError):
        return None


def get_token_from_request(request: Request) -> Optional[str]:
    """Session cookie first, then an `Authorization: Bearer` header."""
    token = request.cookies.get(settings.AUTH_COOKIE_NAME)
    if token:
        return token

    auth_header = request.headers.get("authorization")
    if auth_header and auth_header.startswith("Bearer "):
        return auth_header[len("Bearer "):]
    return None


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


def validate_email(email: str) -> bool:
    return EMAIL_REGEX.match(email) is not None


def calculate_age(birth_date: date, today: Optional[date] = None) -> int:
    """Full years elapsed, counting the birthday itself as completed."""
    today = today or date.today()
    age = today.year - birth_date.year
    if (today.month, today.day) < (birth_date.month, birth_date.day):
        age -= 1
    return age


def redirect_for_role(tipo_usuario: str) -> str:
    return "/admin" if tipo_usuario in STAFF_ROLES else "/cliente"
