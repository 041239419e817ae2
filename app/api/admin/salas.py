import logging
from datetime import datetime

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload

from app.db.session import get_db
from app.api.deps import get_current_staff_user
from app.core.errors import Conflict, NotFound, ValidationError
from app.models.funcion import Funcion
from app.models.sala import Sala, Asiento
from app.models.usuario import Usuario
from app.schemas.common import MessageResponse, build_pagination, clamp_limit
from app.schemas.sala import (
    Sala as SalaSchema,
    SalaCreate,
    SalaDetalle,
    SalaDetalleResponse,
    SalaFuncionSummary,
    SalaListResponse,
    SalaResponse,
    SalaUpdate,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin/salas", tags=["Admin - Salas"])

MAX_LIMIT = 100

# Fields that stay editable while the room has upcoming showtimes
CAMPOS_EDITABLES_CON_FUNCIONES = {"activa", "precio_extra", "notas", "equipamiento"}

CAMPOS_NULLABLES = {"precio_extra", "notas", "equipamiento"}

CAPACIDAD_INVALIDA = "La capacidad total no coincide con filas × asientos por fila"
NUMERO_DUPLICADO = "Ya existe una sala con este número"
DIMENSIONES_INVALIDAS = "El número, la capacidad, las filas y los asientos por fila deben ser mayores a 0"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def fila_label(index: int) -> str:
    """0 -> 'A', 25 -> 'Z', 26 -> 'AA'."""
    label = ""
    index += 1
    while index > 0:
        index, rem = divmod(index - 1, 26)
        label = chr(ord("A") + rem) + label
    return label


def build_asientos(filas: int, asientos_por_fila: int):
    return [
        Asiento(fila=fila_label(f), numero=n)
        for f in range(filas)
        for n in range(1, asientos_por_fila + 1)
    ]


def _get_sala_or_404(db: Session, id: int) -> Sala:
    sala = db.query(Sala).filter(Sala.id == id).first()
    if not sala:
        raise NotFound("Sala no encontrada")
    return sala


def _numero_en_uso(db: Session, numero: int, exclude_id=None) -> bool:
    query = db.query(Sala.id).filter(Sala.numero == numero)
    if exclude_id is not None:
        query = query.filter(Sala.id != exclude_id)
    return query.first() is not None


def _check_dimensiones(numero: int, filas: int, asientos_por_fila: int, capacidad: int) -> None:
    if min(numero, filas, asientos_por_fila, capacidad) <= 0:
        raise ValidationError(DIMENSIONES_INVALIDAS)
    if filas * asientos_por_fila != capacidad:
        raise ValidationError(CAPACIDAD_INVALIDA)


def _commit_sala(db: Session) -> None:
    try:
        db.commit()
    except IntegrityError:
        # Another request took the number between the check and the commit
        db.rollback()
        raise Conflict(NUMERO_DUPLICADO)


# ---------------------------------------------------------------------------
# Sala CRUD
# ---------------------------------------------------------------------------


@router.get("", response_model=SalaListResponse)
def list_salas(
    search: str = Query(""),
    activa: str = Query("all"),
    page: int = Query(1),
    limit: int = Query(20),
    db: Session = Depends(get_db),
    current_user: Usuario = Depends(get_current_staff_user),
):
    """
    Rooms ordered by number. `search` matches the name, or the exact room
    number when it is numeric. `activa` is `true`, `false` or `all`.
    """
    page = max(page, 1)
    limit = clamp_limit(limit, MAX_LIMIT)

    query = db.query(Sala)
    if activa in ("true", "false"):
        query = query.filter(Sala.activa == (activa == "true"))
    if search:
        conditions = [Sala.nombre.icontains(search, autoescape=True)]
        if search.strip().isdigit():
            conditions.append(Sala.numero == int(search))
        query = query.filter(or_(*conditions))

    total = query.count()
    salas = query.order_by(Sala.numero.asc()).offset((page - 1) * limit).limit(limit).all()

    return SalaListResponse(
        salas=salas,
        pagination=build_pagination(total, page, limit),
    )


@router.post("", response_model=SalaResponse, status_code=status.HTTP_201_CREATED)
def create_sala(
    data: SalaCreate,
    db: Session = Depends(get_db),
    current_user: Usuario = Depends(get_current_staff_user),
):
    """Create a room and its full seat grid (rows lettered from A)."""
    if not all([
        data.numero, data.nombre, data.tipo_sala,
        data.capacidad_total, data.filas, data.asientos_por_fila,
    ]):
        raise ValidationError("Todos los campos obligatorios son requeridos")

    _check_dimensiones(data.numero, data.filas, data.asientos_por_fila, data.capacidad_total)

    if _numero_en_uso(db, data.numero):
        raise Conflict(NUMERO_DUPLICADO)

    sala = Sala(
        numero=data.numero,
        nombre=data.nombre,
        tipo_sala=data.tipo_sala,
        capacidad_total=data.capacidad_total,
        filas=data.filas,
        asientos_por_fila=data.asientos_por_fila,
        precio_extra=data.precio_extra or 0,
        activa=True,
        equipamiento=data.equipamiento or {},
        notas=data.notas,
    )
    sala.asientos = build_asientos(data.filas, data.asientos_por_fila)
    db.add(sala)
    _commit_sala(db)
    db.refresh(sala)

    logger.info("Room %s created with %s seats", sala.numero, sala.capacidad_total)
    return SalaResponse(sala=sala)


@router.get("/{id}", response_model=SalaDetalleResponse)
def get_sala(
    id: int,
    db: Session = Depends(get_db),
    current_user: Usuario = Depends(get_current_staff_user),
):
    sala = _get_sala_or_404(db, id)

    proximas = (
        db.query(Funcion)
        .options(joinedload(Funcion.pelicula))
        .filter(Funcion.sala_id == sala.id, Funcion.fecha_hora_inicio >= datetime.now())
        .order_by(Funcion.fecha_hora_inicio.asc())
        .all()
    )

    detalle = SalaDetalle(
        **SalaSchema.model_validate(sala).model_dump(),
        asientos=sala.asientos,
        funciones=[
            SalaFuncionSummary(
                id=f.id,
                fecha_hora_inicio=f.fecha_hora_inicio,
                fecha_hora_fin=f.fecha_hora_fin,
                activa=f.activa,
                pelicula_titulo=f.pelicula.titulo,
            )
            for f in proximas
        ],
    )
    return SalaDetalleResponse(sala=detalle)


@router.patch("/{id}", response_model=SalaResponse)
def update_sala(
    id: int,
    data: SalaUpdate,
    db: Session = Depends(get_db),
    current_user: Usuario = Depends(get_current_staff_user),
):
    """
    Update a room.

    While it has upcoming active showtimes only `activa`, `precio_extra`,
    `notas` and `equipamiento` may change. Otherwise the capacity is
    re-validated against the grid and the seats are rebuilt when the grid
    changes.
    """
    sala = _get_sala_or_404(db, id)
    changes = {
        field: value
        for field, value in data.model_dump(exclude_unset=True).items()
        if value is not None or field in CAMPOS_NULLABLES
    }

    tiene_funciones = (
        db.query(Funcion.id)
        .filter(
            Funcion.sala_id == sala.id,
            Funcion.activa == True,  # noqa: E712
            Funcion.fecha_hora_inicio >= datetime.now(),
        )
        .first()
        is not None
    )
    if tiene_funciones:
        changes = {k: v for k, v in changes.items() if k in CAMPOS_EDITABLES_CON_FUNCIONES}
        if not changes:
            raise ValidationError(
                "No se pueden modificar estos campos cuando hay funciones activas programadas"
            )
    if "precio_extra" in changes:
        changes["precio_extra"] = changes["precio_extra"] or 0

    if "numero" in changes and changes["numero"] != sala.numero:
        if _numero_en_uso(db, changes["numero"], exclude_id=sala.id):
            raise Conflict(NUMERO_DUPLICADO)

    filas = changes.get("filas", sala.filas)
    asientos_por_fila = changes.get("asientos_por_fila", sala.asientos_por_fila)
    capacidad = changes.get("capacidad_total", sala.capacidad_total)
    _check_dimensiones(changes.get("numero", sala.numero), filas, asientos_por_fila, capacidad)

    grid_changed = (filas, asientos_por_fila) != (sala.filas, sala.asientos_por_fila)
    if grid_changed:
        # Showtimes of any date keep counters and seat links sized to the current grid
        if db.query(Funcion.id).filter(Funcion.sala_id == sala.id).first():
            raise ValidationError(
                "No se puede cambiar la distribución de una sala con funciones asociadas"
            )

    for field, value in changes.items():
        setattr(sala, field, value)

    if grid_changed:
        # Old seats must be gone before the new grid is inserted
        db.query(Asiento).filter(Asiento.sala_id == sala.id).delete(synchronize_session=False)
        db.flush()
        db.expire(sala, ["asientos"])
        sala.asientos = build_asientos(filas, asientos_por_fila)
        logger.info("Room %s seats rebuilt as %sx%s", sala.numero, filas, asientos_por_fila)

    _commit_sala(db)
    db.refresh(sala)
    return SalaResponse(sala=sala)


@router.delete("/{id}", response_model=MessageResponse)
def delete_sala(
    id: int,
    db: Session = Depends(get_db),
    current_user: Usuario = Depends(get_current_staff_user),
):
    sala = _get_sala_or_404(db, id)

    if db.query(Funcion.id).filter(Funcion.sala_id == sala.id).first():
        raise ValidationError("No se puede eliminar una sala que tiene funciones asociadas")

    db.delete(sala)
    db.commit()
    logger.info("Room %s deleted", id)
    return MessageResponse(message="Sala eliminada exitosamente")
