from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.db.session import get_db
from app.models.catalogo import Genero, Pais
from app.schemas.catalogo import GeneroListResponse, PaisListResponse

router = APIRouter(tags=["Catalogos"])


@router.get("/generos", response_model=GeneroListResponse)
def list_generos(db: Session = Depends(get_db)):
    generos = (
        db.query(Genero)
        .filter(Genero.activo == True)  # noqa: E712
        .order_by(Genero.nombre)
        .all()
    )
    return GeneroListResponse(generos=generos)


@router.get("/paises", response_model=PaisListResponse)
def list_paises(db: Session = Depends(get_db)):
    paises = (
        db.query(Pais)
        .filter(Pais.activo == True)  # noqa: E712
        .order_by(Pais.nombre)
        .all()
    )
    return PaisListResponse(paises=paises)
