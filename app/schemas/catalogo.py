from typing import List

from pydantic import BaseModel


class Genero(BaseModel):
    id: int
    nombre: str

    class Config:
        from_attributes = True


class Pais(BaseModel):
    id: int
    nombre: str
    codigo_iso: str

    class Config:
        from_attributes = True


class GeneroListResponse(BaseModel):
    success: bool = True
    generos: List[Genero]


class PaisListResponse(BaseModel):
    success: bool = True
    paises: List[Pais]
