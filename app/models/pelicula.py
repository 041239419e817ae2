import enum
from datetime import datetime

from sqlalchemy import (
    Column, String, Boolean, DateTime, Date, Text, DECIMAL, Integer, ForeignKey,
    Enum as SAEnum,
)
from sqlalchemy.orm import relationship
from app.db.session import Base


class Clasificacion(str, enum.Enum):
    G = "G"
    PG = "PG"
    PG_13 = "PG_13"
    R = "R"
    NC_17 = "NC_17"


class Pelicula(Base):
    __tablename__ = "peliculas"

    id = Column(Integer, primary_key=True, autoincrement=True)
    titulo = Column(String(255), nullable=False, index=True)
    sinopsis = Column(Text, nullable=True)
    poster_url = Column(Text, nullable=True)
    trailer_url = Column(Text, nullable=True)
    duracion_minutos = Column(Integer, nullable=False)
    clasificacion = Column(SAEnum(Clasificacion, native_enum=False), nullable=False)
    director = Column(String(255), nullable=True)
    reparto = Column(Text, nullable=True)
    calificacion_imdb = Column(DECIMAL(3, 1), nullable=True)
    fecha_estreno_mundial = Column(Date, nullable=True)
    fecha_estreno_local = Column(Date, nullable=True)
    pais_id = Column(Integer, ForeignKey("paises.id"), nullable=True)
    activa = Column(Boolean, default=True, index=True)
    fecha_creacion = Column(DateTime, default=datetime.now)
    fecha_actualizacion = Column(DateTime, onupdate=datetime.now, nullable=True)

    # Relationships
    pais = relationship("Pais")
    peliculas_generos = relationship(
        "PeliculaGenero", back_populates="pelicula", cascade="all, delete-orphan"
    )
    funciones = relationship("Funcion", back_populates="pelicula")

    @property
    def generos(self):
        return [pg.genero for pg in self.peliculas_generos if pg.genero is not None]


class PeliculaGenero(Base):
    __tablename__ = "peliculas_generos"

    pelicula_id = Column(Integer, ForeignKey("peliculas.id"), primary_key=True)
    genero_id = Column(Integer, ForeignKey("generos.id"), primary_key=True)

    pelicula = relationship("Pelicula", back_populates="peliculas_generos")
    genero = relationship("Genero")
