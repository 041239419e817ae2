from sqlalchemy import Column, String, Boolean, Integer
from app.db.session import Base


class Genero(Base):
    __tablename__ = "generos"

    id = Column(Integer, primary_key=True, autoincrement=True)
    nombre = Column(String(50), unique=True, nullable=False)
    descripcion = Column(String(255), nullable=True)
    activo = Column(Boolean, default=True)


class Pais(Base):
    __tablename__ = "paises"

    id = Column(Integer, primary_key=True, autoincrement=True)
    nombre = Column(String(100), nullable=False)
    codigo_iso = Column(String(3), unique=True, nullable=False)
    activo = Column(Boolean, default=True)
