from datetime import datetime

from sqlalchemy import (
    Column, String, Boolean, DateTime, Text, DECIMAL, Integer, ForeignKey, JSON,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship
from app.db.session import Base


class Sala(Base):
    __tablename__ = "salas"

    id = Column(Integer, primary_key=True, autoincrement=True)
    numero = Column(Integer, unique=True, nullable=False, index=True)
    nombre = Column(String(100), nullable=False)
    tipo_sala = Column(String(50), nullable=False)  # estandar, vip, imax, 3d...
    capacidad_total = Column(Integer, nullable=False)
    filas = Column(Integer, nullable=False)
    asientos_por_fila = Column(Integer, nullable=False)
    precio_extra = Column(DECIMAL(10, 2), default=0)
    activa = Column(Boolean, default=True)
    equipamiento = Column(JSON, nullable=True)
    notas = Column(Text, nullable=True)
    fecha_creacion = Column(DateTime, default=datetime.now)
    fecha_actualizacion = Column(DateTime, onupdate=datetime.now, nullable=True)

    # Relationships
    asientos = relationship(
        "Asiento",
        back_populates="sala",
        cascade="all, delete-orphan",
        order_by="Asiento.id",
    )
    funciones = relationship("Funcion", back_populates="sala")


class Asiento(Base):
    __tablename__ = "asientos"
    __table_args__ = (UniqueConstraint("sala_id", "fila", "numero", name="uq_asiento_sala_fila_numero"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    sala_id = Column(Integer, ForeignKey("salas.id"), nullable=False, index=True)
    fila = Column(String(5), nullable=False)
    numero = Column(Integer, nullable=False)

    sala = relationship("Sala", back_populates="asientos")
