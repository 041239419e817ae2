from datetime import datetime

from sqlalchemy import Column, Boolean, DateTime, DECIMAL, Integer, ForeignKey
from sqlalchemy.orm import relationship
from app.db.session import Base


class Funcion(Base):
    __tablename__ = "funciones"

    id = Column(Integer, primary_key=True, autoincrement=True)
    pelicula_id = Column(Integer, ForeignKey("peliculas.id"), nullable=False, index=True)
    sala_id = Column(Integer, ForeignKey("salas.id"), nullable=False, index=True)
    fecha_hora_inicio = Column(DateTime, nullable=False, index=True)
    fecha_hora_fin = Column(DateTime, nullable=False)
    precio_base = Column(DECIMAL(10, 2), nullable=False)
    precio_con_descuento = Column(DECIMAL(10, 2), nullable=True)
    # Denormalized counters, kept in step with reservas_asientos
    asientos_disponibles = Column(Integer, nullable=False)
    asientos_reservados = Column(Integer, nullable=False, default=0)
    especial = Column(Boolean, default=False)
    activa = Column(Boolean, default=True, index=True)
    fecha_creacion = Column(DateTime, default=datetime.now)

    # Relationships
    pelicula = relationship("Pelicula", back_populates="funciones")
    sala = relationship("Sala", back_populates="funciones")
    reservas = relationship("Reserva", back_populates="funcion")
