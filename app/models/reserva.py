from datetime import datetime

from sqlalchemy import (
    Column, String, DateTime, DECIMAL, Integer, ForeignKey, Text, UniqueConstraint,
)
from sqlalchemy.orm import relationship
from app.db.session import Base

ESTADOS_RESERVA = ("pendiente", "confirmada", "pagada", "usada", "cancelada", "vencida")

# Reservations that still hold seats
ESTADOS_ACTIVOS = ("pendiente", "confirmada", "pagada", "usada")


class Reserva(Base):
    __tablename__ = "reservas"

    id = Column(Integer, primary_key=True, autoincrement=True)
    codigo_reserva = Column(String(20), unique=True, nullable=False, index=True)
    usuario_id = Column(Integer, ForeignKey("usuarios.id"), nullable=True, index=True)
    funcion_id = Column(Integer, ForeignKey("funciones.id"), nullable=False, index=True)
    cantidad_asientos = Column(Integer, nullable=False)
    precio_subtotal = Column(DECIMAL(10, 2), nullable=False)
    precio_total = Column(DECIMAL(10, 2), nullable=False)
    estado = Column(String(20), default="pendiente", index=True)
    metodo_pago = Column(String(20), nullable=True)  # efectivo, tarjeta, transferencia
    fecha_reserva = Column(DateTime, default=datetime.now, index=True)
    fecha_vencimiento = Column(DateTime, nullable=True, index=True)
    fecha_pago = Column(DateTime, nullable=True)
    empleado_vendedor_id = Column(Integer, ForeignKey("usuarios.id"), nullable=True)
    notas = Column(Text, nullable=True)

    # Relationships
    usuario = relationship("Usuario", foreign_keys=[usuario_id])
    empleado_vendedor = relationship("Usuario", foreign_keys=[empleado_vendedor_id])
    funcion = relationship("Funcion", back_populates="reservas")
    reservas_asientos = relationship(
        "ReservaAsiento",
        back_populates="reserva",
        cascade="all, delete-orphan",
        order_by="ReservaAsiento.id",
    )


class ReservaAsiento(Base):
    __tablename__ = "reservas_asientos"
    # A seat can be held by at most one live reservation per showtime;
    # rows are deleted when a reservation is cancelled or expires.
    __table_args__ = (UniqueConstraint("funcion_id", "asiento_id", name="uq_funcion_asiento"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    reserva_id = Column(Integer, ForeignKey("reservas.id"), nullable=False, index=True)
    funcion_id = Column(Integer, ForeignKey("funciones.id"), nullable=False)  # copied from the reservation for the seat constraint
    asiento_id = Column(Integer, ForeignKey("asientos.id"), nullable=False)

    reserva = relationship("Reserva", back_populates="reservas_asientos")
    asiento = relationship("Asiento")
    funcion = relationship("Funcion")
