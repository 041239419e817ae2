from datetime import date
from typing import Dict, List, Optional

from pydantic import BaseModel

from app.schemas.common import Pagination
from app.schemas.reserva import ReservaAdmin


# Admin dashboard (GET /admin/dashboard/stats)
class PeliculasStats(BaseModel):
    total: int
    activas: int


class ReservasStats(BaseModel):
    hoy: int
    asientos_vendidos: int
    por_estado: Dict[str, int]


class IngresosStats(BaseModel):
    hoy: float


class UsuariosStats(BaseModel):
    total: int


class FuncionesStats(BaseModel):
    hoy: int


class SalasStats(BaseModel):
    activas: int


class OcupacionStats(BaseModel):
    porcentaje: int
    capacidad_total: int
    asientos_ocupados: int


class DashboardStats(BaseModel):
    peliculas: PeliculasStats
    reservas: ReservasStats
    ingresos: IngresosStats
    usuarios: UsuariosStats
    funciones: FuncionesStats
    salas: SalasStats
    ocupacion: OcupacionStats


# Reports summary (GET /admin/reportes/summary)
class VentasHoy(BaseModel):
    total_reservas: int
    ingresos_total: float
    pagadas: int


class ReportSummary(BaseModel):
    ventasHoy: VentasHoy
    ocupacionPromedio: float
    peliculasActivas: int
    usuariosRegistrados: int


class ReportSummaryResponse(BaseModel):
    success: bool = True
    data: ReportSummary


# Sales report (GET /admin/reportes/ventas)
class VentasPorEstado(BaseModel):
    estado: str
    cantidad: int
    ingresos: float


class VentasMetricas(BaseModel):
    total_reservas: int
    ingresos_total: float
    asientos_vendidos: int
    precio_promedio: float
    por_estado: List[VentasPorEstado]


class VentasTopPelicula(BaseModel):
    pelicula_id: int
    titulo: str
    poster_url: Optional[str] = None
    reservas: int
    asientos: int
    ingresos: float


class VentasFiltros(BaseModel):
    periodo: str
    fecha_inicio: date
    fecha_fin: date
    pelicula: str
    sala: str
    estado: str


class VentasReport(BaseModel):
    reservas: List[ReservaAdmin]
    metricas: VentasMetricas
    top_peliculas: List[VentasTopPelicula]
    filtros: VentasFiltros


class VentasReportResponse(BaseModel):
    success: bool = True
    data: VentasReport
    pagination: Pagination
