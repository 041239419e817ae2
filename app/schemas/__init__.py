from app.schemas.common import Pagination, ErrorResponse, MessageResponse
from app.schemas.usuario import (
    RegisterRequest, LoginRequest, UsuarioOut, UsuarioSummary, AuthUser,
    RegisterResponse, LoginResponse, MeResponse,
)
from app.schemas.catalogo import Genero, Pais, GeneroListResponse, PaisListResponse
from app.schemas.pelicula import (
    PeliculaListItem, PeliculaListResponse, PeliculaDetalle, PeliculaDetalleResponse,
    PeliculaAdminItem, PeliculaSimpleResponse,
)
from app.schemas.sala import (
    Sala, SalaCreate, SalaUpdate, SalaDetalle, SalaResponse, SalaDetalleResponse,
    SalaListResponse,
)
from app.schemas.funcion import (
    FuncionCliente, FuncionClienteListResponse, MapaAsientosResponse,
    FuncionCreate, FuncionAdmin, FuncionAdminResponse, FuncionAdminListResponse,
)
from app.schemas.reserva import (
    Reserva, ReservaCreate, ReservaUpdate, ReservaResponse, ReservaCreateResponse,
    ReservaCancelResponse, ReservaAdmin, ReservaAdminResponse, ReservaAdminListResponse,
)
from app.schemas.reportes import DashboardStats, ReportSummary, ReportSummaryResponse
