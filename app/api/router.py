from fastapi import APIRouter

# Auth
from app.api.auth import router as auth_router

# Public: catalog and lookups
from app.api.public.peliculas import router as public_peliculas_router
from app.api.public.catalogos import router as catalogos_router

# Client: showtimes, seat map, reservations
from app.api.cliente.funciones import router as cliente_funciones_router
from app.api.cliente.reservas import router as cliente_reservas_router

# Admin
from app.api.admin.dashboard import router as dashboard_router
from app.api.admin.reportes import router as reportes_router
from app.api.admin.salas import router as salas_router
from app.api.admin.peliculas import router as admin_peliculas_router
from app.api.admin.funciones import router as admin_funciones_router
from app.api.admin.reservas import router as admin_reservas_router
from app.api.admin.usuarios import router as admin_usuarios_router

api_router = APIRouter()

# --- Auth ---
api_router.include_router(auth_router)

# --- Public ---
api_router.include_router(public_peliculas_router)
api_router.include_router(catalogos_router)

# --- Client ---
api_router.include_router(cliente_funciones_router)
api_router.include_router(cliente_reservas_router)

# --- Admin ---
api_router.include_router(dashboard_router)
api_router.include_router(reportes_router)
api_router.include_router(salas_router)
api_router.include_router(admin_peliculas_router)
api_router.include_router(admin_funciones_router)
api_router.include_router(admin_reservas_router)
api_router.include_router(admin_usuarios_router)
