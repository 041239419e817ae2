from app.db.session import Base
from app.models.usuario import Usuario
from app.models.catalogo import Genero, Pais
from app.models.pelicula import Pelicula, PeliculaGenero, Clasificacion
from app.models.sala import Sala, Asiento
from app.models.funcion import Funcion
from app.models.reserva import Reserva, ReservaAsiento
