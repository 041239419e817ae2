import asyncio
import logging

from fastapi import FastAPI
from fastapi.concurrency import run_in_threadpool
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager

from app.db.init_db import create_database
from app.db.base import Base
from app.db.session import create_db_engine, create_session_factory
from app.core.config import Settings, settings
from app.core.errors import register_exception_handlers
from app.core.logging_config import configure_logging
from app.api.router import api_router
from app.services.reservas import expire_overdue_reservas

logger = logging.getLogger(__name__)


def _expire_once(app: FastAPI) -> int:
    db = app.state.SessionLocal()
    try:
        return expire_overdue_reservas(db)
    finally:
        db.close()


async def _reservation_expiry_loop(app: FastAPI, interval: int) -> None:
    """Background task: expire unpaid reservations past their deadline."""
    while True:
        try:
            # Blocking ORM work stays off the event loop
            count = await run_in_threadpool(_expire_once, app)
            if count:
                logger.info("Expired %d overdue reservation(s).", count)
        except Exception:
            logger.exception("Error during reservation expiry sweep.")
        await asyncio.sleep(interval)


def create_app(app_settings: Settings = settings) -> FastAPI:
    configure_logging(app_settings.LOG_LEVEL)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Startup: ensure the database exists, open the engine, create tables
        database_url = app_settings.assemble_db_url()
        create_database(database_url)
        engine = create_db_engine(database_url)
        app.state.engine = engine
        app.state.SessionLocal = create_session_factory(engine)
        Base.metadata.create_all(bind=engine)

        sweep_task = None
        if app_settings.EXPIRY_SWEEP_ENABLED:
            sweep_task = asyncio.create_task(
                _reservation_expiry_loop(app, app_settings.EXPIRY_SWEEP_INTERVAL_SECONDS)
            )
        yield

        # Shutdown: stop the sweep, release pooled connections
        if sweep_task is not None:
            sweep_task.cancel()
            try:
                await sweep_task
            except asyncio.CancelledError:
                pass
        engine.dispose()

    app = FastAPI(title=app_settings.PROJECT_NAME, lifespan=lifespan)

    # Set all CORS enabled origins
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)
    app.include_router(api_router, prefix=app_settings.API_PREFIX)

    @app.get("/")
    def read_root():
        return {"Hello": app_settings.PROJECT_NAME}

    return app


app = create_app()
