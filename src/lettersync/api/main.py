"""FastAPI application factory."""
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from sqlmodel import SQLModel

from lettersync.api.routes import letters, sync as sync_routes
from lettersync.config import get_settings
from lettersync.db.engine import get_engine
from lettersync.scheduler.jobs import SyncWorker


def create_app(engine=None, worker: Optional[SyncWorker] = None) -> FastAPI:
    """Build and return the FastAPI app.

    The app owns one SyncWorker (app.state.sync_worker). It is started on
    startup only when SYNC_AUTOSTART is set; otherwise use POST /sync/auto.
    """
    settings = get_settings()
    engine = engine if engine is not None else get_engine()
    worker = worker or SyncWorker(
        engine,
        interval_seconds=settings.sync_interval_seconds,
        batch_size=settings.sync_batch_size,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Create tables on startup (idempotent)
        SQLModel.metadata.create_all(engine)
        if settings.sync_autostart:
            worker.start()
        yield
        worker.stop()

    app = FastAPI(
        title="Letter Sync API",
        description="Letter tracking with Google Sheets synchronization",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.engine = engine
    app.state.sync_worker = worker

    app.include_router(letters.router, prefix="/letters", tags=["letters"])
    app.include_router(sync_routes.router, prefix="/sync", tags=["sync"])

    return app


# Module-level app instance for uvicorn
app = create_app()
