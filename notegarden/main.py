"""NoteGarden FastAPI backend: application entry point."""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from notegarden import config
from notegarden.routers.backlinks import backlinks_router
from notegarden.routers.garden import garden_router
from notegarden.routers.notes import notes_router

from notegarden.db import connection, migrations
from notegarden.observability import initialize as initialize_observability, shutdown as shutdown_observability

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("notegarden")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup / shutdown lifecycle."""
    logger.info("NoteGarden backend starting up")
    initialize_observability(app)

    # 1. Initialize DB connection
    db = await connection.get_connection()

    # 2. Run migrations
    await migrations.run_migrations(db)

    yield

    logger.info("NoteGarden backend shutting down")
    shutdown_observability(app)
    await connection.close_connection()


app = FastAPI(
    title="NoteGarden API",
    description="Notes with [[references]] and the backlink graph derived from them",
    version="0.1.0",
    lifespan=lifespan,
)

# CORS: allow the frontend dev server
app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        config.FRONTEND_ORIGIN,
        "http://localhost:5173",
        "http://127.0.0.1:5173",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Register routers
app.include_router(notes_router)
app.include_router(backlinks_router)
app.include_router(garden_router)


@app.get("/api/health")
def health():
    """Health check endpoint."""
    return {
        "status": "ok",
        "db": "connected" if connection._connection else "disconnected",
    }


def run() -> None:
    import uvicorn

    uvicorn.run("notegarden.main:app", host=config.HOST, port=config.PORT)


if __name__ == "__main__":
    run()
