from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .config import settings
from .database import init_db

from .api.locations import close_registry, router as locations_router
from .api.lists import router as lists_router


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    # Creates location_data + saved list tables (idempotent)
    init_db()
    yield
    # Pending debounced re-searches belong to this loop; stop them before it closes
    close_registry()


def create_app() -> FastAPI:
    app = FastAPI(
        title="Location Builder API",
        version=settings.app_version,
        lifespan=lifespan,
    )

    # --- CORS ---
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_allow_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # --- Health / meta ---
    @app.get("/health", tags=["meta"])
    def health() -> Dict[str, Any]:
        return {"ok": True, "env": settings.env}

    @app.get("/version", tags=["meta"])
    def version() -> Dict[str, Any]:
        return {"name": settings.app_name, "version": settings.app_version}

    # --- API routers ---
    app.include_router(locations_router)
    app.include_router(lists_router)

    return app


app = create_app()


def run() -> None:
    logging.basicConfig(level=getattr(logging, str(settings.log_level).upper(), logging.INFO))
    import uvicorn

    # reload should be True in local dev, False in prod.
    uvicorn.run(
        "location_builder.main:app",
        host=settings.host,
        port=int(settings.port),
        reload=bool(settings.reload) and not settings.is_prod,
    )
