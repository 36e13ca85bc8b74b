"""FastAPI application for CharaVault."""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from charavault import __version__
from charavault.api import card_routes, file_extra_info_routes, file_routes, project_routes, search_routes
from charavault.config import ConfigLoader, SystemConfig
from charavault.db import Database
from charavault.services.character_cards import CardFormatError, CardStructureError
from charavault.services.content_hash import ContentHasher
from charavault.services.directory_scanner import DirectoryScanner
from charavault.services.project_paths import PathOutsideRootError, ProjectPaths

logger = logging.getLogger(__name__)


def _error(status_code: int, detail: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"detail": detail})


def register_exception_handlers(app: FastAPI) -> None:
    """Map domain errors raised by services onto HTTP responses."""

    @app.exception_handler(CardFormatError)
    async def card_format_error(request: Request, exc: CardFormatError):
        logger.warning(f"Invalid card data on {request.url.path}: {exc}")
        return _error(422, str(exc))

    @app.exception_handler(CardStructureError)
    async def card_structure_error(request: Request, exc: CardStructureError):
        logger.warning(f"Malformed image on {request.url.path}: {exc}")
        return _error(400, str(exc))

    @app.exception_handler(PathOutsideRootError)
    async def path_outside_root(request: Request, exc: PathOutsideRootError):
        logger.warning(f"Rejected path on {request.url.path}: {exc}")
        return _error(400, "Invalid path")

    @app.exception_handler(FileNotFoundError)
    async def file_not_found(request: Request, exc: FileNotFoundError):
        return _error(404, str(exc))


def create_app(config: Optional[SystemConfig] = None) -> FastAPI:
    """
    Build the application.

    Args:
        config: System configuration; loaded from config/system.yaml when omitted
    """
    if config is None:
        config = ConfigLoader().load_system_config()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Startup and shutdown logic."""
        logger.info("Starting CharaVault...")
        config.paths.data.mkdir(parents=True, exist_ok=True)
        app.state.database.init()
        logger.info(f"Data root: {app.state.paths.data_root}")
        yield
        logger.info("Shutting down CharaVault...")
        app.state.database.dispose()

    app = FastAPI(
        title="CharaVault",
        description="Character card library and metadata service",
        version=__version__,
        lifespan=lifespan,
    )

    app.state.config = config
    app.state.database = Database(config.database)
    app.state.paths = ProjectPaths(config.paths.data)
    app.state.hasher = ContentHasher(max_workers=config.scan.max_workers)
    app.state.scanner = DirectoryScanner(
        include_hidden=config.scan.include_hidden,
        extensions=config.scan.image_extensions,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)

    @app.get("/api/health")
    async def health():
        """Health check endpoint."""
        return {"status": "ok", "version": __version__}

    app.include_router(project_routes.router)
    app.include_router(card_routes.router)
    app.include_router(file_extra_info_routes.router)
    app.include_router(search_routes.router)
    app.include_router(file_routes.router)

    return app
