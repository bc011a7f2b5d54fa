"""
REST API for the Chunk Server

Design Decision: API Framework
==============================

Options Considered:
1. FastAPI - Modern, fast, auto-docs, async support
2. Flask - Simple, widely used, but sync-focused
3. aiohttp - Async, but less features
4. Starlette - Lightweight, FastAPI is built on it

Decision: FastAPI
- Native async support (chunk reads use aiofiles)
- Automatic OpenAPI documentation
- Pydantic integration for the request envelope

This layer is transport only. It decodes the JSON envelope, hands a
ChunkRequest to the TransferEngine and maps the result to a status:

| Result                           | Status | Body           |
|----------------------------------|--------|----------------|
| ChunkResult / EndResult          | 200    | response JSON  |
| ErrorResult(PROTOCOL/VALIDATION) | 400    | error JSON     |
| NotFoundResult                   | 404    | empty          |
| ErrorResult(IO)                  | 500    | error JSON     |
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, StrictInt, StrictStr

from .. import __version__
from ..transfer.engine import TransferEngine
from ..transfer.protocol import (
    ErrorKind, ErrorResult, NotFoundResult, from_wire, to_wire,
)

logger = logging.getLogger(__name__)

DOWNLOAD_PATH = "/api/download"


# === Pydantic Models ===

class DownloadRequest(BaseModel):
    """Request for one chunk of a file."""
    type: StrictStr = ""
    filename: Optional[StrictStr] = None
    seq: StrictInt = 0
    data: Optional[str] = ""


class ChunkResponse(BaseModel):
    """Chunk, end-of-transfer or error envelope (OpenAPI docs only)."""
    type: str
    filename: str
    seq: int
    data: str
    sentBytes: int


# === API Creation ===

def create_app(engine: TransferEngine = None) -> FastAPI:
    """
    Create the FastAPI application.

    Args:
        engine: TransferEngine to serve from (default settings if None)

    Returns:
        FastAPI application
    """
    engine = engine or TransferEngine()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Handle startup and shutdown."""
        engine.store.ensure_root()
        logger.info(f"Serving {engine.store.root.resolve()} "
                    f"in {engine.chunk_size:,} byte chunks")
        yield
        logger.info("API server stopping...")

    app = FastAPI(
        title="Chunked Download API",
        description="Sequential, resumable, checksummed file downloads",
        version=__version__,
        lifespan=lifespan,
    )

    @app.exception_handler(RequestValidationError)
    async def invalid_body(request: Request, exc: RequestValidationError):
        """Answer unparseable bodies with the protocol's error envelope."""
        logger.warning(f"Malformed request body on {request.url.path}: {exc.errors()}")
        error = ErrorResult("Malformed request", ErrorKind.PROTOCOL)
        return JSONResponse(status_code=400, content=to_wire(error))

    # === Endpoints ===

    @app.get("/", tags=["General"])
    async def root():
        """API root - basic info."""
        return {
            "name": "Chunked Download Server",
            "version": __version__,
            "status": "running",
        }

    @app.post(DOWNLOAD_PATH, tags=["Download"], responses={
        200: {"model": ChunkResponse, "description": "Chunk or end-of-transfer"},
        400: {"model": ChunkResponse, "description": "Malformed request or unsafe filename"},
        404: {"description": "No such file (empty body)"},
        500: {"model": ChunkResponse, "description": "Read or checksum failure"},
    })
    async def download_chunk(request: DownloadRequest):
        """Fetch chunk `seq` of `filename`, or the End message once past the last chunk."""
        result = await engine.handle(from_wire(request.model_dump()))

        if isinstance(result, NotFoundResult):
            return Response(status_code=404)

        if isinstance(result, ErrorResult):
            status_code = 400 if result.is_client_error else 500
            return JSONResponse(status_code=status_code, content=to_wire(result))

        return JSONResponse(status_code=200, content=to_wire(result))

    return app


def create_app_from_config(config) -> FastAPI:
    """Build the engine described by a Config and wrap it in an app."""
    return create_app(TransferEngine(config.engine_config()))


async def run_api_server(app: FastAPI, host: str = "0.0.0.0", port: int = 8080,
                         log_level: str = "info"):
    """
    Run the API server.

    Args:
        app: Application from create_app()
        host: Host to bind to
        port: Port to listen on
    """
    import uvicorn

    config = uvicorn.Config(
        app,
        host=host,
        port=port,
        log_level=log_level,
    )
    server = uvicorn.Server(config)
    await server.serve()
