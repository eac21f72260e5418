"""FastAPI application for the pool engine."""

import logging
import os

import structlog
import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from equilibrium import __version__
from equilibrium.api.endpoints import router
from equilibrium.custody import LedgerError
from equilibrium.errors import EquilibriumError

logger = structlog.get_logger()

# Configuration from environment variables with sensible defaults
HOST = os.environ.get("EQUILIBRIUM_HOST", "0.0.0.0")
PORT = int(os.environ.get("EQUILIBRIUM_PORT", "8000"))
DEBUG = os.environ.get("EQUILIBRIUM_DEBUG", "false").lower() in ("true", "1", "yes")

# Maximum request body size (1 MB)
MAX_REQUEST_SIZE = 1024 * 1024

app = FastAPI(
    title="Equilibrium",
    description="StableSwap pricing and accounting engine for Seed and Growth pools",
    version=__version__,
)


@app.middleware("http")
async def limit_request_size(request: Request, call_next):  # type: ignore[no-untyped-def]
    """Reject requests with body larger than MAX_REQUEST_SIZE."""
    content_length = request.headers.get("content-length")
    if content_length and int(content_length) > MAX_REQUEST_SIZE:
        return JSONResponse(status_code=413, content={"detail": "Request too large"})
    return await call_next(request)


@app.exception_handler(EquilibriumError)
async def handle_engine_error(request: Request, exc: EquilibriumError) -> JSONResponse:
    """Report a rejected instruction with its stable error code."""
    return JSONResponse(status_code=400, content={"error": exc.code.value, "detail": exc.message})


@app.exception_handler(LedgerError)
async def handle_ledger_error(request: Request, exc: LedgerError) -> JSONResponse:
    return JSONResponse(status_code=409, content={"error": "LedgerError", "detail": str(exc)})


app.include_router(router)


@app.get("/health")
async def health() -> dict[str, object]:
    """Health check endpoint."""
    return {"status": "ok", "version": __version__}


def configure_logging(debug: bool = DEBUG) -> None:
    """Configure structlog for the service."""
    log_level = logging.DEBUG if debug else logging.INFO
    structlog.configure(
        processors=[
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
    )


def run() -> None:
    """Run the pool API server.

    Configuration via environment variables:
    - EQUILIBRIUM_HOST: Host to bind to (default: 0.0.0.0)
    - EQUILIBRIUM_PORT: Port to bind to (default: 8000)
    - EQUILIBRIUM_DEBUG: Enable debug logging and reload mode (default: false)
    """
    configure_logging()
    logger.info("starting_server", host=HOST, port=PORT, debug=DEBUG)
    uvicorn.run(
        "equilibrium.api.main:app",
        host=HOST,
        port=PORT,
        reload=DEBUG,
    )


if __name__ == "__main__":
    run()
