"""
FastAPI backend server for the party coin ledger.

This module builds and configures the FastAPI application. It sets up:
- Logging for the whole process (level and format from config)
- CORS middleware for browser-based game front-ends
- The ledger store, opened and verified by the application lifespan
- Exception handlers mapping ledger and storage errors to ``{"error": ...}``
- All API route endpoints

The server listens on port 5000 by default and binds to all interfaces so game
clients on other machines can reach it.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from coin_server import __version__
from coin_server import config as config_module
from coin_server.api.routes.register import register_routes
from coin_server.db.errors import DatabaseError, TransactionConflictError
from coin_server.db.store import LedgerStore
from coin_server.ledger import InsufficientFundsError, InvalidInputError, verify_all_ledgers

logger = logging.getLogger(__name__)

# ============================================================================
# LOGGING
# ============================================================================

_LOG_FORMATS = {
    "simple": "%(levelname)s %(message)s",
    "detailed": "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
}


def json_log_formatter() -> structlog.stdlib.ProcessorFormatter:
    """Render stdlib log records as one JSON object per line."""
    return structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=[
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.format_exc_info,
        ],
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            structlog.processors.JSONRenderer(),
        ],
    )


def configure_logging(level: str | None = None, fmt: str | None = None) -> None:
    """
    Configure root logging from arguments or ``config.logging``.

    Args:
        level: Level name such as ``"DEBUG"``; defaults to config.
        fmt: ``"simple"``, ``"detailed"`` or ``"json"``; defaults to config.
    """
    cfg = config_module.config
    level_name = (level or cfg.logging.level).upper()
    format_name = fmt or cfg.logging.format

    handler = logging.StreamHandler()
    if format_name == "json":
        handler.setFormatter(json_log_formatter())
    else:
        handler.setFormatter(
            logging.Formatter(
                _LOG_FORMATS.get(format_name, _LOG_FORMATS["detailed"]),
                datefmt="%Y-%m-%d %H:%M:%S",
            )
        )
    logging.basicConfig(level=level_name, handlers=[handler], force=True)


# ============================================================================
# LIFESPAN
# ============================================================================


def run_startup_verification(store: LedgerStore) -> int:
    """
    Compare every stored balance with its event log and log mismatches.

    Mismatches are reported at CRITICAL but never stop the server.

    Returns:
        Number of mismatching players.
    """
    try:
        mismatches = verify_all_ledgers(store)
    except DatabaseError:
        logger.exception("Ledger verification could not run")
        return 0
    for result in mismatches:
        logger.critical("Ledger mismatch for %s: %s", result.phone, result.error_detail)
    if not mismatches:
        logger.info("Ledger verification passed")
    return len(mismatches)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Open the ledger store on startup and close it on shutdown.

    A store that was already open when the app was built belongs to the
    caller and is left open.
    """
    store: LedgerStore = app.state.store
    owns_store = not store.is_open
    if owns_store:
        store.open()
    run_startup_verification(store)
    try:
        yield
    finally:
        if owns_store:
            store.close()


# ============================================================================
# EXCEPTION HANDLERS
# ============================================================================


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


async def invalid_input_handler(request: Request, exc: InvalidInputError) -> JSONResponse:
    return _error(400, str(exc))


async def insufficient_funds_handler(
    request: Request, exc: InsufficientFundsError
) -> JSONResponse:
    logger.info(
        "Spend rejected for %s: balance=%d requested=%d",
        exc.phone,
        exc.balance,
        exc.requested,
    )
    return _error(400, "insufficient funds")


async def conflict_handler(request: Request, exc: TransactionConflictError) -> JSONResponse:
    logger.error("%s %s: %s (attempts=%d)", request.method, request.url.path, exc, exc.attempts)
    return _error(503, "ledger busy, retry")


async def database_error_handler(request: Request, exc: DatabaseError) -> JSONResponse:
    logger.error("%s %s: storage failure: %s", request.method, request.url.path, exc)
    return _error(500, "storage unavailable")


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": str(exc.detail)},
        headers=getattr(exc, "headers", None),
    )


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    if errors:
        first = errors[0]
        location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        message = first.get("msg", "invalid value")
        detail = f"{location}: {message}" if location else message
    else:
        detail = "invalid request"
    return _error(400, detail)


# ============================================================================
# APPLICATION FACTORY
# ============================================================================


def create_app(store: LedgerStore | None = None, *, shared_secret: str | None = None) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        store: Ledger store to serve. Defaults to one built from config. An
            already-open store is used as is and not closed on shutdown.
        shared_secret: Gate secret; defaults to ``config.security.shared_secret``.
            An empty string disables the gate.

    Returns:
        Configured FastAPI app with routes and exception handlers registered.
    """
    cfg = config_module.config
    docs_enabled = cfg.docs_should_be_enabled

    app = FastAPI(
        title="Party Coin Server",
        version=__version__,
        lifespan=lifespan,
        docs_url="/docs" if docs_enabled else None,
        redoc_url="/redoc" if docs_enabled else None,
        openapi_url="/openapi.json" if docs_enabled else None,
    )
    app.state.store = store if store is not None else LedgerStore.from_config(cfg)
    app.state.shared_secret = (
        shared_secret if shared_secret is not None else cfg.security.shared_secret
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=cfg.security.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(InvalidInputError, invalid_input_handler)
    app.add_exception_handler(InsufficientFundsError, insufficient_funds_handler)
    app.add_exception_handler(TransactionConflictError, conflict_handler)
    app.add_exception_handler(DatabaseError, database_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)

    register_routes(app)
    return app


app = create_app()


# ============================================================================
# SERVER STARTUP
# ============================================================================


def start_server(host: str | None = None, port: int | None = None) -> None:
    """Run the API under uvicorn using config defaults for unset arguments."""
    import uvicorn

    cfg = config_module.config
    configure_logging()
    bind_host = host or cfg.server.host
    bind_port = port or cfg.server.port
    logger.info("Starting Party Coin Server %s on %s:%d", __version__, bind_host, bind_port)
    uvicorn.run(create_app(), host=bind_host, port=bind_port, log_level=cfg.logging.level.lower())


if __name__ == "__main__":
    start_server()
