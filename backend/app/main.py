"""
LaunchNet Backend - FastAPI Application

Entry point for the gateway API server.
"""

import asyncio
import logging
import sys
from contextlib import asynccontextmanager, suppress

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from backend.app.config import settings
from backend.app.database import AsyncSessionLocal, init_db
from backend.app.errors import GatewayError
from backend.app.gateway.sweeper import run_sweeper
from backend.app.api import gateway, commands, telemetry

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize database and start the timeout sweeper."""
    await init_db()
    sweeper = None
    if settings.timeout_sweep_interval > 0:
        sweeper = asyncio.create_task(run_sweeper(AsyncSessionLocal))
    yield
    if sweeper is not None:
        sweeper.cancel()
        with suppress(asyncio.CancelledError):
            await sweeper


app = FastAPI(
    title="LaunchNet API",
    description="Field launch unit gateway and command dispatch",
    version="0.3.0",
    lifespan=lifespan
)


def client_host(request: Request) -> str:
    return request.client.host if request.client else "unknown"


@app.exception_handler(GatewayError)
async def gateway_error_handler(request: Request, exc: GatewayError):
    # Every rejection is logged: auth failures are a security signal
    log = logger.error if exc.status_code >= 500 else logger.warning
    log(
        f"Rejected {request.method} {request.url.path} from {client_host(request)}: "
        f"{exc.kind} {exc.context}"
    )
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.error, "message": exc.message},
    )


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    errors = [
        {"loc": list(e.get("loc", ())), "msg": e.get("msg"), "type": e.get("type")}
        for e in exc.errors()
    ]
    logger.warning(f"Invalid input on {request.method} {request.url.path} from {client_host(request)}: {errors}")
    return JSONResponse(status_code=400, content={"error": "Invalid input", "details": errors})


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.method} {request.url.path}", exc_info=exc)
    return JSONResponse(status_code=500, content={"error": "Internal server error"})


# Include routers
app.include_router(gateway.router, prefix="/api/v1")
app.include_router(commands.router, prefix="/api/v1")
app.include_router(telemetry.router, prefix="/api/v1")


@app.get("/health")
def health():
    """Health check endpoint."""
    return {"status": "healthy"}
