# netbridge/server/api.py
# FastAPI command surface for the desktop shell.

from __future__ import annotations

import logging
from typing import Optional

import uvicorn
from fastapi import APIRouter, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from netbridge import __version__
from netbridge.base.config import get_config, setup_logging
from netbridge.base.exceptions import BridgeError
from netbridge.files.reclaimer import reclaim_async
from netbridge.server.routers import commands
from netbridge.server.state import get_state
from netbridge.utils.async_helpers import run_in_background

logger = logging.getLogger(__name__)


app = FastAPI(
    title="netbridge",
    description="Outbound networking and local file exposure for a sandboxed desktop frontend",
    version=__version__,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=list(get_config().allowed_origins),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

v1_router = APIRouter(
    prefix="/v1",
    responses={404: {"description": "Not found"}},
)
v1_router.include_router(commands.router)


@app.exception_handler(BridgeError)
async def bridge_error_handler(request: Request, exc: BridgeError):
    """Errors cross the boundary as descriptive strings; the frontend displays them."""
    logger.error(f"[API] {request.url.path}: {type(exc).__name__}: {exc.message}")
    return JSONResponse(status_code=exc.http_status, content=exc.to_dict())


@app.on_event("startup")
async def startup_event():
    config = get_config()
    setup_logging(config)
    logger.info(f"[API] netbridge {__version__} starting on {config.api_host}:{config.api_port}")

    if config.reclaim_on_startup:
        state = get_state()
        state.reclaim_task = run_in_background(
            reclaim_async(config.storage.scratch_dir),
            name="scratch_reclaim",
        )


@app.on_event("shutdown")
async def shutdown_event():
    logger.info("[API] Shutting down...")
    await get_state().close_file_servers()


app.include_router(v1_router)


def serve(port: Optional[int] = None, host: Optional[str] = None):
    config = get_config()
    uvicorn.run(app, host=host or config.api_host, port=port or config.api_port, log_level="info")


if __name__ == "__main__":
    serve()
