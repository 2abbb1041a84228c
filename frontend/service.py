"""
frontend.service
----------------
Service mode: the packager as a frontend of a remote build engine.
The engine posts build requests to /build; each request is fetched,
compiled and solved against the engine named in the request (or the
configured one), and the annotated result is returned.
"""
import logging
from typing import Callable, Optional

from fastapi import Depends, FastAPI, HTTPException
from pydantic import BaseModel, Field

from connectors import connections_manager
from connectors.engine_connector import HttpEngineClient
from connectors.engine_interface import BuildEngineClient
from frontend.handler import BuildResult, build
from packager.config import PunConfig, load_config
from packager.errors import (
    CompileError,
    FetchError,
    InstructionParseError,
    MissingOption,
    MultiStageUnsupported,
    PunError,
    SolveError,
)

logger = logging.getLogger(__name__)


class BuildRequest(BaseModel):
    options: dict[str, str] = Field(default_factory=dict)
    gateway: str | None = Field(None, description="URL of the build engine serving this request")


# error class -> HTTP status
ERROR_STATUS: list[tuple[type[PunError], int]] = [
    (MissingOption, 400),
    (InstructionParseError, 422),
    (MultiStageUnsupported, 422),
    (FetchError, 502),
    (SolveError, 502),
    (CompileError, 500),
]

app = FastAPI(title="pun")

EngineClientFactory = Callable[[Optional[str]], BuildEngineClient]


def get_config() -> PunConfig:
    config = getattr(app.state, "config", None)
    if config is None:
        config = app.state.config = load_config()
    return config


def get_client_factory(config: PunConfig = Depends(get_config)):
    """Clients for the engine named by a request, or the configured one.

    The configured engine keeps a shared session. Any other engine gets a
    session that is closed once the request is answered.
    """
    opened: list[HttpEngineClient] = []

    def factory(gateway: str | None) -> BuildEngineClient:
        if not gateway or gateway.rstrip("/") == config.engine_url.rstrip("/"):
            return connections_manager.get_client(config.engine_url, config)
        client = connections_manager.open_client(gateway, config)
        opened.append(client)
        return client

    try:
        yield factory
    finally:
        for client in opened:
            client.session.disconnect()


@app.get("/status")
def status():
    """Health/status endpoint of the frontend."""
    return {"status": "ok"}


@app.post("/build", response_model=BuildResult)
def build_endpoint(build_request: BuildRequest,
                   client_factory: EngineClientFactory = Depends(get_client_factory),
                   config: PunConfig = Depends(get_config)) -> BuildResult:
    logger.info(f"Build requested with options {build_request.options}")
    try:
        return build(build_request.options, client_factory(build_request.gateway), config)
    except PunError as e:
        status_code = next((code for cls, code in ERROR_STATUS if isinstance(e, cls)), 500)
        logger.error(f"Build failed: {type(e).__name__}: {e}")
        raise HTTPException(status_code=status_code, detail=f"{type(e).__name__}: {e}") from e
