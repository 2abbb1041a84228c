"""
mock_engine.daemon
------------------
This module implements a mock build engine REST API using FastAPI.
It solves build graphs into in-memory filesystem states (refs), serves
files out of them, and resolves local sources against build contexts
registered by name. Intended for local development, testing,
and demonstration purposes.

It cannot pull images: graphs rooted on an image are rejected.
"""
import fnmatch
import json
import os
import posixpath
import socket
import sys
from pathlib import Path

import typer
import uvicorn
from fastapi import FastAPI, HTTPException
from fastapi.responses import Response
from pydantic import BaseModel, Field

from common.app_setup import setup_logging
from packager.graph import CopyFile, Definition, ImageSource, LocalSource, MakeFile, ScratchSource


class SolveRequest(BaseModel):
    definition: Definition


class SolveResponse(BaseModel):
    ref: str


class ContextModel(BaseModel):
    path: str = Field(..., min_length=1)


# Set up logging for the daemon
logger = setup_logging(app_name="pun-mock-engine", daemon=True)

# In-memory store: ref -> {path relative to /: content}
mock_refs: dict[str, dict[str, bytes]] = {}
# Registered build contexts: name -> directory
mock_contexts: dict[str, Path] = {}

app = FastAPI()


def generate_ref_id() -> str:
    """Generate ref1, ref2, ... skipping the ones in use."""
    i = 1
    while True:
        candidate = f"ref{i}"
        if candidate not in mock_refs:
            return candidate
        i += 1


def get_server():
    # Helper to get the running server instance
    return getattr(app.state, "uvicorn_server", None)


def _normalize(path: str) -> str:
    """Path inside a state, without leading slash. ".." never goes above the root."""
    normalized = posixpath.normpath("/" + path.lstrip("/")).lstrip("/")
    return "" if normalized == "." else normalized


def _context_dir(name: str) -> Path:
    directory = mock_contexts.get(name)
    if directory is None:
        raise HTTPException(status_code=400, detail=f"Unknown build context {name!r}")
    return directory


def _context_files(source: LocalSource) -> dict[str, bytes]:
    directory = _context_dir(source.name)
    files = {}
    for root, _, names in os.walk(directory):
        for filename in names:
            full = Path(root) / filename
            rel = full.relative_to(directory).as_posix()
            if source.include_patterns and not any(fnmatch.fnmatch(rel, p) for p in source.include_patterns):
                continue
            files[rel] = full.read_bytes()
    return files


def _is_dir(state: dict[str, bytes], path: str) -> bool:
    return path == "" or any(key.startswith(path + "/") for key in state)


def _copy(state: dict[str, bytes], op: CopyFile) -> None:
    directory = _context_dir(op.source.name).resolve()
    src = (directory / op.src.lstrip("/")).resolve()
    if directory != src and directory not in src.parents:
        raise HTTPException(status_code=400, detail=f"Copy source {op.src!r} is outside the build context")
    if not src.exists():
        raise HTTPException(status_code=400, detail=f"Copy source {op.src!r} not found in context {op.source.name!r}")

    dest = _normalize(op.dest)
    parent = posixpath.dirname(dest)
    if not op.create_dest_path and not _is_dir(state, parent):
        raise HTTPException(status_code=400, detail=f"Destination directory /{parent} does not exist")

    if src.is_dir():
        for root, _, names in os.walk(src):
            for filename in names:
                full = Path(root) / filename
                state[posixpath.join(dest, full.relative_to(src).as_posix()).lstrip("/")] = full.read_bytes()
        return
    if op.dest.endswith("/") or _is_dir(state, dest):
        dest = posixpath.join(dest, src.name).lstrip("/")
    state[dest] = src.read_bytes()


def materialize(definition: Definition) -> dict[str, bytes]:
    """Run the operations of a graph into a filesystem state."""
    root = definition.root
    if isinstance(root, ScratchSource):
        state: dict[str, bytes] = {}
    elif isinstance(root, LocalSource):
        state = _context_files(root)
    elif isinstance(root, ImageSource):
        raise HTTPException(status_code=501, detail=f"Cannot pull image {root.ref!r}: mock engine has no registry access")
    else:
        raise HTTPException(status_code=400, detail=f"Unsupported root operation {root.op!r}")

    for op in definition.file_ops:
        if isinstance(op, CopyFile):
            _copy(state, op)
        elif isinstance(op, MakeFile):
            state[_normalize(op.path)] = op.data.encode()
    return state


@app.post("/shutdown")
def shutdown():
    """Shutdown the server gracefully."""
    logger.info("Shutdown requested via /shutdown endpoint.")
    server = get_server()
    if server:
        server.should_exit = True
    return {"message": "Server shutting down"}


@app.get("/status")
def status():
    """Health/status endpoint for the mock engine daemon."""
    server = get_server()
    state = "shutting_down" if server and server.should_exit else "ok"
    return {"status": state, "refs": len(mock_refs)}


@app.put("/contexts/{name}")
def register_context(name: str, context: ContextModel):
    """Register a local directory as the build context ``name``."""
    directory = Path(context.path)
    if not directory.is_dir():
        logger.warning(f"Context directory not found: {context.path!r}")
        raise HTTPException(status_code=422, detail=f"{context.path!r} is not a directory")
    mock_contexts[name] = directory
    logger.info(f"Registered context {name!r} -> {directory}")
    return {"name": name, "path": str(directory)}


@app.get("/contexts")
def list_contexts():
    return {name: str(path) for name, path in mock_contexts.items()}


@app.post("/solve", response_model=SolveResponse, status_code=201)
def solve(request: SolveRequest) -> SolveResponse:
    """Solve a build graph into a new ref."""
    state = materialize(request.definition)
    ref = generate_ref_id()
    mock_refs[ref] = state
    logger.info(f"Solved {len(request.definition.ops)} operations into {ref} ({len(state)} files)")
    return SolveResponse(ref=ref)


@app.get("/refs/{ref}")
def get_ref(ref: str):
    """List the files of a solved state."""
    state = mock_refs.get(ref)
    if state is None:
        raise HTTPException(status_code=404, detail="Ref not found")
    return {"ref": ref, "files": sorted("/" + path for path in state)}


@app.get("/refs/{ref}/file")
def read_file(ref: str, path: str):
    """Return the raw content of ``path`` in a solved state."""
    state = mock_refs.get(ref)
    if state is None:
        raise HTTPException(status_code=404, detail="Ref not found")
    content = state.get(_normalize(path))
    if content is None:
        logger.warning(f"File {path!r} not found in {ref}")
        raise HTTPException(status_code=404, detail=f"File {path!r} not found in {ref}")
    return Response(content=content, media_type="application/octet-stream")


@app.delete("/refs/{ref}", status_code=204)
def delete_ref(ref: str):
    if mock_refs.pop(ref, None) is None:
        raise HTTPException(status_code=404, detail="Ref not found")


app_cli = typer.Typer()


@app_cli.command()
def run(host: str = typer.Option("127.0.0.1", help="Address to listen on"),
        port: int = typer.Option(0, help="Port to listen on, 0 picks a free one"),
        context: list[str] = typer.Option([], "--context", help="Build context as name=directory, repeatable")):
    """Serve the mock engine, printing the address it listens on as a JSON line."""
    for item in context:
        name, sep, directory = item.partition("=")
        if not sep or not Path(directory).is_dir():
            logger.error(f"Invalid context {item!r}, expected name=directory")
            sys.exit(2)
        mock_contexts[name] = Path(directory)

    if not port:
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
            s.bind((host, 0))
            port = s.getsockname()[1]
    print(json.dumps({"event": "listening", "url": f"http://{host}:{port}",
                      "contexts": sorted(mock_contexts)}), flush=True)
    server = uvicorn.Server(uvicorn.Config(app, host=host, port=port, log_level="info"))
    app.state.uvicorn_server = server
    server.run()
    logger.info(f"Mock engine on {host}:{port} stopped")


if __name__ == "__main__":
    app_cli()
