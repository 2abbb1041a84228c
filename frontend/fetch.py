"""Fetch one file of the caller's build context through the build engine."""

import logging

from connectors.engine_interface import BuildEngineClient
from packager.errors import EngineError, FetchError

logger = logging.getLogger(__name__)


def fetch_context_file(client: BuildEngineClient, name: str) -> bytes:
    """Two round-trips: solve the sub-graph selecting ``name``, then read it back.

    Raises FetchError naming the phase that failed.
    """
    try:
        ref = client.resolve_context_file(name)
    except EngineError as e:
        raise FetchError("resolve", name, e) from e
    logger.debug(f"{name} resolved to {ref}")

    try:
        data = client.read_file(ref, name)
    except EngineError as e:
        raise FetchError("read", name, e) from e
    logger.info(f"Fetched {name} ({len(data)} bytes)")
    return data
