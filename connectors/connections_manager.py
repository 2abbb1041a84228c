# connections_manager.py
"""
connections_manager.py
----------------------
Manages build engine sessions

Holds in-memory sessions to build engines, one per engine URL, and hands
out clients bound to them. Only the HTTP transport is reused: every build
request still creates its own client, descriptor and graph. Engines named
by a single request get an unshared session from open_client instead.
"""

import threading

from connectors.engine_connector import EngineSession, HttpEngineClient
from connectors.engine_interface import EngineSessionProtocol
from packager.config import PunConfig

######################### Sessions #########################

# key: (engine_type, host_URL)
_active_sessions: dict[tuple[str, str], EngineSessionProtocol] = {}
_lock = threading.Lock()


def get_session(engine_type: str, host_URL: str, token: str | None = None) -> EngineSessionProtocol:
    """
    Get or create a build engine session for the given parameters.
    Reuses existing sessions if one matches the (engine_type, hostURL) pair.
    """
    key = (engine_type, host_URL.rstrip("/"))
    with _lock:
        if key in _active_sessions:
            return _active_sessions[key]

        if engine_type == "rest":
            session = EngineSession(host_URL, token)
        # Add other engine types here as needed
        else:
            raise ValueError(f"Unsupported engine type: {engine_type}")

        _active_sessions[key] = session
        return session


def get_client(host_URL: str, config: PunConfig | None = None, token: str | None = None) -> HttpEngineClient:
    session = get_session("rest", host_URL, token)
    return HttpEngineClient(session, config)  # type: ignore[arg-type]


def open_client(host_URL: str, config: PunConfig | None = None, token: str | None = None) -> HttpEngineClient:
    """
    Client on a new session that is not kept in the session map.
    The caller disconnects its session when done with it.
    """
    return HttpEngineClient(EngineSession(host_URL, token), config)


def close_all():
    """Disconnect and forget every session."""
    with _lock:
        for session in _active_sessions.values():
            session.disconnect()
        _active_sessions.clear()
