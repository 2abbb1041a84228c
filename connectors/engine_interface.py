from typing import Protocol

from box import Box
from pydantic import BaseModel, Field

from packager.graph import Definition


class SolveResult(BaseModel):
    """Reference to the state the engine produced for a solved graph."""
    ref: str = Field(..., min_length=1)


class EngineSessionProtocol(Protocol):
    """Interface Protocol for build engine session objects.
    To be subclassed by actual session implementations.
    """
    @property
    def engine_type(self) -> str: ...
    @property
    def is_alive(self) -> bool: ...
    def connect(self): ...
    def disconnect(self): ...


class BuildEngineClient(Protocol):
    """
    Protocol for a Build Engine client.
    The frontend only talks to the engine through these calls, so a fake
    implementation can stand in for the engine in tests.
    Failures of any call must be raised as packager.errors.EngineError.
    """

    def resolve_context_file(self, name: str) -> str:
        """
        Solve the sub-graph selecting the file ``name`` out of the caller's
        build context. Returns the reference of the resulting state.
        """
        ...

    def read_file(self, ref: str, path: str) -> bytes:
        """Read the bytes of ``path`` inside the state ``ref``."""
        ...

    def solve(self, definition: Definition) -> SolveResult: ...

    @property
    def info(self) -> Box:
        """
        Returns information about the client,
          such as type and engine URL, as a Box.
        """
        ...
