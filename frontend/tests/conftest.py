import pytest
from box import Box

from connectors.engine_interface import BuildEngineClient, SolveResult
from packager.errors import EngineError
from packager.graph import Definition


class FakeEngineClient(BuildEngineClient):
    """In-process stand-in for the build engine. Records every call."""

    def __init__(self, files=None, fail=None):
        self.files = dict(files or {})
        self.fail = set(fail or ())
        self.calls = []
        self.solved: list[Definition] = []

    def resolve_context_file(self, name):
        self.calls.append(("resolve", name))
        if "resolve" in self.fail:
            raise EngineError("context not available", status_code=400)
        return "ctx-ref"

    def read_file(self, ref, path):
        self.calls.append(("read", ref, path))
        if "read" in self.fail or path not in self.files:
            raise EngineError(f"{path} not found", status_code=404)
        return self.files[path]

    def solve(self, definition):
        self.calls.append(("solve",))
        if "solve" in self.fail:
            raise EngineError("failed to pull base", status_code=501)
        self.solved.append(definition)
        return SolveResult(ref="build-ref")

    @property
    def info(self):
        return Box({"type": "fake"})


@pytest.fixture
def fake_engine():
    return FakeEngineClient(files={
        "Containerfile": b'FROM scratch\nCOPY a.bin /bin/a.bin\nLABEL k="v"\n',
    })


@pytest.fixture
def engine_factory():
    return FakeEngineClient
