import httpx
import pytest
from fastapi.testclient import TestClient

from connectors import connections_manager
from connectors.engine_connector import EngineSession, HttpEngineClient
from mock_engine import daemon
from packager.compiler import compile_descriptor
from packager.errors import EngineError
from packager.extractor import extract_bytes
from packager.graph import Definition, ImageSource, Platform

CONTAINERFILE = b'FROM scratch\nCOPY a.bin /bin/a.bin\nLABEL k="v"\n'


@pytest.fixture
def engine(tmp_path):
    """Mock engine with a build context named 'context' holding a Containerfile and a binary."""
    daemon.mock_refs.clear()
    daemon.mock_contexts.clear()
    (tmp_path / "Containerfile").write_bytes(CONTAINERFILE)
    (tmp_path / "a.bin").write_bytes(b"\x7fELF unikernel")
    daemon.mock_contexts["context"] = tmp_path
    with TestClient(daemon.app) as client:
        yield client
    daemon.mock_refs.clear()
    daemon.mock_contexts.clear()


@pytest.fixture
def connector(engine):
    return HttpEngineClient(EngineSession("http://testserver", client=engine))


def test_session_is_alive(engine):
    session = EngineSession("http://testserver", client=engine)
    assert session.is_alive
    session.connect()


def test_resolve_and_read_context_file(connector):
    ref = connector.resolve_context_file("Containerfile")
    assert ref.startswith("ref")
    assert connector.read_file(ref, "Containerfile") == CONTAINERFILE


def test_resolved_state_only_holds_the_file(connector, engine):
    ref = connector.resolve_context_file("Containerfile")
    r = engine.get(f"/refs/{ref}")
    assert r.json()["files"] == ["/Containerfile"]


def test_read_missing_file(connector):
    ref = connector.resolve_context_file("Containerfile")
    with pytest.raises(EngineError) as excinfo:
        connector.read_file(ref, "a.bin")
    assert excinfo.value.status_code == 404


def test_read_unknown_ref(connector):
    with pytest.raises(EngineError) as excinfo:
        connector.read_file("ref999", "Containerfile")
    assert excinfo.value.status_code == 404


def test_solve_compiled_graph(connector, engine):
    definition = compile_descriptor(extract_bytes(CONTAINERFILE))
    result = connector.solve(definition)
    files = engine.get(f"/refs/{result.ref}").json()["files"]
    assert files == ["/bin/a.bin", "/urunc.json"]
    assert connector.read_file(result.ref, "/bin/a.bin") == b"\x7fELF unikernel"
    assert connector.read_file(result.ref, "/urunc.json") == b'{"k":"dg=="}'


def test_solve_rejected_by_engine(connector):
    definition = Definition(platform=Platform(os="linux", architecture="amd64"),
                            ops=[ImageSource(ref="unikraft.org/nginx:1.15")])
    with pytest.raises(EngineError) as excinfo:
        connector.solve(definition)
    assert excinfo.value.status_code == 501
    assert "nginx" in str(excinfo.value)


def test_transport_error_becomes_engine_error():
    def refuse(request):
        raise httpx.ConnectError("connection refused", request=request)

    client = httpx.Client(base_url="http://engine", transport=httpx.MockTransport(refuse))
    session = EngineSession("http://engine", client=client)
    assert not session.is_alive
    with pytest.raises(ConnectionError):
        session.connect()
    with pytest.raises(EngineError) as excinfo:
        HttpEngineClient(session).resolve_context_file("Containerfile")
    assert excinfo.value.status_code is None


def test_info(connector):
    info = connector.info
    assert info.type == "rest"
    assert info.context == "context"


def test_sessions_are_reused():
    connections_manager.close_all()
    try:
        first = connections_manager.get_session("rest", "http://engine:8000")
        assert connections_manager.get_session("rest", "http://engine:8000/") is first
        assert connections_manager.get_session("rest", "http://other:8000") is not first
        client = connections_manager.get_client("http://engine:8000")
        assert client.session is first
    finally:
        connections_manager.close_all()


def test_unsupported_engine_type():
    with pytest.raises(ValueError):
        connections_manager.get_session("grpc", "http://engine:8000")


def mock_engine_client(status_code, **reply):
    """Client on an engine that answers every request with the same reply."""
    def answer(request):
        return httpx.Response(status_code, **reply)

    client = httpx.Client(base_url="http://engine", transport=httpx.MockTransport(answer))
    return HttpEngineClient(EngineSession("http://engine", client=client))


@pytest.mark.parametrize("status_code, reply", [
    (200, {"text": "<html>proxy</html>"}),
    (201, {"json": {"nope": 1}}),
    (201, {"json": ["ref1"]}),
])
def test_invalid_solve_reply(status_code, reply):
    connector = mock_engine_client(status_code, **reply)
    with pytest.raises(EngineError) as excinfo:
        connector.resolve_context_file("Containerfile")
    assert "invalid reply" in excinfo.value.message
    assert excinfo.value.status_code == status_code


def test_open_client_is_not_shared():
    connections_manager.close_all()
    clients = [connections_manager.open_client(f"http://engine-{i}:1") for i in range(50)]
    assert connections_manager._active_sessions == {}
    assert len({id(c.session) for c in clients}) == 50
    for c in clients:
        c.session.disconnect()
