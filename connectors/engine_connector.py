import logging

import httpx
from box import Box
from pydantic import ValidationError

from connectors.engine_interface import BuildEngineClient, EngineSessionProtocol, SolveResult
from packager.compiler import context_file_graph
from packager.config import PunConfig
from packager.errors import EngineError
from packager.graph import Definition

logger = logging.getLogger(__name__)


##### Sessions #####
class EngineSession(EngineSessionProtocol):
    """
    A build engine session.
    Uses REST API.

    Args:
        host_URL (str): The base URL of the engine.
            Must include scheme (http:// or https://) and optionally port.
            Examples: "http://localhost:8000", "https://engine.example.com"
        token (str): Optional bearer token for authentication.
        client (httpx.Client): Optional preconfigured client. When given, its
            base_url is used and host_URL is only informative.
        timeout (float): Timeout of every request, in seconds.
    """
    def __init__(self, host_URL: str, token: str | None = None, client: httpx.Client | None = None, timeout: float = 60.0):
        self.base_URL = host_URL.rstrip("/")
        headers = {"Authorization": f"Bearer {token}"} if token else {}
        self._client = client or httpx.Client(base_url=self.base_URL, headers=headers, timeout=timeout)

    def request(self, method: str, endpoint: str, **kwargs) -> httpx.Response:
        """
        Make an HTTP request to the engine.
        raise_for_status() is called on the response.

        Args:
            method (str): The HTTP method (GET, POST, PUT, DELETE).
            endpoint (str): The API endpoint (path) to call.
            **kwargs: Additional arguments to pass to httpx request.
            example: session.request("GET", "/refs/ref1/file", params={"path": "Containerfile"})

        Returns:
            httpx.Response: The HTTP response object.
        """
        response = self._client.request(method, f"/{endpoint.lstrip('/')}", **kwargs)
        response.raise_for_status()
        return response

    @property
    def engine_type(self) -> str:
        return "rest"

    @property
    def is_alive(self) -> bool:
        """Check if the session is alive by making a test request to the engine."""
        try:
            resp = self.request("GET", "/status", timeout=2)
            return resp.status_code == 200
        except httpx.HTTPError:
            return False

    def connect(self):
        """Establish the session. Only checks the engine answers."""
        if not self.is_alive:
            raise ConnectionError(f"Cannot connect to build engine at {self.base_URL}")

    def disconnect(self):
        self._client.close()


##### Clients #####

class HttpEngineClient(BuildEngineClient):
    """Build engine client over the engine REST API.

    Every httpx error is raised as EngineError, with the HTTP status when
    the engine answered.
    """

    def __init__(self, session: EngineSession, config: PunConfig | None = None):
        self.session: EngineSession = session
        self.config = config or PunConfig()

    def _call(self, method: str, endpoint: str, **kwargs) -> httpx.Response:
        try:
            return self.session.request(method, endpoint, **kwargs)
        except httpx.HTTPStatusError as e:
            detail = _error_detail(e.response)
            logger.error(f"{method} {endpoint} failed: {e.response.status_code} {detail}")
            raise EngineError(f"{method} {endpoint}: {e.response.status_code} {detail}", status_code=e.response.status_code) from e
        except httpx.HTTPError as e:
            logger.error(f"{method} {endpoint} failed: {e}")
            raise EngineError(f"{method} {endpoint}: {e}") from e

    def solve(self, definition: Definition) -> SolveResult:
        r = self._call("POST", "/solve", json={"definition": definition.model_dump(mode="json")})
        try:
            result = SolveResult.model_validate(r.json())
        except (ValueError, ValidationError) as e:
            logger.error(f"POST /solve returned an invalid reply: {r.text[:200]!r}")
            raise EngineError(f"POST /solve: invalid reply from engine: {e}", status_code=r.status_code) from e
        logger.info(f"Solved {len(definition.ops)} operations into {result.ref}")
        return result

    def resolve_context_file(self, name: str) -> str:
        return self.solve(context_file_graph(name, self.config)).ref

    def read_file(self, ref: str, path: str) -> bytes:
        r = self._call("GET", f"/refs/{ref}/file", params={"path": path})
        return r.content

    @property
    def info(self) -> Box:
        return Box({
            "type": self.session.engine_type,
            "hostURL": self.session.base_URL,
            "context": self.config.context_name,
        })


def _error_detail(response: httpx.Response) -> str:
    try:
        return str(response.json().get("detail", response.text))
    except (ValueError, AttributeError):
        return response.text
