from collections.abc import AsyncIterator
from typing import Any

import anyio
import httpx
import pytest
import sse_starlette
from packaging import version
from starlette.applications import Starlette

from haute_garonne_mcp.server.app import create_app
from haute_garonne_mcp.settings import Settings
from haute_garonne_mcp.shared.httpx_utils import create_http_client

API_BASE_URL = "https://data.example.test/api/explore/v2.1"
API_PATH = "/api/explore/v2.1"


@pytest.fixture
def anyio_backend():
    return "asyncio"


SSE_STARLETTE_VERSION = version.parse(sse_starlette.__version__)
NEEDS_RESET = SSE_STARLETTE_VERSION < version.parse("3.0.0")


@pytest.fixture(autouse=True)
def reset_sse_app_status():
    """Reset sse-starlette's global AppStatus singleton before each test.

    AppStatus.should_exit_event is a global asyncio.Event that gets bound to
    an event loop. This ensures each test gets a fresh Event and prevents
    RuntimeError("bound to a different event loop").

    NOTE: This fixture is only necessary for sse-starlette < 3.0.0.
    Version 3.0+ uses context-local events instead of module-level singletons.

    See <https://github.com/sysid/sse-starlette/pull/141> for more details.
    """
    if not NEEDS_RESET:
        yield
        return

    # lazy import to avoid import errors
    from sse_starlette.sse import AppStatus

    AppStatus.should_exit_event = anyio.Event()  # type: ignore[attr-defined]

    yield

    AppStatus.should_exit_event = anyio.Event()  # type: ignore[attr-defined]


def make_dataset(
    dataset_id: str, title: str, description: str = "", keywords: list[str] | None = None
) -> dict[str, Any]:
    return {
        "dataset_id": dataset_id,
        "metas": {"default": {"title": title, "description": description, "keyword": keywords or []}},
    }


CATALOG_DATASETS = [
    make_dataset(
        "equipements-culturels",
        "Equipements culturels",
        "Liste des équipements culturels du département",
        ["culture", "musée"],
    ),
    make_dataset(
        "lignes-de-bus",
        "Lignes de bus Arc-en-ciel",
        "Réseau de transport interurbain",
        ["transport", "bus"],
    ),
    make_dataset("colleges", "Collèges publics", "Établissements scolaires", ["éducation"]),
    # Older API payloads spell the identifier without the underscore.
    {"datasetid": "routes-departementales", "metas": {"default": {"title": "Routes départementales"}}},
]


class FakeUpstream:
    """In-memory stand-in for the Opendatasoft API, served through httpx.MockTransport."""

    def __init__(self, datasets: list[dict[str, Any]] | None = None):
        self.datasets = list(CATALOG_DATASETS if datasets is None else datasets)
        self.requests: list[httpx.Request] = []
        self.fail = False

    @property
    def catalog_requests(self) -> list[httpx.Request]:
        return [r for r in self.requests if r.url.path == f"{API_PATH}/catalog/datasets"]

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.fail:
            return httpx.Response(503, json={"error": "unavailable"})

        path = request.url.path.removeprefix(API_PATH)
        if path == "/catalog/datasets":
            limit = int(request.url.params.get("limit", "10"))
            return httpx.Response(200, json={"total_count": len(self.datasets), "results": self.datasets[:limit]})

        parts = path.split("/")
        # ["", "catalog", "datasets", <id>] or [..., <id>, "records"]
        if len(parts) >= 4 and parts[1:3] == ["catalog", "datasets"]:
            dataset_id = parts[3]
            dataset = next(
                (d for d in self.datasets if d.get("dataset_id", d.get("datasetid")) == dataset_id),
                None,
            )
            if dataset is None:
                return httpx.Response(404, json={"error_code": "NotFound", "message": f"Unknown dataset {dataset_id}"})
            if len(parts) == 4:
                return httpx.Response(200, json=dataset)
            if len(parts) == 5 and parts[4] == "records":
                records = [{"nom": f"record {i}"} for i in range(3)]
                return httpx.Response(200, json={"total_count": 42, "results": records})

        return httpx.Response(404, json={"error": "not found"})


@pytest.fixture
def upstream() -> FakeUpstream:
    return FakeUpstream()


@pytest.fixture
async def http_client(upstream: FakeUpstream) -> AsyncIterator[httpx.AsyncClient]:
    async with create_http_client(base_url=API_BASE_URL, transport=httpx.MockTransport(upstream.handler)) as client:
        yield client


@pytest.fixture
def settings() -> Settings:
    return Settings(_env_file=None, api_base_url=API_BASE_URL)  # type: ignore[call-arg]


@pytest.fixture
def app(settings: Settings, http_client: httpx.AsyncClient) -> Starlette:
    return create_app(settings, http_client=http_client)


@pytest.fixture
async def client(app: Starlette) -> AsyncIterator[httpx.AsyncClient]:
    async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test") as http_client:
        yield http_client
