import httpx
import pytest
from fastapi.testclient import TestClient

from nsems.config import Config
from nsems.main import create_authority_app
from nsems.runtime import build_authority, build_device

ROTATION_MS = 60000
# an arbitrary window in 2025, 10 seconds into it
START_WINDOW = 29_000_000
START_MS = START_WINDOW * ROTATION_MS + 10_000

HOLDER_ID = "STU-01"
HOLDER_SECRET = "K"


class FakeClock:
    """Millisecond clock the tests move by hand."""

    def __init__(self, now: int = START_MS):
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


class Network:
    """
    Stands between a scan point and the authority app.

    ``up=False`` refuses connections; ``drop_responses=True`` delivers the
    request to the authority but loses the reply.
    """

    def __init__(self, authority_http: TestClient):
        self.authority_http = authority_http
        self.up = True
        self.drop_responses = False
        self.requests = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append((request.method, request.url.path))
        if not self.up:
            raise httpx.ConnectError("authority unreachable", request=request)
        upstream = self.authority_http.request(
            request.method,
            request.url.path,
            params=dict(request.url.params),
            content=request.content,
            headers={"content-type": request.headers.get("content-type", "application/json")},
        )
        if self.drop_responses:
            raise httpx.ReadTimeout("response lost", request=request)
        return httpx.Response(
            upstream.status_code,
            content=upstream.content,
            headers={"content-type": upstream.headers.get("content-type", "application/json")},
        )


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def cfg(tmp_path):
    return Config(
        AUTHORITY_DB_URL=f"sqlite:///{tmp_path / 'authority.db'}",
        DEVICE_DB_URL=f"sqlite:///{tmp_path / 'device.db'}",
        AUTHORITY_URL="http://authority",
        SCANNER_ID="gate-1",
        ROTATION_INTERVAL_MS=ROTATION_MS,
        WINDOW_TOLERANCE=1,
        VERIFY_TIMEOUT_MS=3000,
        MAX_AUTO_SYNC_ATTEMPTS=3,
        SYNC_INTERVAL_SECONDS=3600,
        SYNC_BACKOFF_BASE_SECONDS=5,
        SCAN_DEBOUNCE_MS=2000,
        CACHE_REFRESH_ON_RECONNECT=True,
        SERIAL_PORT="",
    )


@pytest.fixture
def authority(cfg, clock):
    runtime = build_authority(cfg, clock=clock)
    runtime.store.enroll(HOLDER_ID, HOLDER_SECRET, name="Ada Perera",
                         program="Software Engineering", department="Computing", year=3)
    yield runtime
    runtime.stop()


@pytest.fixture
def authority_http(cfg, authority):
    return TestClient(create_authority_app(cfg, runtime=authority))


@pytest.fixture
def network(authority_http):
    return Network(authority_http)


@pytest.fixture
def device(cfg, clock, network):
    http_client = httpx.Client(transport=httpx.MockTransport(network.handler), base_url=cfg.AUTHORITY_URL)
    runtime = build_device(cfg, http_client=http_client, clock=clock)
    yield runtime
    runtime.stop()
    http_client.close()


@pytest.fixture
def token(authority, clock):
    """A payload for STU-01 in the current window."""
    return authority.tokens.issue(HOLDER_ID, HOLDER_SECRET, clock()).payload
