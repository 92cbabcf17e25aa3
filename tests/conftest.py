import httpx
import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from ramptrack.db import init_db
from ramptrack.ingestors.opensky import TelemetryClient
from ramptrack.ingestors.opensky_auth import TokenManager

TOKEN_URL = "https://auth.example.test/token"
STATES_URL = "https://opensky.example.test/api/states/all"
NOW = 1_714_765_200.0


class FakeClock:
    def __init__(self, now: float = NOW):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def make_vector(
    icao24="abc123",
    callsign="JIA4821 ",
    lat=32.1270,
    lon=-81.2020,
    on_ground=False,
    velocity=120.0,
    track=90.0,
    last_contact=int(NOW),
):
    return [
        icao24,
        callsign,
        "United States",
        last_contact,  # time_position
        last_contact,  # last_contact
        lon,
        lat,
        3657.6,  # baro_altitude
        on_ground,
        velocity,
        track,
        0.0,  # vertical_rate
        None,  # sensors
        3700.0,  # geo_altitude
        "7000",  # squawk
        False,  # spi
        0,  # position_source
    ]


class UpstreamStub:
    """Routes token and states requests, counting states calls."""

    def __init__(self, states=None, status_code=200):
        self.states = states if states is not None else [make_vector()]
        self.status_code = status_code
        self.token_status = 200
        self.token_body = None
        self.states_body = None
        self.states_calls = 0
        self.token_calls = 0

    def __call__(self, request: httpx.Request) -> httpx.Response:
        if str(request.url).startswith(TOKEN_URL):
            self.token_calls += 1
            if self.token_status != 200:
                return httpx.Response(self.token_status, text="invalid_client")
            if self.token_body is not None:
                return httpx.Response(200, content=self.token_body)
            return httpx.Response(
                200, json={"access_token": f"token-{self.token_calls}", "expires_in": 1800}
            )

        self.states_calls += 1
        if self.status_code != 200:
            return httpx.Response(self.status_code, text="upstream unavailable")
        if self.states_body is not None:
            return httpx.Response(200, content=self.states_body)
        return httpx.Response(200, json={"time": int(NOW), "states": self.states})

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def upstream():
    return UpstreamStub()


@pytest.fixture
def session_factory():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(bind=engine)
    try:
        yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    finally:
        engine.dispose()


def build_telemetry(upstream: UpstreamStub, **kwargs) -> TelemetryClient:
    transport = upstream.transport()
    token_manager = TokenManager(
        client_id="ramptrack-api-client",
        client_secret="secret",
        token_url=TOKEN_URL,
        transport=transport,
    )
    return TelemetryClient(
        token_manager=token_manager,
        base_url=STATES_URL,
        landed_max_kts=10,
        transport=transport,
        **kwargs,
    )


@pytest.fixture
def anyio_backend():
    return "asyncio"
