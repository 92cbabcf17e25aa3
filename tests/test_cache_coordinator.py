import asyncio

import pytest

from ramptrack.errors import StoreError
from ramptrack.models.aircraft import AircraftSnapshot, AircraftStatus
from ramptrack.models.airport import AIRPORTS
from ramptrack.services.cache_coordinator import CacheCoordinator, CachePolicy
from ramptrack.store import CacheEntry, SqlCacheStore, cache_key

from conftest import UpstreamStub, build_telemetry, make_vector

SAV = AIRPORTS["SAV"]
POLICY = CachePolicy(
    ephemeral_ttl=6,
    durable_fresh_ttl=4,
    cooldown_seconds=10,
    cooldown_max_seconds=60,
    allowed_prefixes=("JIA",),
)


def _coordinator(upstream, store, clock, policy=POLICY):
    return CacheCoordinator(
        telemetry=build_telemetry(upstream), store=store, policy=policy, clock=clock
    )


@pytest.fixture
def store(session_factory):
    return SqlCacheStore(session_factory)


def test_cache_key_rounds_radius():
    assert cache_key("sav", 55.04) == "SAV:55.0"
    assert cache_key("SAV", 55.0) == cache_key("SAV", 54.96)


@pytest.mark.anyio
async def test_fresh_result_is_served_without_second_fetch(upstream, store, clock):
    coordinator = _coordinator(upstream, store, clock)

    first = await coordinator.get_aircraft(SAV, 55)
    clock.advance(1)
    second = await coordinator.get_aircraft(SAV, 55)

    assert first.source == "opensky_live"
    assert first.stale is False
    assert second.source == "cache_fresh_mem"
    assert second.stale is False
    assert [a.icao24 for a in second.aircraft] == ["abc123"]
    assert upstream.states_calls == 1


@pytest.mark.anyio
async def test_durable_tier_is_shared_between_processes(upstream, store, clock):
    await _coordinator(upstream, store, clock).get_aircraft(SAV, 55)

    clock.advance(2)
    other_process = _coordinator(upstream, store, clock)
    result = await other_process.get_aircraft(SAV, 55)

    assert result.source == "cache_fresh"
    assert result.stale is False
    assert upstream.states_calls == 1


@pytest.mark.anyio
async def test_expired_tiers_trigger_a_new_fetch(upstream, store, clock):
    coordinator = _coordinator(upstream, store, clock)

    await coordinator.get_aircraft(SAV, 55)
    clock.advance(7)
    result = await coordinator.get_aircraft(SAV, 55)

    assert result.source == "opensky_live"
    assert upstream.states_calls == 2


@pytest.mark.anyio
async def test_cooldown_suppresses_retries_until_window_elapses(store, clock):
    upstream = UpstreamStub(status_code=503)
    coordinator = _coordinator(upstream, store, clock)

    failed = await coordinator.get_aircraft(SAV, 55)
    assert failed.stale is True
    assert failed.source == "opensky_http_503"
    assert failed.aircraft == []

    clock.advance(5)
    cooling = await coordinator.get_aircraft(SAV, 55)
    assert cooling.stale is True
    assert cooling.source == "cache_cooldown"
    assert upstream.states_calls == 1

    clock.advance(6)
    retried = await coordinator.get_aircraft(SAV, 55)
    assert retried.source == "opensky_http_503"
    assert upstream.states_calls == 2

    entry = store.read_by_key("SAV", 55)
    assert entry.cooldown_seconds == 20
    assert entry.cooldown_until == pytest.approx(clock.now + 20)


@pytest.mark.anyio
async def test_backoff_is_capped(store, clock):
    upstream = UpstreamStub(status_code=500)
    coordinator = _coordinator(upstream, store, clock)

    windows = []
    for _ in range(6):
        await coordinator.get_aircraft(SAV, 55)
        entry = store.read_by_key("SAV", 55)
        windows.append(entry.cooldown_seconds)
        clock.now = entry.cooldown_until + 0.1

    assert windows == [10, 20, 40, 60, 60, 60]


@pytest.mark.anyio
async def test_success_clears_cooldown(store, clock):
    upstream = UpstreamStub(status_code=503)
    coordinator = _coordinator(upstream, store, clock)

    await coordinator.get_aircraft(SAV, 55)
    clock.advance(11)
    upstream.status_code = 200
    result = await coordinator.get_aircraft(SAV, 55)

    assert result.source == "opensky_live"
    entry = store.read_by_key("SAV", 55)
    assert entry.cooldown_until is None
    assert entry.fetched_at == clock.now


@pytest.mark.anyio
async def test_failure_serves_last_durable_payload(upstream, store, clock):
    coordinator = _coordinator(upstream, store, clock)
    await coordinator.get_aircraft(SAV, 55)

    clock.advance(30)
    upstream.status_code = 502
    result = await coordinator.get_aircraft(SAV, 55)

    assert result.stale is True
    assert result.source == "opensky_http_502"
    assert [a.icao24 for a in result.aircraft] == ["abc123"]
    assert result.error


@pytest.mark.anyio
async def test_auth_failure_is_reported_as_stale(upstream, store, clock):
    upstream.token_status = 400
    coordinator = _coordinator(upstream, store, clock)

    result = await coordinator.get_aircraft(SAV, 55)

    assert result.stale is True
    assert result.source == "opensky_auth_failed"
    assert upstream.states_calls == 0


@pytest.mark.anyio
async def test_concurrent_cold_calls_share_one_fetch(upstream, store, clock):
    coordinator = _coordinator(upstream, store, clock)

    results = await asyncio.gather(*(coordinator.get_aircraft(SAV, 55) for _ in range(8)))

    assert upstream.states_calls == 1
    assert {r.source for r in results} == {"opensky_live"}
    assert all(r.aircraft == results[0].aircraft for r in results)


@pytest.mark.anyio
async def test_force_bypasses_caches_but_still_cools_down(upstream, store, clock):
    coordinator = _coordinator(upstream, store, clock)
    await coordinator.get_aircraft(SAV, 55)

    clock.advance(1)
    upstream.status_code = 503
    forced = await coordinator.get_aircraft(SAV, 55, force=True)

    assert upstream.states_calls == 2
    assert forced.stale is True
    assert [a.icao24 for a in forced.aircraft] == ["abc123"]

    clock.advance(6)
    after = await coordinator.get_aircraft(SAV, 55)
    assert after.source == "cache_cooldown"
    assert upstream.states_calls == 2


@pytest.mark.anyio
async def test_filter_applies_to_cached_payloads(upstream, store, clock):
    store.upsert(
        CacheEntry(
            base_code="SAV",
            radius_nm=55,
            aircraft=[
                AircraftSnapshot(icao24="a1", callsign="JIA10", lat=32.1, lon=-81.2, last_contact=int(clock.now)),
                AircraftSnapshot(icao24="a2", callsign="AAL45", lat=32.1, lon=-81.2, last_contact=int(clock.now)),
            ],
            fetched_at=clock.now,
        )
    )
    coordinator = _coordinator(upstream, store, clock)

    result = await coordinator.get_aircraft(SAV, 55)

    assert result.source == "cache_fresh"
    assert [a.icao24 for a in result.aircraft] == ["a1"]
    assert upstream.states_calls == 0


@pytest.mark.anyio
async def test_silent_aircraft_are_marked_offline_at_read_time(store, clock):
    upstream = UpstreamStub(states=[make_vector(last_contact=int(clock.now) - 60)])
    coordinator = _coordinator(upstream, store, clock)

    live = await coordinator.get_aircraft(SAV, 55)
    assert live.aircraft[0].status is AircraftStatus.ACTIVE

    clock.advance(61)
    upstream.status_code = 503
    stale = await coordinator.get_aircraft(SAV, 55)

    assert stale.aircraft[0].status is AircraftStatus.OFFLINE


class BrokenStore:
    def read_by_key(self, base_code, radius_nm):
        raise StoreError("read failed")

    def upsert(self, entry):
        raise StoreError("write failed")


@pytest.mark.anyio
async def test_store_errors_do_not_block_live_fetch(upstream, clock):
    coordinator = _coordinator(upstream, BrokenStore(), clock)

    result = await coordinator.get_aircraft(SAV, 55)

    assert result.source == "opensky_live"
    assert result.stale is False
    assert coordinator.stats.store_errors == 2


@pytest.mark.anyio
async def test_reset_drops_memory_tier(upstream, store, clock):
    coordinator = _coordinator(upstream, store, clock)
    await coordinator.get_aircraft(SAV, 55)

    coordinator.reset()
    clock.advance(5)
    result = await coordinator.get_aircraft(SAV, 55)

    assert result.source == "opensky_live"
    assert upstream.states_calls == 2


@pytest.mark.anyio
async def test_forced_failure_within_fresh_window_is_never_served_as_fresh(upstream, store, clock):
    coordinator = _coordinator(upstream, store, clock)
    await coordinator.get_aircraft(SAV, 55)

    clock.advance(1)
    upstream.status_code = 503
    await coordinator.get_aircraft(SAV, 55, force=True)

    entry = store.read_by_key("SAV", 55)
    assert entry.in_cooldown(clock.now)
    assert not entry.is_fresh(clock.now, POLICY.durable_fresh_ttl)

    same_process = await coordinator.get_aircraft(SAV, 55)
    other_process = await _coordinator(upstream, store, clock).get_aircraft(SAV, 55)

    for result in (same_process, other_process):
        assert result.source == "cache_cooldown"
        assert result.stale is True
        assert [a.icao24 for a in result.aircraft] == ["abc123"]
    assert upstream.states_calls == 2


class FlakyReadStore:
    """Wraps a real store and fails the first ``failures`` reads."""

    def __init__(self, inner, failures=1):
        self.inner = inner
        self.failures = failures
        self.upserts = []

    def read_by_key(self, base_code, radius_nm):
        if self.failures > 0:
            self.failures -= 1
            raise StoreError("read failed")
        return self.inner.read_by_key(base_code, radius_nm)

    def upsert(self, entry):
        self.upserts.append(entry)
        self.inner.upsert(entry)


def _stored_payload(clock):
    return CacheEntry(
        base_code="SAV",
        radius_nm=55,
        aircraft=[
            AircraftSnapshot(icao24="a1", callsign="JIA10", lat=32.1, lon=-81.2, last_contact=int(clock.now)),
        ],
        fetched_at=clock.now - 30,
    )


@pytest.mark.anyio
async def test_failure_after_read_error_keeps_stored_payload(store, clock):
    store.upsert(_stored_payload(clock))
    flaky = FlakyReadStore(store, failures=1)
    coordinator = _coordinator(UpstreamStub(status_code=503), flaky, clock)

    result = await coordinator.get_aircraft(SAV, 55)

    assert result.stale is True
    assert [a.icao24 for a in result.aircraft] == ["a1"]
    entry = store.read_by_key("SAV", 55)
    assert [a.icao24 for a in entry.aircraft] == ["a1"]
    assert entry.fetched_at == clock.now - 30
    assert entry.in_cooldown(clock.now)


@pytest.mark.anyio
async def test_failure_with_unreadable_store_skips_cooldown_write(store, clock):
    store.upsert(_stored_payload(clock))
    flaky = FlakyReadStore(store, failures=2)
    coordinator = _coordinator(UpstreamStub(status_code=503), flaky, clock)

    result = await coordinator.get_aircraft(SAV, 55)

    assert result.stale is True
    assert result.aircraft == []
    assert flaky.upserts == []
    assert [a.icao24 for a in store.read_by_key("SAV", 55).aircraft] == ["a1"]


@pytest.mark.anyio
async def test_malformed_token_response_falls_back_instead_of_raising(upstream, store, clock):
    upstream.token_body = b'{"access_token": "t", "expires_in": "soon"}'
    coordinator = _coordinator(upstream, store, clock)

    result = await coordinator.get_aircraft(SAV, 55)

    assert result.stale is True
    assert result.source == "opensky_auth_failed"
    assert upstream.states_calls == 0
    assert store.read_by_key("SAV", 55).in_cooldown(clock.now)
