import asyncio
import time

from fastapi.testclient import TestClient

from phoneqr.main import create_app
from phoneqr.services.sweeper import SessionSweeper

from conftest import TTL_SECONDS


async def _wait_until(predicate, timeout=2.0):
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate() and loop.time() < deadline:
        await asyncio.sleep(0.01)
    return predicate()


def test_sweeper_reclaims_expired_sessions(service, store, clock):
    expired = store.create("+1234567890")
    clock.advance(TTL_SECONDS)
    fresh = store.create("+1987654321")

    async def scenario():
        sweeper = SessionSweeper(service, interval_seconds=0.01)
        sweeper.start()
        assert sweeper.running
        swept = await _wait_until(lambda: len(store) == 1)
        await sweeper.stop()
        return sweeper, swept

    sweeper, swept = asyncio.run(scenario())

    assert swept
    assert not sweeper.running
    assert store.get(expired.session_id) is None
    assert store.get(fresh.session_id) is not None


def test_sweeper_stop_cancels_pending_sleep(service):
    async def scenario():
        sweeper = SessionSweeper(service, interval_seconds=3600)
        sweeper.start()
        sweeper.start()  # second start is a no-op
        await asyncio.sleep(0)
        await asyncio.wait_for(sweeper.stop(), timeout=1.0)
        return sweeper

    sweeper = asyncio.run(scenario())
    assert not sweeper.running


def test_sweeper_survives_store_errors(service, store, monkeypatch):
    calls = []

    def flaky_sweep():
        calls.append(1)
        if len(calls) == 1:
            raise RuntimeError("store unavailable")
        return 0

    monkeypatch.setattr(store, "sweep", flaky_sweep)

    async def scenario():
        sweeper = SessionSweeper(service, interval_seconds=0.01)
        sweeper.start()
        await _wait_until(lambda: len(calls) >= 2)
        await sweeper.stop()

    asyncio.run(scenario())
    assert len(calls) >= 2


def test_app_lifespan_runs_sweeper(store, clock):
    app = create_app(store=store, sweep_interval=0.01)
    sweeper = app.state.sweeper

    with TestClient(app) as client:
        assert sweeper.running
        client.post("/api/generate-qr", json={"phone": "1234567890"})
        clock.advance(TTL_SECONDS)
        deadline = time.monotonic() + 2.0
        while len(store) and time.monotonic() < deadline:
            time.sleep(0.01)
        assert len(store) == 0

    assert not sweeper.running
