"""Tests for the debounced recompute scheduler."""
import asyncio

from custom_components.facility_twin.floorplan.scheduler import RecomputeScheduler


async def test_burst_runs_job_once():
    """Several triggers within the debounce window run the job a single time."""
    calls = []
    published = []

    async def job():
        calls.append(True)
        return len(calls)

    scheduler = RecomputeScheduler(job, published.append, delay=0.01)
    for _ in range(5):
        scheduler.trigger()
    await scheduler.async_wait()

    assert calls == [True]
    assert published == [1]
    assert scheduler.generation == 5
    assert not scheduler.pending


async def test_stale_result_discarded():
    """A job superseded while running never publishes."""
    started = asyncio.Event()
    release = asyncio.Event()
    published = []
    results = iter(["old", "new"])

    async def job():
        value = next(results)
        if value == "old":
            started.set()
            await release.wait()
        return value

    scheduler = RecomputeScheduler(job, published.append, delay=0)
    scheduler.trigger()
    await started.wait()

    # The first step is cancelled mid-job; the second one publishes
    scheduler.trigger()
    release.set()
    await scheduler.async_wait()

    assert published == ["new"]


async def test_newer_trigger_wins_after_job_completes():
    """A result whose generation was superseded during the job is dropped."""
    published = []
    scheduler = None

    async def job():
        # Bump the generation without scheduling, as a concurrent cancel would
        scheduler.generation += 1
        return "stale"

    scheduler = RecomputeScheduler(job, published.append, delay=0)
    scheduler.trigger()
    await scheduler.async_wait()

    assert published == []


async def test_errors_reported():
    errors = []

    async def job():
        raise RuntimeError("boom")

    scheduler = RecomputeScheduler(job, lambda _: None, delay=0, on_error=errors.append)
    scheduler.trigger()
    await scheduler.async_wait()

    assert len(errors) == 1
    assert str(errors[0]) == "boom"


async def test_errors_logged_without_handler(caplog):
    async def job():
        raise RuntimeError("boom")

    scheduler = RecomputeScheduler(job, lambda _: None, delay=0, name="heatmap")
    scheduler.trigger()
    await scheduler.async_wait()

    assert "heatmap: generation 1 failed" in caplog.text


async def test_cancel_drops_pending():
    published = []

    async def job():
        return "value"

    scheduler = RecomputeScheduler(job, published.append, delay=0.05)
    scheduler.trigger()
    scheduler.cancel()
    await asyncio.sleep(0.1)

    assert published == []
    assert not scheduler.pending


async def test_wait_without_trigger():
    async def job():
        return None

    scheduler = RecomputeScheduler(job, lambda _: None)
    await scheduler.async_wait()
    assert scheduler.generation == 0
