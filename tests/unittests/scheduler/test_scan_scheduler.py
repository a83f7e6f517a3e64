"""Unit tests for the lock-guarded scan scheduler."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from sharepoint_connector.metrics.metrics_service import MetricsService
from sharepoint_connector.scheduler.scan_scheduler import ScanScheduler
from sharepoint_connector.worker.lock.distributed_lock import DistributedLock, LockAcquisition

LOCK_KEY = "sharepoint:scan:lock"


@pytest.fixture
def scanner():
    scanner = MagicMock()
    scanner.scan_for_work = AsyncMock(return_value=3)
    return scanner


@pytest.fixture
def lock():
    lock = MagicMock()
    lock.acquire = AsyncMock(return_value=LockAcquisition(True, "owner-1"))
    lock.extend = AsyncMock(return_value=True)
    lock.release = AsyncMock(return_value=True)
    return lock


def _scheduler(scanner, lock, metrics=None, **kwargs):
    return ScanScheduler(
        scanner=scanner,
        lock=lock,
        metrics=metrics or MetricsService(),
        interval_seconds=kwargs.pop("interval_seconds", 900),
        lock_key=LOCK_KEY,
        **kwargs,
    )


class TestRunScheduledScan:
    async def test_denied_lock_skips_scan_and_release(self, scanner, lock):
        lock.acquire.return_value = LockAcquisition(False)

        ran = await _scheduler(scanner, lock).run_scheduled_scan()

        assert ran is False
        scanner.scan_for_work.assert_not_called()
        lock.release.assert_not_called()

    async def test_holder_scans_and_releases_own_value(self, scanner, lock):
        metrics = MetricsService()

        ran = await _scheduler(scanner, lock, metrics).run_scheduled_scan()

        assert ran is True
        lock.acquire.assert_called_once_with(LOCK_KEY, 900)
        scanner.scan_for_work.assert_called_once()
        lock.release.assert_called_once_with(LOCK_KEY, expected_value="owner-1")
        assert metrics.is_healthy

    async def test_failed_scan_still_releases_and_marks_unhealthy(self, scanner, lock):
        scanner.scan_for_work.side_effect = RuntimeError("graph down")
        metrics = MetricsService()

        ran = await _scheduler(scanner, lock, metrics).run_scheduled_scan()

        assert ran is True
        lock.release.assert_called_once_with(LOCK_KEY, expected_value="owner-1")
        assert not metrics.is_healthy
        assert metrics.get_sample_value("sharepoint_connector_up") == 0

    async def test_uses_configured_lock_ttl(self, scanner, lock):
        await _scheduler(scanner, lock, lock_ttl_seconds=60).run_scheduled_scan()

        lock.acquire.assert_called_once_with(LOCK_KEY, 60)

    async def test_lease_is_renewed_during_long_scan(self, scanner, lock):
        async def slow_scan():
            await asyncio.sleep(0.2)
            return 0

        scanner.scan_for_work = AsyncMock(side_effect=slow_scan)

        await _scheduler(
            scanner, lock, lock_ttl_seconds=60, renewal_interval_seconds=0.05
        ).run_scheduled_scan()

        assert lock.extend.call_count >= 2
        lock.extend.assert_called_with(LOCK_KEY, 60, expected_value="owner-1")

    async def test_renewal_stops_after_scan(self, scanner, lock):
        scheduler = _scheduler(scanner, lock, renewal_interval_seconds=0.01)

        await scheduler.run_scheduled_scan()
        calls = lock.extend.call_count
        await asyncio.sleep(0.05)

        assert lock.extend.call_count == calls

    async def test_skips_tick_while_scan_in_progress(self, scanner, lock):
        started = asyncio.Event()
        finish = asyncio.Event()

        async def blocking_scan():
            started.set()
            await finish.wait()
            return 0

        scanner.scan_for_work = AsyncMock(side_effect=blocking_scan)
        scheduler = _scheduler(scanner, lock)

        first = asyncio.create_task(scheduler.run_scheduled_scan())
        await started.wait()
        assert scheduler.scan_in_progress

        assert await scheduler.run_scheduled_scan() is False
        assert lock.acquire.call_count == 1

        finish.set()
        assert await first is True
        assert not scheduler.scan_in_progress


class TestSchedulerWithRedisLock:
    async def test_only_one_instance_scans_per_tick(self, scanner, fake_redis):
        first = _scheduler(scanner, DistributedLock(fake_redis))
        competitor_lock = DistributedLock(fake_redis)
        competitor_scanner = MagicMock()
        competitor_scanner.scan_for_work = AsyncMock(return_value=0)
        competitor = _scheduler(competitor_scanner, competitor_lock)

        held = await competitor_lock.acquire(LOCK_KEY, 900, value="someone-else")
        assert held.acquired

        assert await first.run_scheduled_scan() is False
        scanner.scan_for_work.assert_not_called()
        assert await fake_redis.get(LOCK_KEY) == "someone-else"

        await competitor_lock.release(LOCK_KEY, expected_value="someone-else")
        assert await competitor.run_scheduled_scan() is True
        competitor_scanner.scan_for_work.assert_called_once()
        assert await fake_redis.get(LOCK_KEY) is None

    async def test_expired_holder_does_not_release_successor(self, fake_redis):
        lock = DistributedLock(fake_redis)
        successor_lock = DistributedLock(fake_redis)
        scanner = MagicMock()

        async def scan_past_lease():
            fake_redis.advance(61)
            assert (await successor_lock.acquire(LOCK_KEY, 60, value="successor")).acquired
            return 0

        scanner.scan_for_work = AsyncMock(side_effect=scan_past_lease)

        await _scheduler(scanner, lock, lock_ttl_seconds=60).run_scheduled_scan()

        assert await fake_redis.get(LOCK_KEY) == "successor"


class TestRunForever:
    async def test_scans_immediately_and_stops(self, scanner, lock):
        scheduler = _scheduler(scanner, lock, interval_seconds=3600)

        scheduler.start()
        for _ in range(50):
            if scanner.scan_for_work.called:
                break
            await asyncio.sleep(0.01)
        await scheduler.stop()

        scanner.scan_for_work.assert_called_once()

    async def test_stop_releases_lock_held_by_running_scan(self, scanner, lock):
        started = asyncio.Event()

        async def never_finishes():
            started.set()
            await asyncio.Event().wait()

        scanner.scan_for_work = AsyncMock(side_effect=never_finishes)
        scheduler = _scheduler(scanner, lock)

        scheduler.start()
        await started.wait()
        await scheduler.stop()

        lock.release.assert_called_with(LOCK_KEY, expected_value="owner-1")
        assert not scheduler.scan_in_progress
