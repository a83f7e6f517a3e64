"""Periodic SharePoint scans guarded by a distributed lock.

Any number of processes may run a ``ScanScheduler``; each tick only the one
that takes the scan lock actually scans. The holder keeps its lease alive
from a background task while the scan runs and releases the lock with its own
value afterwards, so an expired holder can never delete a successor's lock.
"""

from __future__ import annotations

import asyncio
from typing import Optional

from sharepoint_connector.main.logging import get_logger
from sharepoint_connector.metrics.metrics_service import MetricsService
from sharepoint_connector.scanner.sharepoint_scanner import SharepointScanner
from sharepoint_connector.worker.lock.distributed_lock import DistributedLock

logger = get_logger(__name__)


class ScanScheduler:
    def __init__(
        self,
        scanner: SharepointScanner,
        lock: DistributedLock,
        metrics: Optional[MetricsService] = None,
        interval_seconds: float = 15 * 60,
        lock_key: str = "sharepoint:scan:lock",
        lock_ttl_seconds: Optional[int] = None,
        renewal_interval_seconds: Optional[float] = None,
    ):
        self._scanner = scanner
        self._lock = lock
        self._metrics = metrics
        self._interval_seconds = interval_seconds
        self._lock_key = lock_key
        self._lock_ttl_seconds = lock_ttl_seconds or int(interval_seconds)
        self._renewal_interval_seconds = renewal_interval_seconds or self._lock_ttl_seconds * 2 / 3

        self._stop_event = asyncio.Event()
        self._loop_task: Optional[asyncio.Task] = None
        self._renewal_task: Optional[asyncio.Task] = None
        self._held_lock_value: Optional[str] = None
        self._scan_in_progress = False

    @property
    def scan_in_progress(self) -> bool:
        return self._scan_in_progress

    async def run_scheduled_scan(self) -> bool:
        """Run one tick: take the lock, scan, release.

        Returns:
            True if this process held the lock and ran the scan, regardless of
            the scan's outcome.
        """
        if self._scan_in_progress:
            logger.info("Previous scan still running, skipping tick")
            return False

        acquisition = await self._lock.acquire(self._lock_key, self._lock_ttl_seconds)
        if not acquisition.acquired:
            logger.info(
                "Scan lock held by another instance, skipping tick",
                extra={"lock_key": self._lock_key},
            )
            return False

        self._held_lock_value = acquisition.value
        self._scan_in_progress = True
        self._renewal_task = asyncio.create_task(self._renew_lease(acquisition.value))

        try:
            await self._scanner.scan_for_work()
            self._set_healthy(True)
        except Exception as exc:
            logger.error(
                f"Scheduled scan failed: {exc}",
                extra={"error_type": type(exc).__name__},
            )
            self._set_healthy(False)
        finally:
            await self._stop_renewal()
            await self._release_held_lock()
            self._scan_in_progress = False

        return True

    async def _renew_lease(self, lock_value: str) -> None:
        while True:
            await asyncio.sleep(self._renewal_interval_seconds)
            extended = await self._lock.extend(
                self._lock_key, self._lock_ttl_seconds, expected_value=lock_value
            )
            if not extended:
                logger.warning(
                    "Failed to renew scan lock lease",
                    extra={"lock_key": self._lock_key},
                )

    async def _stop_renewal(self) -> None:
        task, self._renewal_task = self._renewal_task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def _release_held_lock(self) -> None:
        lock_value, self._held_lock_value = self._held_lock_value, None
        if lock_value is None:
            return
        released = await self._lock.release(self._lock_key, expected_value=lock_value)
        if not released:
            logger.warning(
                "Scan lock was not released; it expired or changed owner",
                extra={"lock_key": self._lock_key},
            )

    def _set_healthy(self, healthy: bool) -> None:
        if self._metrics is not None:
            self._metrics.set_healthy(healthy)

    async def run_forever(self) -> None:
        """Scan immediately, then once per interval until ``stop`` is called."""
        logger.info(
            "Starting scan scheduler",
            extra={"interval_seconds": self._interval_seconds, "lock_key": self._lock_key},
        )
        self._stop_event.clear()

        while not self._stop_event.is_set():
            try:
                await self.run_scheduled_scan()
            except Exception as exc:
                logger.error(f"Error in scan scheduler loop: {exc}")

            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=self._interval_seconds)
            except asyncio.TimeoutError:
                continue

    def start(self) -> asyncio.Task:
        self._loop_task = asyncio.create_task(self.run_forever())
        return self._loop_task

    async def stop(self) -> None:
        """Stop the loop, abandon an in-flight scan and give the lock back."""
        logger.info("Stopping scan scheduler")
        self._stop_event.set()

        task, self._loop_task = self._loop_task, None
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

        await self._stop_renewal()
        await self._release_held_lock()
        self._scan_in_progress = False
