from __future__ import annotations

from typing import Optional

from arq import create_pool
from arq.connections import ArqRedis
from arq.jobs import Job, JobStatus

from sharepoint_connector.integration.domain.drive_item import DriveItem
from sharepoint_connector.main.config import Settings
from sharepoint_connector.main.exceptions import NotReadyException
from sharepoint_connector.main.logging import get_logger
from sharepoint_connector.metrics.metrics_service import MetricsService
from sharepoint_connector.redis.connection import build_arq_redis_settings

logger = get_logger(__name__)

PROCESS_FILE_TASK = "process_file"


def build_job_id(item: DriveItem) -> str:
    """Stable id per file version; arq refuses a second job with the same id."""
    return f"process-file:{item.id}:{item.updated_at or ''}"


class IngestionQueue:
    """Persistent queue of files waiting for the ingestion pipeline."""

    def __init__(
        self,
        settings: Settings,
        metrics: Optional[MetricsService] = None,
        redis: Optional[ArqRedis] = None,
    ):
        self._settings = settings
        self._metrics = metrics
        self._redis = redis

    @property
    def queue_name(self) -> str:
        return self._settings.queue_name

    async def init(self):
        if self._redis is not None:
            return
        self._redis = await create_pool(
            build_arq_redis_settings(self._settings),
            default_queue_name=self._settings.queue_name,
        )
        logger.debug(
            f"Ingestion queue connected to redis on host {self._settings.redis_host}"
            f" and port {self._settings.redis_port}"
        )

    async def close(self):
        if self._redis is None:
            return
        await self._redis.aclose()
        self._redis = None

    def _require_redis(self) -> ArqRedis:
        if self._redis is None:
            raise NotReadyException("Ingestion queue is not initialized!")
        return self._redis

    async def enqueue(self, item: DriveItem) -> bool:
        """Persist one processing job for ``item``.

        Returns:
            True when a new job was created, False when an identical job is
            already queued or running.
        """
        redis = self._require_redis()
        job_id = build_job_id(item)
        job = await redis.enqueue_job(
            PROCESS_FILE_TASK,
            item.model_dump(by_alias=True, exclude_none=True),
            _job_id=job_id,
            _queue_name=self.queue_name,
        )
        if job is None:
            logger.debug("Job already queued", extra={"job_id": job_id, "file_id": item.id})
            return False

        logger.debug("Job queued", extra={"job_id": job_id, "file_id": item.id})
        return True

    async def get_queue_size(self) -> int:
        redis = self._require_redis()
        return int(await redis.zcard(self.queue_name))

    async def refresh_queue_size_metric(self) -> int:
        size = await self.get_queue_size()
        if self._metrics is not None:
            self._metrics.set_queue_size(size)
        return size

    async def get_job_status(self, job_id: str) -> JobStatus:
        job = Job(job_id=job_id, redis=self._require_redis(), _queue_name=self.queue_name)
        return await job.status()
