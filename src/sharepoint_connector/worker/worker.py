from __future__ import annotations

from typing import Any, Callable, Optional

from arq.connections import ArqRedis
from arq.worker import Worker as ArqWorker

from sharepoint_connector.main.config import Settings, get_settings
from sharepoint_connector.main.container.resources import Resources, create_container
from sharepoint_connector.main.logging import get_logger
from sharepoint_connector.redis.connection import build_arq_redis_settings
from sharepoint_connector.worker.ingestion_worker import IngestionWorker
from sharepoint_connector.worker.tasks import process_file

logger = get_logger(__name__)


class Worker:
    """
    Settings and lifecycle for the arq worker that processes ingestion jobs.

    The same configuration runs either standalone (``arq
    sharepoint_connector.worker.arq.WorkerSettings``) or embedded in the API
    process through ``create_embedded``.

    Attributes:
        functions (list): Task functions registered with arq.
        queue_name (str): Redis sorted set jobs are read from.
        max_jobs (int): Jobs processed concurrently by one worker.
        max_tries (int): Attempts per job, including the first.
        keep_result (int): Seconds results are kept; 0 removes finished jobs.
    """

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()
        self.functions: list[Callable] = [process_file]
        self.queue_name = self.settings.queue_name
        self.on_startup = self.startup
        self.on_shutdown = self.shutdown
        self.retry_jobs = True
        self.max_tries = self.settings.max_retries
        self.job_timeout = self.settings.job_timeout_seconds
        self.max_jobs = self.settings.processing_concurrency
        self.keep_result = 0
        self.health_check_interval = 60
        self.on_job_start = self._on_job_start
        self.after_job_end = self._after_job_end

    @property
    def redis_settings(self):
        return build_arq_redis_settings(self.settings)

    async def _on_job_start(self, ctx: dict) -> None:
        logger.debug(
            "Job started",
            extra={"job_id": ctx.get("job_id"), "job_try": ctx.get("job_try", 1)},
        )

    async def _after_job_end(self, ctx: dict) -> None:
        ingestion_queue = ctx.get("ingestion_queue")
        if ingestion_queue is None:
            return
        try:
            await ingestion_queue.refresh_queue_size_metric()
        except Exception as exc:
            logger.debug(f"Failed to refresh queue size: {exc}")

    async def startup(self, ctx: dict) -> None:
        resources = await Resources.open(self.settings)
        container = create_container(self.settings, resources)
        ctx["resources"] = resources
        ctx["container"] = container
        ctx["ingestion_worker"] = container.ingestion_worker()
        ctx["ingestion_queue"] = container.ingestion_queue()
        logger.info(
            "Ingestion worker started",
            extra={"queue_name": self.queue_name, "max_jobs": self.max_jobs},
        )

    async def shutdown(self, ctx: dict) -> None:
        resources: Optional[Resources] = ctx.get("resources")
        if resources is not None:
            await resources.close()
        logger.info("Ingestion worker stopped")

    def _arq_options(self) -> dict[str, Any]:
        return {
            "functions": self.functions,
            "queue_name": self.queue_name,
            "max_jobs": self.max_jobs,
            "max_tries": self.max_tries,
            "job_timeout": self.job_timeout,
            "keep_result": self.keep_result,
            "retry_jobs": self.retry_jobs,
            "health_check_interval": self.health_check_interval,
            "on_job_start": self.on_job_start,
            "after_job_end": self.after_job_end,
        }

    def create_embedded(
        self,
        redis_pool: ArqRedis,
        ingestion_worker: IngestionWorker,
        ingestion_queue: Any = None,
    ) -> ArqWorker:
        """Build an arq worker that shares the caller's connections and container."""
        return ArqWorker(
            **self._arq_options(),
            redis_pool=redis_pool,
            handle_signals=False,
            ctx={"ingestion_worker": ingestion_worker, "ingestion_queue": ingestion_queue},
        )
