"""Queue-side driver of the ingestion pipeline.

One ``process_file`` call handles one arq job attempt. Successful runs
return a ``JobResult`` dict. Failed runs with a transient cause are handed
back to arq with ``Retry`` and an exponential delay until the last attempt;
validation failures and failures on the last attempt are written to the
dead-letter list and re-raised so arq marks the job failed.
"""

from __future__ import annotations

import time
from dataclasses import asdict, dataclass
from typing import Any, Optional

from arq import Retry
from pydantic import ValidationError

from sharepoint_connector.integration.domain.drive_item import DriveItem
from sharepoint_connector.main.exceptions import ContentValidationError, is_retryable
from sharepoint_connector.main.logging import get_logger
from sharepoint_connector.main.request_context import bound_context
from sharepoint_connector.metrics.metrics_service import MetricsService
from sharepoint_connector.pipeline.pipeline_service import PipelineService
from sharepoint_connector.worker.dead_letter import DeadLetterQueue

logger = get_logger(__name__)


@dataclass(frozen=True)
class JobResult:
    success: bool
    file_id: str
    file_name: str
    correlation_id: str
    duration: float
    completed_steps: tuple[str, ...]
    error: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        result = asdict(self)
        result["completed_steps"] = list(self.completed_steps)
        return result


class IngestionWorker:
    def __init__(
        self,
        pipeline_service: PipelineService,
        metrics: Optional[MetricsService] = None,
        dead_letter: Optional[DeadLetterQueue] = None,
        max_tries: int = 3,
        retry_backoff_seconds: float = 1.0,
    ):
        self._pipeline_service = pipeline_service
        self._metrics = metrics
        self._dead_letter = dead_letter
        self._max_tries = max_tries
        self._retry_backoff_seconds = retry_backoff_seconds

    def retry_delay(self, job_try: int) -> float:
        return self._retry_backoff_seconds * 2 ** (job_try - 1)

    async def process_file(self, ctx: dict, payload: dict[str, Any]) -> dict[str, Any]:
        started = time.perf_counter()
        job_id = ctx.get("job_id")
        job_try = ctx.get("job_try", 1)

        with bound_context(job_id=job_id, job_try=job_try):
            try:
                item = DriveItem.model_validate(payload)
            except ValidationError as exc:
                error = ContentValidationError(f"Invalid job payload: {exc}")
                await self._fail_terminally(ctx, payload, error, started)
                raise error from exc

            result = await self._pipeline_service.process_file(item)

            if result.success:
                duration = time.perf_counter() - started
                self._record_job(True, duration)
                self._mark_healthy(True)
                return JobResult(
                    success=True,
                    file_id=item.id,
                    file_name=item.name,
                    correlation_id=result.context.correlation_id,
                    duration=duration,
                    completed_steps=result.completed_steps,
                ).to_dict()

            error = result.error
            if is_retryable(error) and job_try < self._max_tries:
                delay = self.retry_delay(job_try)
                logger.warning(
                    f"Processing {item.name} failed, retrying in {delay}s: {error}",
                    extra={
                        "file_id": item.id,
                        "correlation_id": result.context.correlation_id,
                        "completed_steps": list(result.completed_steps),
                    },
                )
                raise Retry(defer=delay) from error

            await self._fail_terminally(
                ctx,
                payload,
                error,
                started,
                correlation_id=result.context.correlation_id,
                completed_steps=result.completed_steps,
            )
            raise error

    async def _fail_terminally(
        self,
        ctx: dict,
        payload: dict[str, Any],
        error: BaseException,
        started: float,
        correlation_id: Optional[str] = None,
        completed_steps: tuple[str, ...] = (),
    ) -> None:
        self._record_job(False, time.perf_counter() - started)
        self._mark_healthy(False)

        logger.error(
            f"Processing failed permanently: {error}",
            extra={
                "file_id": payload.get("id"),
                "correlation_id": correlation_id,
                "error_type": type(error).__name__,
                "retryable": is_retryable(error),
            },
        )

        if self._dead_letter is not None:
            await self._dead_letter.push(
                {
                    "job_id": ctx.get("job_id"),
                    "job_try": ctx.get("job_try", 1),
                    "file_id": payload.get("id"),
                    "file_name": payload.get("name"),
                    "correlation_id": correlation_id,
                    "completed_steps": list(completed_steps),
                    "error": str(error),
                    "error_type": type(error).__name__,
                    "payload": payload,
                }
            )

    def _record_job(self, success: bool, duration_seconds: float) -> None:
        if self._metrics is not None:
            self._metrics.record_job_completed(success, duration_seconds)

    def _mark_healthy(self, healthy: bool) -> None:
        if self._metrics is not None:
            self._metrics.set_healthy(healthy)
