"""Runs the fixed ingestion step sequence for one discovered file.

``PipelineService.process_file`` never raises for ordinary errors: every
failure, timeout included, is captured in the returned ``PipelineResult``
together with the steps that finished before it. Retrying is the caller's
decision.
"""

from __future__ import annotations

import asyncio
import time
from typing import Optional

from sharepoint_connector.integration.domain.drive_item import DriveItem
from sharepoint_connector.main.exceptions import StepTimeoutError
from sharepoint_connector.main.logging import get_logger
from sharepoint_connector.main.request_context import bound_context
from sharepoint_connector.metrics.metrics_service import MetricsService
from sharepoint_connector.pipeline.processing_context import (
    PipelineResult,
    ProcessingContext,
)
from sharepoint_connector.pipeline.steps.base import PipelineStep
from sharepoint_connector.pipeline.steps.content_fetching_step import ContentFetchingStep
from sharepoint_connector.pipeline.steps.content_registration_step import (
    ContentRegistrationStep,
)
from sharepoint_connector.pipeline.steps.ingestion_finalization_step import (
    IngestionFinalizationStep,
)
from sharepoint_connector.pipeline.steps.storage_upload_step import StorageUploadStep
from sharepoint_connector.pipeline.steps.token_validation_step import TokenValidationStep

logger = get_logger(__name__)

DEFAULT_STEP_TIMEOUT_SECONDS = 30.0


class PipelineService:
    def __init__(
        self,
        token_validation_step: TokenValidationStep,
        content_fetching_step: ContentFetchingStep,
        content_registration_step: ContentRegistrationStep,
        storage_upload_step: StorageUploadStep,
        ingestion_finalization_step: IngestionFinalizationStep,
        metrics: Optional[MetricsService] = None,
        step_timeout_seconds: float = DEFAULT_STEP_TIMEOUT_SECONDS,
    ):
        self._steps: tuple[PipelineStep, ...] = (
            token_validation_step,
            content_fetching_step,
            content_registration_step,
            storage_upload_step,
            ingestion_finalization_step,
        )
        self._metrics = metrics
        self._step_timeout_seconds = step_timeout_seconds

    @property
    def steps(self) -> tuple[PipelineStep, ...]:
        return self._steps

    async def process_file(self, item: DriveItem) -> PipelineResult:
        context = ProcessingContext.from_drive_item(item)
        with bound_context(correlation_id=context.correlation_id, file_id=context.file_id):
            return await self._run(context)

    async def _run(self, context: ProcessingContext) -> PipelineResult:
        started = time.perf_counter()
        completed_steps: list[str] = []

        logger.info(
            f"Starting pipeline for {context.file_name}",
            extra={"file_id": context.file_id, "correlation_id": context.correlation_id},
        )

        for step in self._steps:
            try:
                await self._execute_with_timeout(step, context)
            except Exception as exc:
                logger.error(
                    f"Step {step.name.value} failed: {exc}",
                    extra={"step": step.name.value, "error_type": type(exc).__name__},
                )
                await self._cleanup_step(step, context)
                context.release_content()
                return self._finish(context, completed_steps, started, error=exc)

            completed_steps.append(step.name.value)
            await self._cleanup_step(step, context)

        context.release_content()
        context.metadata.clear()
        return self._finish(context, completed_steps, started)

    async def _execute_with_timeout(self, step: PipelineStep, context: ProcessingContext) -> None:
        deadline = asyncio.timeout(self._step_timeout_seconds)
        try:
            async with deadline:
                await step.execute(context)
        except TimeoutError as exc:
            # A timeout raised by the step itself, e.g. a socket read, keeps its own type
            if not deadline.expired():
                raise
            raise StepTimeoutError(
                step.name.value, int(self._step_timeout_seconds * 1000)
            ) from exc

    async def _cleanup_step(self, step: PipelineStep, context: ProcessingContext) -> None:
        try:
            await step.cleanup(context)
        except Exception as exc:
            logger.warning(
                f"Cleanup of step {step.name.value} failed: {exc}",
                extra={"step": step.name.value},
            )

    def _finish(
        self,
        context: ProcessingContext,
        completed_steps: list[str],
        started: float,
        error: Optional[BaseException] = None,
    ) -> PipelineResult:
        elapsed_seconds = time.perf_counter() - started
        success = error is None

        if self._metrics is not None:
            self._metrics.record_pipeline_completed(success, elapsed_seconds)
            if success:
                self._metrics.record_file_size(context.file_size)

        if success:
            logger.info(
                f"Pipeline completed for {context.file_name}",
                extra={"file_id": context.file_id, "duration_ms": round(elapsed_seconds * 1000, 2)},
            )

        return PipelineResult(
            success=success,
            context=context,
            completed_steps=tuple(completed_steps),
            total_duration=elapsed_seconds * 1000,
            error=error,
        )
