from __future__ import annotations

import time
from abc import ABC, abstractmethod
from typing import Optional

from sharepoint_connector.metrics.metrics_service import MetricsService
from sharepoint_connector.pipeline.processing_context import PipelineStepName, ProcessingContext


class PipelineStep(ABC):
    """One stage of the ingestion pipeline.

    Subclasses implement ``run``; ``execute`` times it and records the step
    duration when it returns without raising.
    """

    name: PipelineStepName

    def __init__(self, metrics: Optional[MetricsService] = None):
        self._metrics = metrics

    async def execute(self, context: ProcessingContext) -> ProcessingContext:
        started = time.perf_counter()
        result = await self.run(context)
        if self._metrics is not None:
            self._metrics.record_pipeline_step_duration(
                self.name.value, time.perf_counter() - started
            )
        return result

    @abstractmethod
    async def run(self, context: ProcessingContext) -> ProcessingContext:
        ...

    async def cleanup(self, context: ProcessingContext) -> None:
        return None
