"""Prometheus metrics for scans, pipeline runs and queue jobs.

Every ``MetricsService`` owns its own ``CollectorRegistry`` so several
instances (one per test, or the API and the worker in one process) never
collide on metric names.
"""

from __future__ import annotations

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)

DIFF_RESULT_TYPES = ("new_and_updated", "deleted", "moved")


class MetricsService:
    def __init__(self, registry: CollectorRegistry | None = None):
        self._registry = registry or CollectorRegistry()
        self._healthy = True
        self._setup_metrics()

    @property
    def registry(self) -> CollectorRegistry:
        return self._registry

    def _setup_metrics(self):
        # Scanning
        self._scan_total = Counter(
            "sharepoint_scan_total",
            "Total number of SharePoint scans started",
            registry=self._registry,
        )
        self._scan_duration = Histogram(
            "sharepoint_scan_duration_seconds",
            "Duration of SharePoint scans in seconds",
            registry=self._registry,
            buckets=(1, 5, 10, 30, 60, 120, 300, 600),
        )
        self._files_discovered = Counter(
            "sharepoint_files_discovered_total",
            "Files discovered during scanning",
            ["site"],
            registry=self._registry,
        )
        self._file_diff_results = Counter(
            "sharepoint_file_diff_results_total",
            "Results of the file diff against Unique",
            ["result_type"],
            registry=self._registry,
        )
        self._files_queued = Counter(
            "sharepoint_files_queued_total",
            "Files queued for processing",
            registry=self._registry,
        )
        self._scan_errors = Counter(
            "sharepoint_scan_errors_total",
            "Errors raised while scanning a site",
            ["site", "error_type"],
            registry=self._registry,
        )

        # Pipeline
        self._pipeline_executions = Counter(
            "sharepoint_pipeline_executions_total",
            "Pipeline runs by outcome",
            ["status"],
            registry=self._registry,
        )
        self._pipeline_duration = Histogram(
            "sharepoint_pipeline_duration_seconds",
            "Duration of pipeline runs in seconds",
            registry=self._registry,
            buckets=(0.5, 1, 2.5, 5, 10, 30, 60, 120, 300),
        )
        self._pipeline_step_duration = Histogram(
            "sharepoint_pipeline_step_duration_seconds",
            "Duration of successful pipeline steps in seconds",
            ["step"],
            registry=self._registry,
            buckets=(0.1, 0.5, 1, 2.5, 5, 10, 30),
        )
        self._files_processed = Counter(
            "sharepoint_files_processed_total",
            "Files processed by outcome",
            ["status"],
            registry=self._registry,
        )
        self._file_size = Histogram(
            "sharepoint_file_size_bytes",
            "Size of successfully ingested files in bytes",
            registry=self._registry,
            buckets=(1024, 10240, 102400, 1048576, 10485760, 52428800, 104857600, 209715200),
        )

        # Queue
        self._queue_size = Gauge(
            "sharepoint_queue_size",
            "Jobs waiting in the ingestion queue",
            registry=self._registry,
        )
        self._jobs_processed = Counter(
            "sharepoint_jobs_processed_total",
            "Queue jobs finished by outcome",
            ["status"],
            registry=self._registry,
        )
        self._jobs_duration = Histogram(
            "sharepoint_jobs_duration_seconds",
            "Duration of queue jobs in seconds",
            registry=self._registry,
            buckets=(0.5, 1, 2.5, 5, 10, 30, 60, 120, 300),
        )

        self._connector_up = Gauge(
            "sharepoint_connector_up",
            "1 while the last scan or job succeeded",
            registry=self._registry,
        )
        self._connector_up.set(1)

    def record_scan_started(self) -> None:
        self._scan_total.inc()

    def record_scan_completed(self, duration_seconds: float) -> None:
        self._scan_duration.observe(duration_seconds)

    def record_files_discovered(self, count: int, site_id: str) -> None:
        self._files_discovered.labels(site=site_id).inc(count)

    def record_file_diff_results(self, new_and_updated: int, deleted: int, moved: int) -> None:
        """Record diff outcomes. Unchanged files are not a diff result and are not counted."""
        self._file_diff_results.labels(result_type="new_and_updated").inc(new_and_updated)
        self._file_diff_results.labels(result_type="deleted").inc(deleted)
        self._file_diff_results.labels(result_type="moved").inc(moved)

    def record_files_queued(self, count: int) -> None:
        self._files_queued.inc(count)

    def record_scan_error(self, site_id: str, error_type: str) -> None:
        self._scan_errors.labels(site=site_id, error_type=error_type).inc()

    def record_pipeline_completed(self, success: bool, duration_seconds: float) -> None:
        status = "success" if success else "failure"
        self._pipeline_executions.labels(status=status).inc()
        self._files_processed.labels(status=status).inc()
        self._pipeline_duration.observe(duration_seconds)

    def record_pipeline_step_duration(self, step_name: str, duration_seconds: float) -> None:
        self._pipeline_step_duration.labels(step=step_name).observe(duration_seconds)

    def record_file_size(self, size_bytes: int) -> None:
        self._file_size.observe(size_bytes)

    def set_queue_size(self, size: int) -> None:
        self._queue_size.set(size)

    def record_job_completed(self, success: bool, duration_seconds: float) -> None:
        self._jobs_processed.labels(status="success" if success else "failure").inc()
        self._jobs_duration.observe(duration_seconds)

    def set_healthy(self, healthy: bool) -> None:
        self._healthy = healthy
        self._connector_up.set(1 if healthy else 0)

    @property
    def is_healthy(self) -> bool:
        return self._healthy

    def get_sample_value(self, name: str, labels: dict[str, str] | None = None) -> float | None:
        return self._registry.get_sample_value(name, labels or {})

    def generate_latest(self) -> bytes:
        return generate_latest(self._registry)

    @staticmethod
    def content_type() -> str:
        return CONTENT_TYPE_LATEST
