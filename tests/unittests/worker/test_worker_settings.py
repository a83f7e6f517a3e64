"""Unit tests for the arq worker configuration."""

from unittest.mock import MagicMock

from sharepoint_connector.worker.tasks import process_file
from sharepoint_connector.worker.worker import Worker


class TestWorker:
    def test_options_follow_settings(self, test_settings):
        worker = Worker(test_settings)

        assert worker.functions == [process_file]
        assert worker.queue_name == "sharepoint-tasks"
        assert worker.max_jobs == 4
        assert worker.max_tries == 3
        assert worker.keep_result == 0
        assert worker.redis_settings.host == "localhost"

    async def test_embedded_worker_shares_pool_and_context(self, test_settings):
        pool = MagicMock()
        ingestion_worker = MagicMock()

        arq_worker = Worker(test_settings).create_embedded(pool, ingestion_worker)

        assert arq_worker.ctx["ingestion_worker"] is ingestion_worker
        assert arq_worker.queue_name == "sharepoint-tasks"
        assert arq_worker.max_jobs == 4
        assert "process_file" in arq_worker.functions
