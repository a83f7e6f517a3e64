"""Unit tests for the dead-letter list."""

from unittest.mock import AsyncMock, MagicMock

import orjson
import pytest

from sharepoint_connector.worker.dead_letter import DeadLetterQueue


def _redis_with_pipeline():
    pipe = MagicMock()
    pipe.execute = AsyncMock(return_value=[1, True])
    redis_mock = MagicMock()
    redis_mock.pipeline = MagicMock(return_value=pipe)
    return redis_mock, pipe


class TestPush:
    @pytest.mark.asyncio
    async def test_pushes_and_caps_list(self):
        redis_mock, pipe = _redis_with_pipeline()
        queue = DeadLetterQueue(redis_mock, "sharepoint-tasks:dead-letter", max_entries=10)

        assert await queue.push({"file_id": "file-1", "error": "boom"}) is True

        key, raw = pipe.lpush.call_args.args
        assert key == "sharepoint-tasks:dead-letter"
        record = orjson.loads(raw)
        assert record["file_id"] == "file-1"
        assert "failed_at" in record
        pipe.ltrim.assert_called_once_with("sharepoint-tasks:dead-letter", 0, 9)

    @pytest.mark.asyncio
    async def test_returns_false_on_redis_error(self):
        redis_mock, pipe = _redis_with_pipeline()
        pipe.execute = AsyncMock(side_effect=ConnectionError())

        queue = DeadLetterQueue(redis_mock, "dlq")

        assert await queue.push({"file_id": "file-1"}) is False


class TestRead:
    @pytest.mark.asyncio
    async def test_list_entries_decodes_json(self):
        redis_mock = MagicMock()
        redis_mock.lrange = AsyncMock(return_value=['{"file_id": "a"}', '{"file_id": "b"}'])

        entries = await DeadLetterQueue(redis_mock, "dlq").list_entries(limit=2)

        assert [entry["file_id"] for entry in entries] == ["a", "b"]
        redis_mock.lrange.assert_called_once_with("dlq", 0, 1)

    @pytest.mark.asyncio
    async def test_size_reads_list_length(self):
        redis_mock = MagicMock()
        redis_mock.llen = AsyncMock(return_value=3)

        assert await DeadLetterQueue(redis_mock, "dlq").size() == 3
        redis_mock.llen.assert_called_once_with("dlq")

    @pytest.mark.asyncio
    async def test_pushed_entry_reads_back(self):
        redis_mock, pipe = _redis_with_pipeline()
        queue = DeadLetterQueue(redis_mock, "dlq")
        await queue.push({"file_id": "file-1", "error": "boom"})
        stored = pipe.lpush.call_args.args[1].decode()
        redis_mock.lrange = AsyncMock(return_value=[stored])

        entries = await queue.list_entries()

        assert entries[0]["file_id"] == "file-1"
        assert entries[0]["error"] == "boom"
        redis_mock.lrange.assert_called_once_with("dlq", 0, 99)
