from typing import Any

from sharepoint_connector.worker.ingestion_worker import IngestionWorker


async def process_file(ctx: dict, payload: dict[str, Any]) -> dict[str, Any]:
    ingestion_worker: IngestionWorker = ctx["ingestion_worker"]
    return await ingestion_worker.process_file(ctx, payload)
