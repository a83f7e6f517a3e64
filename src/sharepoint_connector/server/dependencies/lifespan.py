import asyncio
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI

from sharepoint_connector.main.config import get_settings
from sharepoint_connector.main.container.resources import Resources, create_container
from sharepoint_connector.main.logging import get_logger
from sharepoint_connector.worker.worker import Worker

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    await startup(app)
    yield
    await shutdown(app)


async def startup(app: FastAPI):
    settings = get_settings()
    app.state.started_at = time.monotonic()

    resources = await Resources.open(settings)
    container = create_container(settings, resources)
    app.state.resources = resources
    app.state.container = container
    app.state.worker_task = None

    if settings.run_worker_in_api:
        arq_worker = Worker(settings).create_embedded(
            resources.arq_redis,
            container.ingestion_worker(),
            container.ingestion_queue(),
        )
        app.state.worker_task = asyncio.create_task(arq_worker.async_run())

    container.scan_scheduler().start()
    logger.info("SharePoint connector started", extra={"version": settings.app_version})


async def shutdown(app: FastAPI):
    container = getattr(app.state, "container", None)
    if container is None:
        return

    await container.scan_scheduler().stop()

    worker_task = app.state.worker_task
    if worker_task is not None:
        worker_task.cancel()
        try:
            await worker_task
        except asyncio.CancelledError:
            pass

    await app.state.resources.close()
    logger.info("SharePoint connector stopped")
