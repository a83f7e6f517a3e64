import uvicorn
from fastapi import FastAPI

from sharepoint_connector.main.config import get_settings
from sharepoint_connector.server.dependencies.lifespan import lifespan
from sharepoint_connector.server.health_router import router as health_router


def get_application(with_lifespan: bool = True) -> FastAPI:
    app = FastAPI(
        title="SharePoint Connector",
        lifespan=lifespan if with_lifespan else None,
    )
    app.include_router(health_router)
    return app


app = get_application()


def start():
    uvicorn.run(
        "sharepoint_connector.server.main:app",
        host="0.0.0.0",
        port=get_settings().port,
    )
