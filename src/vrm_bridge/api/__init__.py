from fastapi import FastAPI

from vrm_bridge.api.v1 import router as v1_router
from vrm_bridge.config import configure_logging, get_settings


def create_app() -> FastAPI:
    settings = get_settings()
    configure_logging(settings)

    app = FastAPI(title=settings.app_name)
    app.include_router(v1_router, prefix="/v1")
    return app


app = create_app()
