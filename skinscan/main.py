import logging
from fastapi import FastAPI

from skinscan.logging import configure_logging
from skinscan.config import settings
from skinscan.middleware.request_id import RequestIdMiddleware
from skinscan.api.error_handlers import register_error_handlers

from skinscan.api.routes_health import router as health_router
from skinscan.api.routes_analysis import router as analysis_router


def create_app() -> FastAPI:
    configure_logging()
    logger = logging.getLogger(__name__)

    app = FastAPI(title=settings.app_name)

    app.add_middleware(RequestIdMiddleware)
    register_error_handlers(app)

    app.include_router(health_router)
    app.include_router(analysis_router)

    if not settings.groq_api_key:
        logger.warning("No inference API key configured; analysis requests will return error records")

    logger.info("App initialized models=%s", ",".join(settings.vision_models))
    return app


app = create_app()
