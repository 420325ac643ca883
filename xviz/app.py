from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from xviz.api.v1 import router as api_router
from xviz.core.config import settings
from xviz.core.logging_config import get_logger
from xviz.services.io.provider import XVIZBaseProvider

logger = get_logger("xviz.app")


def create_app(provider: Optional[XVIZBaseProvider] = None) -> FastAPI:
    """Builds the XVIZ stream server; ``provider`` serves the log sent to clients."""
    app = FastAPI(
        title=settings.PROJECT_NAME,
        description="XVIZ log streaming over websockets",
        version=settings.VERSION,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    if provider is not None and not provider.valid():
        provider.init()
        if not provider.valid():
            logger.warning("XVIZ data provider is not valid; clients will receive an error")

    app.state.provider = provider
    app.include_router(api_router)
    return app


app = create_app()
