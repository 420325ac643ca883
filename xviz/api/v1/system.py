from fastapi import APIRouter, Request

from xviz.core.config import settings

router = APIRouter()


@router.get("/status")
async def get_status(request: Request):
    """Server and data provider status"""
    provider = getattr(request.app.state, "provider", None)
    return {
        "version": settings.VERSION,
        "provider": provider is not None and provider.valid(),
        "supported_versions": sorted(settings.supported_versions),
        "socket_format": settings.XVIZ_SOCKET_FORMAT,
    }
