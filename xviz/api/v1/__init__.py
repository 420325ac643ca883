from fastapi import APIRouter
from .system import router as system_router
from .websocket import router as ws_router

router = APIRouter(prefix="/api/v1")
router.include_router(system_router)
router.include_router(ws_router)
