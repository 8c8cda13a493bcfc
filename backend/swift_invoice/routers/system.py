"""System router providing liveness and readiness endpoints."""
from fastapi import APIRouter
import time

from ..config.database import async_database_health_check
from ..utils.api_shapes import success

router = APIRouter()

_start_time = time.time()


@router.get("/health", tags=["System"])  # liveness
async def health():
    return success({"ok": True})


@router.get("/readiness", tags=["System"])  # readiness: db connectivity
async def readiness():
    db_health = await async_database_health_check()
    return success({"database": db_health, "uptime_s": int(time.time() - _start_time)})
